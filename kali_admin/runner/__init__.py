"""Resumable step runner.

This package provides:
- The persisted progress record and its file store
- Boot-time resume triggers (crontab)
- The operator console
- The step runner itself

A run interrupted by a reboot, a failure or the operator picks up at the
step it stopped on when the same runbook is invoked again.
"""
