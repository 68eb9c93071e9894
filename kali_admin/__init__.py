"""Resumable administration runbooks for Kali Linux hosts."""

__version__ = "0.1.0"
