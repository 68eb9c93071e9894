from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from kali_admin.errors import CommandError, StepError

logger = logging.getLogger(__name__)

Command = Sequence[str] | str


class CommandRunner(Protocol):
    """Run external commands on the host."""

    def run(self, command: Command) -> None:
        """Run with output going straight to the terminal; raise CommandError on failure."""
        ...

    def output(self, command: Command) -> str:
        """Run and return stdout; raise CommandError on failure."""
        ...

    def succeeds(self, command: Command) -> bool:
        """Run quietly and report whether the exit code was zero."""
        ...


def _describe(command: Command) -> str:
    return command if isinstance(command, str) else " ".join(command)


def _spawn(command: Command, **kwargs: Any) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(command, shell=isinstance(command, str), **kwargs)
    except OSError as exc:
        raise StepError(f"could not start {_describe(command)}: {exc}") from exc


@dataclass(frozen=True)
class Shell(CommandRunner):
    """CommandRunner backed by subprocess.

    String commands go through /bin/sh so operator-defined command lines
    (pipes, '&&') behave as typed; sequences are executed directly. A
    program that cannot be started raises StepError like a failed one.
    """

    def run(self, command: Command) -> None:
        logger.info("Running: %s", _describe(command))
        proc = _spawn(command)
        if proc.returncode != 0:
            raise CommandError(command, proc.returncode)

    def output(self, command: Command) -> str:
        logger.debug("Capturing: %s", _describe(command))
        proc = _spawn(command, stdout=subprocess.PIPE)
        if proc.returncode != 0:
            raise CommandError(command, proc.returncode)
        return proc.stdout.decode("utf-8", errors="replace")

    def succeeds(self, command: Command) -> bool:
        try:
            proc = _spawn(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except StepError as exc:
            logger.debug("%s", exc)
            return False
        return proc.returncode == 0
