from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from kali_admin.errors import TriggerError

logger = logging.getLogger(__name__)


class ResumeTrigger(Protocol):
    """Arrange for the runner to be re-invoked after the host reboots.

    register() must be idempotent. Failures raise TriggerError.
    """

    def register(self) -> None:
        ...

    def deregister(self) -> None:
        ...

    def is_registered(self) -> bool:
        ...


class NullResumeTrigger(ResumeTrigger):
    def register(self) -> None:
        return

    def deregister(self) -> None:
        return

    def is_registered(self) -> bool:
        return False


@dataclass(frozen=True)
class CrontabResumeTrigger(ResumeTrigger):
    """Resume via an '@reboot' entry in the invoking user's crontab.

    Entries are matched on `command`, which should hold the program's
    absolute invocation together with its automated-mode flag.
    """

    command: str
    delay_sec: int = 10

    @property
    def entry(self) -> str:
        return f"@reboot sleep {self.delay_sec} && {self.command}"

    def _read(self) -> list[str]:
        try:
            proc = subprocess.run(["crontab", "-l"], capture_output=True, text=True)
        except OSError as exc:
            raise TriggerError(f"crontab unavailable: {exc}") from exc
        if proc.returncode != 0:
            # 'no crontab for <user>' is reported as a failure; treat it as empty.
            if "no crontab" in proc.stderr.lower():
                return []
            raise TriggerError(f"crontab -l failed: {proc.stderr.strip()}")
        return [line for line in proc.stdout.splitlines() if line.strip()]

    def _write(self, lines: list[str]) -> None:
        payload = "\n".join(lines) + "\n" if lines else ""
        try:
            proc = subprocess.run(["crontab", "-"], input=payload, capture_output=True, text=True)
        except OSError as exc:
            raise TriggerError(f"crontab unavailable: {exc}") from exc
        if proc.returncode != 0:
            raise TriggerError(f"crontab - failed: {proc.stderr.strip()}")

    def _matches(self, line: str) -> bool:
        return self.command in line

    def is_registered(self) -> bool:
        return any(self._matches(line) for line in self._read())

    def register(self) -> None:
        lines = self._read()
        if any(self._matches(line) for line in lines):
            logger.debug("Resume entry already present: %s", self.entry)
            return
        self._write(lines + [self.entry])
        logger.info("Registered resume entry: %s", self.entry)

    def deregister(self) -> None:
        lines = self._read()
        kept = [line for line in lines if not self._matches(line)]
        if len(kept) == len(lines):
            return
        self._write(kept)
        logger.info("Removed resume entry for: %s", self.command)
