from __future__ import annotations

from typing import Sequence


class KaliAdminError(Exception):
    """Base class for all errors raised by kali_admin."""


class StepError(KaliAdminError):
    """A step could not complete. Halts the run at that step."""


class CommandError(StepError):
    def __init__(self, command: Sequence[str] | str, returncode: int) -> None:
        self.command = command if isinstance(command, str) else " ".join(command)
        self.returncode = returncode
        super().__init__(f"command failed with exit code {returncode}: {self.command}")


class TriggerError(KaliAdminError):
    """The boot-time resume trigger could not be added or removed."""


class ConfigError(KaliAdminError):
    pass
