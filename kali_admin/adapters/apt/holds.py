from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from kali_admin.adapters.system.commands import CommandRunner

logger = logging.getLogger(__name__)


class HoldAction(str, Enum):
    HOLD = "hold"
    UNHOLD = "unhold"


def read_package_list(path: Path) -> list[str]:
    """One package name per line; blank lines are ignored."""
    return [line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def package_status(shell: CommandRunner, package: str) -> list[str]:
    """Lines of `dpkg -l` that mention `package`."""
    listing = shell.output(["dpkg", "-l"])
    return [line for line in listing.splitlines() if package in line]


def apply(shell: CommandRunner, package: str, action: HoldAction) -> None:
    logger.info("apt-mark %s %s", action.value, package)
    shell.run(["apt-mark", action.value, package])


def held_packages(shell: CommandRunner) -> set[str]:
    return {line.strip() for line in shell.output(["apt-mark", "showhold"]).splitlines() if line.strip()}
