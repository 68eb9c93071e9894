from __future__ import annotations

from kali_admin.runner.steps import Step, command_step

NAME = "update"


def build_steps() -> list[Step]:
    """Full package refresh: upgrade, dist-upgrade, cleanup, repair."""
    return [
        command_step(
            "Update package lists & upgrade packages",
            ["apt", "update"],
            ["apt", "upgrade", "-y"],
        ),
        command_step("Distribution upgrade", ["apt", "dist-upgrade", "-y"]),
        command_step("Autoremove unnecessary packages", ["apt", "autoremove", "-y"]),
        command_step("Autoclean obsolete packages", ["apt", "autoclean", "-y"]),
        command_step("Clear package cache", ["apt", "clean"]),
        command_step("Reconfigure partially installed packages", ["dpkg", "--configure", "-a"]),
        command_step("Fix broken dependencies", ["apt", "install", "-f", "-y"]),
    ]
