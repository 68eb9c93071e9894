from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from kali_admin.errors import ConfigError
from kali_admin.runner.steps import Step, steps_from_commands


def _expand(path: str) -> Path:
    return Path(os.path.expanduser(path)).resolve()


def _anchor(base: Path, value: str) -> str:
    """Make a configured path absolute, relative to the config file directory."""
    if not value:
        return value
    path = Path(os.path.expanduser(value))
    return str(path if path.is_absolute() else base / path)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc


class RunnerConfig(BaseModel):
    """Where progress lives and how a run resumes after a reboot."""

    state_dir: str = Field(
        default="",
        description="Directory for progress records. Empty: next to the program.",
    )
    resume_trigger: Literal["cron", "none"] = Field(default="cron")
    reboot_delay_sec: int = Field(default=10, ge=0)
    reboot_command: list[str] = Field(default_factory=lambda: ["systemctl", "reboot"])
    log_dir: str = Field(default="", description="Also write logs to '<log_dir>/run.log'.")

    def anchored(self, base: Path) -> "RunnerConfig":
        return self.model_copy(
            update={"state_dir": _anchor(base, self.state_dir), "log_dir": _anchor(base, self.log_dir)}
        )

    def resolved_state_dir(self) -> Path | None:
        return _expand(self.state_dir) if self.state_dir else None

    def resolved_log_dir(self) -> str | None:
        return str(_expand(self.log_dir)) if self.log_dir else None


class HoldsConfig(BaseModel):
    package_list: str = Field(default="pkg-hold-list.txt")

    def anchored(self, base: Path) -> "HoldsConfig":
        return self.model_copy(update={"package_list": _anchor(base, self.package_list)})


class CommandStepConfig(BaseModel):
    description: str
    command: str = Field(min_length=1)


class RunbookConfig(BaseModel):
    """An operator-defined sequence of shell commands."""

    steps: list[CommandStepConfig] = Field(min_length=1)

    def build_steps(self) -> list[Step]:
        return steps_from_commands([(s.description, s.command) for s in self.steps])


class AdminConfig(BaseModel):
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    holds: HoldsConfig = Field(default_factory=HoldsConfig)
    runbooks: dict[str, RunbookConfig] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "AdminConfig":
        raw = _read_toml(path)
        try:
            cfg = cls.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config {path}:\n{exc}") from exc
        # Relative paths are taken from the config file directory, not the cwd.
        base = path.resolve().parent
        return cfg.model_copy(
            update={"runner": cfg.runner.anchored(base), "holds": cfg.holds.anchored(base)}
        )

    @classmethod
    def load_optional(cls, path: Path) -> "AdminConfig":
        """Load `path` if it exists, otherwise return the defaults."""
        if not path.exists():
            return cls()
        return cls.load(path)

    def runbook(self, name: str) -> RunbookConfig:
        try:
            return self.runbooks[name]
        except KeyError:
            known = ", ".join(sorted(self.runbooks)) or "none"
            raise ConfigError(f"Unknown runbook '{name}' (configured: {known})") from None
