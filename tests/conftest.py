from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Iterable

import pytest
from rich.console import Console

from kali_admin.adapters.system.commands import Command
from kali_admin.errors import CommandError, TriggerError
from kali_admin.runner.state import RunState
from kali_admin.runner.ui import Ui


def _key(command: Command) -> str:
    return command if isinstance(command, str) else " ".join(command)


@dataclass
class MemoryStore:
    record: RunState | None = None
    history: list[int] = field(default_factory=list)
    deleted: bool = False

    def exists(self) -> bool:
        return self.record is not None

    def load(self, total_steps: int) -> RunState:
        if self.record is None or not 0 <= self.record.current_step <= total_steps:
            return RunState()
        return RunState(self.record.current_step, dict(self.record.data))

    def save(self, state: RunState) -> None:
        self.record = RunState(state.current_step, dict(state.data))
        self.history.append(state.current_step)

    def delete(self) -> None:
        self.record = None
        self.deleted = True


@dataclass
class RecordingTrigger:
    registered: bool = False
    calls: list[str] = field(default_factory=list)
    fail: bool = False

    def register(self) -> None:
        self.calls.append("register")
        if self.fail:
            raise TriggerError("crontab unavailable")
        self.registered = True

    def deregister(self) -> None:
        self.calls.append("deregister")
        if self.fail:
            raise TriggerError("crontab unavailable")
        self.registered = False

    def is_registered(self) -> bool:
        return self.registered


@dataclass
class RecordingShell:
    """Fake CommandRunner: records every command, fails the ones in `failing`."""

    outputs: dict[str, str] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)
    missing: set[str] = field(default_factory=set)
    commands: list[str] = field(default_factory=list)

    def run(self, command: Command) -> None:
        self.commands.append(_key(command))
        if _key(command) in self.failing:
            raise CommandError(command, 100)

    def output(self, command: Command) -> str:
        self.commands.append(_key(command))
        if _key(command) in self.failing:
            raise CommandError(command, 1)
        return self.outputs.get(_key(command), "")

    def succeeds(self, command: Command) -> bool:
        self.commands.append(_key(command))
        return _key(command) not in self.missing and _key(command) not in self.failing


class ScriptedInput:
    def __init__(self, answers: Iterable[str]) -> None:
        self.answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {prompt!r}")
        return self.answers.pop(0)


def make_ui(*answers: str) -> tuple[Ui, ScriptedInput, io.StringIO]:
    out = io.StringIO()
    reader = ScriptedInput(answers)
    return Ui(console=Console(file=out, width=120), read=reader), reader, out


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def trigger() -> RecordingTrigger:
    return RecordingTrigger()


@pytest.fixture
def shell() -> RecordingShell:
    return RecordingShell()


@pytest.fixture
def ui_factory():
    return make_ui
