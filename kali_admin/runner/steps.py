from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from kali_admin.adapters.system.commands import Command, CommandRunner
from kali_admin.errors import StepError
from kali_admin.runner.state import RunState, StateStore
from kali_admin.runner.ui import Ui


class RunMode(str, Enum):
    INTERACTIVE = "interactive"
    AUTOMATED = "automated"


class StepOutcome(str, Enum):
    DONE = "done"
    # The operator declined the step's optional behaviour. Advances like DONE.
    DECLINED = "declined"
    # The step finished and the host should restart before the next one.
    REBOOT = "reboot"


@dataclass
class StepContext:
    """Everything a step action may touch."""

    mode: RunMode
    ui: Ui
    shell: CommandRunner
    state: RunState
    store: StateStore

    @property
    def automated(self) -> bool:
        return self.mode is RunMode.AUTOMATED

    @property
    def data(self) -> dict[str, str]:
        return self.state.data

    def remember(self, key: str, value: str) -> None:
        """Store a captured value and persist it right away."""
        self.state.data[key] = value
        self.store.save(self.state)

    def confirm(self, prompt: str, *, auto: bool = True) -> bool:
        """Ask a yes/no question; automated runs answer `auto` without asking."""
        if self.automated:
            return auto
        return self.ui.confirm(prompt)

    def ask_valid(self, prompt: str, validate: Callable[[str], bool], error: str) -> str:
        """Prompt until `validate` accepts the answer.

        `error` is formatted with the rejected answer as `{value}`.
        """
        if self.automated:
            raise StepError(f"operator input required: {prompt}")
        while True:
            answer = self.ui.ask(prompt)
            if answer and validate(answer):
                return answer
            self.ui.warn(error.format(value=answer))

    def run_all(self, *commands: Command) -> None:
        for command in commands:
            self.shell.run(command)


Action = Callable[[StepContext], "StepOutcome | None"]


@dataclass(frozen=True)
class Step:
    description: str
    action: Action
    command: str = ""


def _display(command: Command) -> str:
    return command if isinstance(command, str) else " ".join(command)


def command_step(description: str, *commands: Command) -> Step:
    """A step that runs each command in turn and stops at the first failure."""

    def action(ctx: StepContext) -> None:
        ctx.run_all(*commands)

    return Step(
        description=description,
        action=action,
        command=" && ".join(_display(c) for c in commands),
    )


def steps_from_commands(entries: Sequence[tuple[str, str]]) -> list[Step]:
    return [command_step(description, command) for description, command in entries]
