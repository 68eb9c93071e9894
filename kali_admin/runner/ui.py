from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from kali_admin.runner.steps import Step


class Choice(str, Enum):
    PROCEED = "proceed"
    SKIP = "skip"
    REBOOT = "reboot"


_RULE = "=" * 30


@dataclass(frozen=True)
class Ui:
    """Operator-facing console: status lines and prompts.

    All input goes through `read`, so tests can replace the terminal with a
    scripted list of answers.
    """

    console: Console
    read: Callable[[str], str]

    @classmethod
    def default(cls) -> "Ui":
        console = Console(highlight=False)
        return cls(console=console, read=console.input)

    def log(self, message: str) -> None:
        self.console.print(message, markup=False)

    def status(self, message: str) -> None:
        self.console.print(f"[green]{escape(message)}[/green]")

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]{escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]{escape(message)}[/bold red]")

    def banner(self, index: int, total: int, step: "Step") -> None:
        self.console.print(_RULE)
        self.console.print(f"[bold]Step {index + 1} of {total}: {escape(step.description)}[/bold]")
        if step.command:
            self.console.print(f"Command: {step.command}", markup=False)
        self.console.print(_RULE)

    def ask(self, prompt: str) -> str:
        return self.read(f"{prompt} ").strip()

    def confirm(self, prompt: str) -> bool:
        while True:
            answer = self.ask(f"{prompt} (y/n):").lower()
            if answer.startswith("y"):
                return True
            if answer.startswith("n"):
                return False
            self.log("Please answer y or n.")

    def choose_step_action(self, is_last: bool) -> Choice:
        """Ask whether to run, skip or pause before the current step.

        The last step cannot be skipped: skipping it would be
        indistinguishable from finishing the sequence.
        """
        if is_last:
            prompt, allowed = "Do you want to (P)roceed or (R)eboot?", (Choice.PROCEED, Choice.REBOOT)
        else:
            prompt, allowed = "Choose: (P)roceed, (S)kip, or (R)eboot?", tuple(Choice)

        while True:
            answer = self.ask(prompt).lower()
            for choice in allowed:
                if answer and choice.value.startswith(answer[0]):
                    return choice
            options = ", ".join(f"({c.value[0].upper()}){c.value[1:]}" for c in allowed)
            self.log(f"Invalid input. Please enter {options}.")
