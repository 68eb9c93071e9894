from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from kali_admin.adapters.system.commands import CommandRunner, Shell
from kali_admin.errors import StepError, TriggerError
from kali_admin.runner.state import RunState, StateStore
from kali_admin.runner.steps import RunMode, Step, StepContext, StepOutcome
from kali_admin.runner.trigger import NullResumeTrigger, ResumeTrigger
from kali_admin.runner.ui import Choice, Ui

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    COMPLETE = "complete"
    # Operator chose to reboot before a step; progress is saved.
    PAUSED = "paused"
    # A step asked for a reboot and the reboot command was issued.
    REBOOTING = "rebooting"
    FAILED = "failed"


@dataclass(frozen=True)
class RunResult:
    status: RunStatus
    current_step: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.FAILED


@dataclass
class StepRunner:
    """Execute an ordered list of steps, persisting progress after each one.

    Progress is always saved before moving on, so an interruption between
    a step finishing and the next starting can only cause a step to be
    re-run, never skipped.
    """

    store: StateStore
    ui: Ui
    trigger: ResumeTrigger = field(default_factory=NullResumeTrigger)
    shell: CommandRunner = field(default_factory=Shell)
    rebooter: Callable[[], None] | None = None

    def load_state(self, total_steps: int) -> RunState:
        return self.store.load(total_steps)

    def save_state(self, state: RunState) -> None:
        self.store.save(state)

    def run(self, steps: Sequence[Step], state: RunState, mode: RunMode) -> RunResult:
        total = len(steps)
        if mode is RunMode.AUTOMATED:
            self._register_trigger()

        ctx = StepContext(mode=mode, ui=self.ui, shell=self.shell, state=state, store=self.store)

        while state.current_step < total:
            i = state.current_step
            step = steps[i]
            self.ui.banner(i, total, step)

            if mode is RunMode.INTERACTIVE:
                choice = self.ui.choose_step_action(is_last=i == total - 1)
                if choice is Choice.REBOOT:
                    self.save_state(state)
                    self.ui.status(f"Progress saved at step {i + 1}. Reboot, then re-run to resume.")
                    return RunResult(RunStatus.PAUSED, i)
                if choice is Choice.SKIP:
                    self.ui.warn(f"Skipping step {i + 1}...")
                    self._advance(state)
                    continue
            else:
                self.ui.log("AUTO_MODE: proceeding with step.")

            try:
                outcome = step.action(ctx) or StepOutcome.DONE
            except (StepError, OSError) as exc:
                self.save_state(state)
                logger.error("Step %d (%s) failed: %s", i + 1, step.description, exc)
                self.ui.error(
                    f"Step {i + 1} failed: {exc}. Re-run to try again from this step."
                )
                return RunResult(RunStatus.FAILED, i, error=str(exc))

            self._advance(state)
            if outcome is StepOutcome.DECLINED:
                self.ui.warn(f"Step {i + 1} declined; moving on.")
            elif outcome is StepOutcome.REBOOT:
                if state.current_step == total:
                    self._finish()
                return self._reboot(state, total)
            else:
                self.ui.status(f"Step {i + 1} complete.")

        self._finish()
        return RunResult(RunStatus.COMPLETE, total)

    def _advance(self, state: RunState) -> None:
        state.current_step += 1
        self.save_state(state)

    def _reboot(self, state: RunState, total: int) -> RunResult:
        if state.current_step < total:
            self.ui.status(f"Rebooting now. The run resumes at step {state.current_step + 1}.")
        else:
            self.ui.status("Rebooting now.")
        if self.rebooter is not None:
            try:
                self.rebooter()
            except StepError as exc:
                logger.error("Reboot command failed: %s", exc)
                self.ui.error("Reboot failed. Reboot manually, then re-run to resume.")
        return RunResult(RunStatus.REBOOTING, state.current_step)

    def _finish(self) -> None:
        self.store.delete()
        try:
            self.trigger.deregister()
        except TriggerError as exc:
            logger.warning("Could not remove resume trigger: %s", exc)
        self.ui.status("All steps completed successfully.")

    def _register_trigger(self) -> None:
        try:
            self.trigger.register()
        except TriggerError as exc:
            logger.warning("Could not register resume trigger, continuing without it: %s", exc)
