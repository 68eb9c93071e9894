from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

STEP_KEY = "current_step"


@dataclass
class RunState:
    """Persisted progress of a runbook.

    current_step is the index of the next step to execute; it equals the
    number of steps once the sequence is complete. data holds values
    captured from the operator that later steps need after a resume.
    """

    current_step: int = 0
    data: dict[str, str] = field(default_factory=dict)


class StateStore(Protocol):
    """Read/write/delete a single named progress record."""

    def load(self, total_steps: int) -> RunState:
        ...

    def save(self, state: RunState) -> None:
        ...

    def delete(self) -> None:
        ...

    def exists(self) -> bool:
        ...


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def _unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        out.append({"n": "\n", "r": "\r", "\\": "\\"}.get(nxt, nxt))
    return "".join(out)


def encode_state(state: RunState) -> str:
    lines = [f"{STEP_KEY}={state.current_step}"]
    for key in sorted(state.data):
        lines.append(f"{key}={_escape(state.data[key])}")
    return "\n".join(lines) + "\n"


def decode_record(text: str) -> dict[str, str]:
    """Parse 'key=value' lines. Blank lines and '#' comments are ignored."""
    record: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in line:
            continue
        # Values are kept verbatim; only the key side is trimmed.
        key, value = line.split("=", 1)
        record[key.strip()] = _unescape(value)
    return record


def tracker_path(program: Path, runbook: str, state_dir: Path | None = None) -> Path:
    """Location of the progress record for one runbook of one program copy.

    Derived from the program's file name so renamed copies never share
    progress.
    """
    directory = state_dir if state_dir is not None else program.resolve().parent
    return directory / f".{program.name}.{runbook}.tracker"


@dataclass
class FileStateStore(StateStore):
    path: Path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self, total_steps: int) -> RunState:
        if not self.path.exists():
            return RunState()

        try:
            record = decode_record(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s (%s); starting from step 0.", self.path, exc)
            return RunState()

        raw_step = record.pop(STEP_KEY, "").strip()
        if not re.fullmatch(r"[0-9]+", raw_step):
            logger.warning("%s has no valid step index (%r); starting from step 0.", self.path, raw_step)
            return RunState()

        step = int(raw_step)
        if step > total_steps:
            logger.warning(
                "%s points at step %d but the runbook has %d steps; starting from step 0.",
                self.path,
                step,
                total_steps,
            )
            return RunState()

        logger.info("Resuming from step #%d (%s)", step, self.path)
        return RunState(current_step=step, data=record)

    def save(self, state: RunState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(encode_state(state), encoding="utf-8")
        os.replace(tmp, self.path)

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)
