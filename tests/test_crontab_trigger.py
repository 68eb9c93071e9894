from __future__ import annotations

import subprocess
from dataclasses import dataclass, field

import pytest

from kali_admin.errors import TriggerError
from kali_admin.runner import trigger as trigger_mod
from kali_admin.runner.trigger import CrontabResumeTrigger, NullResumeTrigger

COMMAND = "/usr/local/bin/kali-admin update --yall"


@dataclass
class _FakeCrontab:
    """Stands in for the crontab binary: '-l' prints, '-' replaces."""

    content: str | None = None
    writes: int = 0
    fail_write: bool = False
    calls: list[list[str]] = field(default_factory=list)

    def __call__(self, args, input=None, capture_output=False, text=False):
        self.calls.append(list(args))
        if args == ["crontab", "-l"]:
            if self.content is None:
                return subprocess.CompletedProcess(args, 1, stdout="", stderr="no crontab for root\n")
            return subprocess.CompletedProcess(args, 0, stdout=self.content, stderr="")
        if args == ["crontab", "-"]:
            if self.fail_write:
                return subprocess.CompletedProcess(args, 1, stdout="", stderr="permission denied")
            self.content = input
            self.writes += 1
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")
        raise AssertionError(args)


@pytest.fixture
def crontab(monkeypatch) -> _FakeCrontab:
    fake = _FakeCrontab()
    monkeypatch.setattr(trigger_mod.subprocess, "run", fake)
    return fake


def test_register_on_empty_crontab_adds_reboot_entry(crontab: _FakeCrontab) -> None:
    trig = CrontabResumeTrigger(command=COMMAND, delay_sec=10)

    assert not trig.is_registered()
    trig.register()

    assert crontab.content == f"@reboot sleep 10 && {COMMAND}\n"
    assert trig.is_registered()


def test_register_is_idempotent_and_keeps_other_entries(crontab: _FakeCrontab) -> None:
    crontab.content = "0 3 * * * /usr/bin/backup\n"
    trig = CrontabResumeTrigger(command=COMMAND)

    trig.register()
    trig.register()

    assert crontab.writes == 1
    assert crontab.content.splitlines() == [
        "0 3 * * * /usr/bin/backup",
        f"@reboot sleep 10 && {COMMAND}",
    ]


def test_deregister_removes_only_matching_lines(crontab: _FakeCrontab) -> None:
    crontab.content = (
        "0 3 * * * /usr/bin/backup\n"
        f"@reboot sleep 10 && {COMMAND}\n"
        "@reboot sleep 10 && /usr/local/bin/kali-admin timezone --yall\n"
    )
    CrontabResumeTrigger(command=COMMAND).deregister()

    assert crontab.content.splitlines() == [
        "0 3 * * * /usr/bin/backup",
        "@reboot sleep 10 && /usr/local/bin/kali-admin timezone --yall",
    ]


def test_deregister_without_entry_does_not_rewrite(crontab: _FakeCrontab) -> None:
    CrontabResumeTrigger(command=COMMAND).deregister()
    assert crontab.writes == 0


def test_deregister_last_entry_leaves_empty_crontab(crontab: _FakeCrontab) -> None:
    crontab.content = f"@reboot sleep 10 && {COMMAND}\n"
    CrontabResumeTrigger(command=COMMAND).deregister()
    assert crontab.content == ""


def test_write_failure_raises_trigger_error(crontab: _FakeCrontab) -> None:
    crontab.fail_write = True
    with pytest.raises(TriggerError, match="permission denied"):
        CrontabResumeTrigger(command=COMMAND).register()


def test_missing_crontab_binary_raises_trigger_error(monkeypatch) -> None:
    def missing(*args, **kwargs):
        raise FileNotFoundError("crontab")

    monkeypatch.setattr(trigger_mod.subprocess, "run", missing)
    with pytest.raises(TriggerError):
        CrontabResumeTrigger(command=COMMAND).register()


def test_null_trigger_is_inert() -> None:
    trig = NullResumeTrigger()
    trig.register()
    trig.deregister()
    assert not trig.is_registered()
