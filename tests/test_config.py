from __future__ import annotations

from pathlib import Path

import pytest

from kali_admin.errors import ConfigError
from kali_admin.runner.config import AdminConfig, RunnerConfig


def test_defaults_without_file(tmp_path: Path) -> None:
    cfg = AdminConfig.load_optional(tmp_path / "missing.toml")
    assert cfg.runner.resume_trigger == "cron"
    assert cfg.runner.reboot_delay_sec == 10
    assert cfg.runner.reboot_command == ["systemctl", "reboot"]
    assert cfg.runner.resolved_state_dir() is None
    assert cfg.runner.resolved_log_dir() is None
    assert cfg.holds.package_list == "pkg-hold-list.txt"
    assert cfg.runbooks == {}


def test_load_runbooks_and_runner_settings(tmp_path: Path) -> None:
    path = tmp_path / "kali_admin.toml"
    path.write_text(
        f"""
[runner]
state_dir = "{tmp_path / 'state'}"
resume_trigger = "none"
reboot_delay_sec = 30

[runbooks.refresh]
steps = [
  {{ description = "Refresh lists", command = "apt update" }},
  {{ description = "Upgrade", command = "apt upgrade -y" }},
]
"""
    )
    cfg = AdminConfig.load(path)

    assert cfg.runner.resolved_state_dir() == (tmp_path / "state").resolve()
    assert cfg.runner.resume_trigger == "none"
    steps = cfg.runbook("refresh").build_steps()
    assert [s.description for s in steps] == ["Refresh lists", "Upgrade"]
    assert steps[1].command == "apt upgrade -y"


def test_unknown_runbook_lists_configured_names() -> None:
    cfg = AdminConfig.model_validate(
        {"runbooks": {"a": {"steps": [{"description": "x", "command": "true"}]}}}
    )
    with pytest.raises(ConfigError, match="configured: a"):
        cfg.runbook("b")


@pytest.mark.parametrize(
    "body",
    [
        '[runner]\nresume_trigger = "systemd"\n',
        "[runbooks.empty]\nsteps = []\n",
        '[runbooks.bad]\nsteps = [{ description = "x", command = "" }]\n',
        "not = [valid toml",
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, body: str) -> None:
    path = tmp_path / "kali_admin.toml"
    path.write_text(body)
    with pytest.raises(ConfigError):
        AdminConfig.load(path)


def test_negative_reboot_delay_rejected() -> None:
    with pytest.raises(ValueError):
        RunnerConfig(reboot_delay_sec=-1)


def test_relative_paths_follow_the_config_file(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "kali_admin.toml"
    path.write_text(
        '[runner]\nstate_dir = "state"\nlog_dir = "logs"\n\n[holds]\npackage_list = "holds.txt"\n'
    )
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()

    monkeypatch.chdir(tmp_path)
    first = AdminConfig.load(path)
    monkeypatch.chdir(elsewhere)
    second = AdminConfig.load(path)

    assert first.runner.resolved_state_dir() == second.runner.resolved_state_dir()
    assert second.runner.resolved_state_dir() == (tmp_path / "state").resolve()
    assert second.runner.resolved_log_dir() == str((tmp_path / "logs").resolve())
    assert Path(second.holds.package_list).resolve() == (tmp_path / "holds.txt").resolve()


def test_absolute_and_home_paths_are_kept(tmp_path: Path) -> None:
    path = tmp_path / "kali_admin.toml"
    path.write_text(f'[runner]\nstate_dir = "{tmp_path / "abs"}"\nlog_dir = "~/kali-logs"\n')
    cfg = AdminConfig.load(path)
    assert cfg.runner.state_dir == str(tmp_path / "abs")
    assert cfg.runner.log_dir == str(Path("~/kali-logs").expanduser())
