from __future__ import annotations

from pathlib import Path

from kali_admin.adapters.apt import holds


def test_read_package_list_skips_blank_lines(tmp_path: Path) -> None:
    path = tmp_path / "pkg-hold-list.txt"
    path.write_text("linux-image-amd64\n\n  firefox-esr  \n\n")
    assert holds.read_package_list(path) == ["linux-image-amd64", "firefox-esr"]


def test_package_status_filters_dpkg_listing(shell) -> None:
    shell.outputs["dpkg -l"] = (
        "ii  firefox-esr  115.0  amd64  Mozilla Firefox\n"
        "ii  vim          9.0    amd64  Vi IMproved\n"
    )
    assert holds.package_status(shell, "firefox") == ["ii  firefox-esr  115.0  amd64  Mozilla Firefox"]
    assert holds.package_status(shell, "nmap") == []


def test_apply_calls_apt_mark(shell) -> None:
    holds.apply(shell, "vim", holds.HoldAction.HOLD)
    holds.apply(shell, "vim", holds.HoldAction.UNHOLD)
    assert shell.commands == ["apt-mark hold vim", "apt-mark unhold vim"]


def test_held_packages(shell) -> None:
    shell.outputs["apt-mark showhold"] = "vim\nfirefox-esr\n"
    assert holds.held_packages(shell) == {"vim", "firefox-esr"}
