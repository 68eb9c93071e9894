from __future__ import annotations

import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Optional

import typer

from kali_admin.adapters.apt import holds as apt_holds
from kali_admin.adapters.system.commands import CommandRunner, Shell
from kali_admin.common.logging_config import configure_logging
from kali_admin.errors import ConfigError, StepError
from kali_admin.runbooks import artwork, kali_update, timezone, xfce_reset
from kali_admin.runner.config import AdminConfig
from kali_admin.runner.runner import RunResult, StepRunner
from kali_admin.runner.state import FileStateStore, tracker_path
from kali_admin.runner.steps import RunMode, Step
from kali_admin.runner.trigger import CrontabResumeTrigger, NullResumeTrigger, ResumeTrigger
from kali_admin.runner.ui import Ui

logger = logging.getLogger(__name__)

AUTO_FLAG = "--yall"

app = typer.Typer(add_completion=False, help="Resumable administration runbooks for Kali Linux.")

ConfigOption = typer.Option("kali_admin.toml", "--config", help="Path to kali_admin.toml (optional).")
AutoOption = typer.Option(
    False,
    AUTO_FLAG,
    "-y",
    help="Run every step without prompting and resume automatically after a reboot.",
)
VerboseOption = typer.Option(False, "--verbose", "-v", help="Debug logging.")


def _program_path() -> Path:
    return Path(sys.argv[0]).resolve()


def _program_command() -> str:
    """Absolute command line that re-invokes this program from cron."""
    program = _program_path()
    if program.suffix == ".py":
        return f"{shlex.quote(sys.executable)} -m kali_admin"
    return shlex.quote(str(program))


def _load_config(config: str, verbose: bool) -> AdminConfig:
    try:
        cfg = AdminConfig.load_optional(Path(config).expanduser())
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    configure_logging(logging.DEBUG if verbose else logging.INFO, log_dir=cfg.runner.resolved_log_dir())
    return cfg


def _require_root() -> None:
    if os.geteuid() != 0:
        typer.echo("Please run this command as root (use: sudo kali-admin ...).", err=True)
        raise typer.Exit(code=1)


def _build_trigger(cfg: AdminConfig, invocation: str, config_path: Path) -> ResumeTrigger:
    if cfg.runner.resume_trigger == "none":
        return NullResumeTrigger()
    command = f"{_program_command()} {invocation} {AUTO_FLAG}"
    if config_path.is_file():
        command += f" --config {shlex.quote(str(config_path.resolve()))}"
    return CrontabResumeTrigger(
        command=command,
        delay_sec=cfg.runner.reboot_delay_sec,
    )


def _build_runner(cfg: AdminConfig, invocation: str, config_path: Path, shell: CommandRunner) -> StepRunner:
    runbook = invocation.replace(" ", "-")
    store = FileStateStore(tracker_path(_program_path(), runbook, cfg.runner.resolved_state_dir()))
    reboot_command = list(cfg.runner.reboot_command)
    return StepRunner(
        store=store,
        ui=Ui.default(),
        trigger=_build_trigger(cfg, invocation, config_path),
        shell=shell,
        rebooter=lambda: shell.run(reboot_command),
    )


def _execute(
    cfg: AdminConfig,
    config: str,
    invocation: str,
    steps: list[Step],
    auto: bool,
    seed: dict[str, str] | None = None,
) -> RunResult:
    runner = _build_runner(cfg, invocation, Path(config).expanduser(), Shell())
    state = runner.load_state(len(steps))
    for key, value in (seed or {}).items():
        if value:
            state.data[key] = value
    mode = RunMode.AUTOMATED if auto else RunMode.INTERACTIVE
    logger.info(
        "Starting %s at step %d/%d (%s)", invocation, min(state.current_step + 1, len(steps)), len(steps), mode.value
    )
    result = runner.run(steps, state, mode)
    if not result.ok:
        raise typer.Exit(code=1)
    return result


@app.command()
def update(
    auto: bool = AutoOption,
    config: str = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Update, upgrade, clean and repair installed packages."""
    cfg = _load_config(config, verbose)
    _require_root()
    _execute(cfg, config, kali_update.NAME, kali_update.build_steps(), auto)


@app.command("reset-xfce")
def reset_xfce(
    user: Optional[str] = typer.Option(None, help="Account with the login loop (phase 2 steps)."),
    auto: bool = AutoOption,
    config: str = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove and reinstall XFCE, LightDM and Xorg, then fix login loops."""
    cfg = _load_config(config, verbose)
    _require_root()
    if user and not Shell().succeeds(["id", "--", user]):
        typer.echo(f"User '{user}' does not exist.", err=True)
        raise typer.Exit(code=1)
    seed = {xfce_reset.TARGET_USER_KEY: user or ""}
    _execute(cfg, config, xfce_reset.NAME, xfce_reset.build_steps(), auto, seed)


@app.command("timezone")
def timezone_cmd(
    tz: Optional[str] = typer.Option(None, "--tz", help="Timezone to set, e.g. Asia/Dubai."),
    ntp: Optional[str] = typer.Option(None, "--ntp", help="A=systemd-timesyncd, B=ntp, C=chrony."),
    auto: bool = AutoOption,
    config: str = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Set the timezone and enable network time sync."""
    cfg = _load_config(config, verbose)
    _require_root()
    if ntp and ntp.upper() not in timezone.NTP_PROVIDERS:
        typer.echo(f"Invalid --ntp value: {ntp}. Accepted values are A, B, or C.", err=True)
        raise typer.Exit(code=1)
    seed = {timezone.TIMEZONE_KEY: tz or "", timezone.NTP_KEY: (ntp or "").upper()}
    _execute(cfg, config, timezone.NAME, timezone.build_steps(), auto, seed)


@app.command("artwork")
def artwork_cmd(
    source: Optional[str] = typer.Option(
        None, "--source", help="Folder holding default.jpg and background.jpg (default: ./bg-artwork)."
    ),
    auto: bool = AutoOption,
    config: str = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Install custom desktop and login background images."""
    cfg = _load_config(config, verbose)
    _require_root()
    seed = {artwork.SOURCE_KEY: str(Path(source).expanduser().resolve()) if source else ""}
    _execute(cfg, config, artwork.NAME, artwork.build_steps(), auto, seed)


@app.command()
def run(
    name: str = typer.Argument(..., help="Runbook name from the [runbooks] table of the config."),
    auto: bool = AutoOption,
    config: str = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Run a command runbook defined in the config file."""
    cfg = _load_config(config, verbose)
    try:
        book = cfg.runbook(name)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _execute(cfg, config, f"run {shlex.quote(name)}", book.build_steps(), auto)


@app.command()
def holds(
    package_list: Optional[str] = typer.Option(None, "--list", help="File with one package per line."),
    action: Optional[apt_holds.HoldAction] = typer.Option(
        None, help="Apply this to every listed package without asking."
    ),
    config: str = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Hold or unhold the packages named in a list file."""
    cfg = _load_config(config, verbose)
    path = Path(package_list or cfg.holds.package_list).expanduser()
    if not path.is_file():
        typer.echo(f"Error: File '{path}' not found!", err=True)
        raise typer.Exit(code=1)

    ui = Ui.default()
    shell = Shell()
    packages = apt_holds.read_package_list(path)

    try:
        ui.log("=== Checking package presence and versions ===")
        held = apt_holds.held_packages(shell)
        for package in packages:
            ui.log(f"Package: {package}" + (" (held)" if package in held else ""))
            lines = apt_holds.package_status(shell, package)
            ui.log("\n".join(lines) if lines else f"  - {package} not installed or not found in dpkg -l")

        if action is None:
            mode = ui.ask("Manage all packages at once or one by one? Type 'all' or 'one':").lower()
            if mode == "all":
                answer = ui.ask("Would you like to 'hold' or 'unhold' all packages?").lower()
                action = apt_holds.HoldAction(answer) if answer in ("hold", "unhold") else None
                if action is None:
                    ui.warn("Invalid choice. No packages changed.")
                    return
            elif mode != "one":
                ui.error("Invalid option. Exiting.")
                raise typer.Exit(code=1)

        for package in packages:
            chosen = action
            if chosen is None:
                answer = ui.ask(f"Hold or unhold {package}? (hold/unhold/skip):").lower()
                if answer not in ("hold", "unhold"):
                    ui.log(f"Skipping {package}.")
                    continue
                chosen = apt_holds.HoldAction(answer)
            ui.log(f"{chosen.value.capitalize()}ing package: {package}")
            apt_holds.apply(shell, package, chosen)
    except StepError as exc:
        ui.error(str(exc))
        raise typer.Exit(code=1) from exc

    ui.status("Done!")


if __name__ == "__main__":
    app()
