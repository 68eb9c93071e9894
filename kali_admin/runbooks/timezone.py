from __future__ import annotations

from dataclasses import dataclass

from kali_admin.errors import StepError
from kali_admin.runner.steps import Step, StepContext, StepOutcome

NAME = "timezone"
TIMEZONE_KEY = "timezone"
NTP_KEY = "ntp"


@dataclass(frozen=True)
class NtpProvider:
    key: str
    label: str
    package: str
    service: str
    summary: str


NTP_PROVIDERS = {
    "A": NtpProvider("A", "systemd-timesyncd", "systemd", "systemd-timesyncd",
                     "Built-in and simple to set up; fewer advanced options."),
    "B": NtpProvider("B", "Classic NTP", "ntp", "ntp",
                     "Mature and highly configurable; heavier, older approach."),
    "C": NtpProvider("C", "Chrony", "chrony", "chrony",
                     "Robust and lightweight; handles network changes well."),
}


def list_timezones(ctx: StepContext) -> set[str]:
    out = ctx.shell.output(["timedatectl", "list-timezones"])
    return {line.strip() for line in out.splitlines() if line.strip()}


def current_timezone(ctx: StepContext) -> str:
    return ctx.shell.output(["timedatectl", "show", "--property=Timezone", "--value"]).strip()


def apply_timezone(ctx: StepContext, tz: str) -> None:
    ctx.shell.run(["timedatectl", "set-timezone", tz])
    # GNOME keeps its own copy of the zone for the clock applet.
    ctx.shell.succeeds(["gsettings", "set", "org.gnome.desktop.datetime", "timezone", tz])
    ctx.ui.status(f"System timezone set to: {tz}")


def set_timezone(ctx: StepContext) -> StepOutcome:
    requested = ctx.data.get(TIMEZONE_KEY, "")
    if requested:
        if requested not in list_timezones(ctx):
            raise StepError(f"'{requested}' is not a valid timezone")
        apply_timezone(ctx, requested)
        return StepOutcome.DONE
    if ctx.automated:
        ctx.ui.log("No timezone given; keeping the current one.")
        return StepOutcome.DECLINED

    ctx.ui.log(f"Current system timezone is: {current_timezone(ctx)}")
    if ctx.confirm("Is this timezone correct?"):
        return StepOutcome.DECLINED

    zones = list_timezones(ctx)
    tz = ctx.ask_valid(
        "Enter the desired timezone (e.g. Europe/London):",
        lambda value: value in zones,
        "'{value}' is not a timezone known to timedatectl.",
    )
    ctx.remember(TIMEZONE_KEY, tz)
    apply_timezone(ctx, tz)
    return StepOutcome.DONE


def install_ntp(ctx: StepContext, provider: NtpProvider) -> None:
    # Stop any existing sync first so two daemons never fight over the clock.
    ctx.shell.succeeds(["timedatectl", "set-ntp", "false"])
    ctx.run_all(
        ["apt-get", "update"],
        ["apt-get", "install", "-y", provider.package],
        ["systemctl", "enable", provider.service],
        ["systemctl", "start", provider.service],
        ["timedatectl", "set-ntp", "true"],
    )
    ctx.shell.succeeds(
        ["gsettings", "set", "org.gnome.desktop.datetime", "automatic-clock-synchronization", "true"]
    )
    ctx.ui.status(f"{provider.label} is now enabled.")


def setup_ntp(ctx: StepContext) -> StepOutcome:
    choice = ctx.data.get(NTP_KEY, "").upper()
    if not choice:
        if ctx.automated:
            ctx.ui.log("No NTP provider given; leaving time sync unchanged.")
            return StepOutcome.DECLINED
        if not ctx.confirm("Install and enable NTP for automatic time sync?"):
            return StepOutcome.DECLINED
        for provider in NTP_PROVIDERS.values():
            ctx.ui.log(f"  {provider.key}) {provider.label}: {provider.summary}")
        ctx.ui.log("  Q) Quit (no changes to NTP)")
        choice = ctx.ask_valid(
            "Enter your choice (A/B/C/Q):",
            lambda value: value.upper() in NTP_PROVIDERS or value.upper() == "Q",
            "Invalid choice '{value}'.",
        ).upper()
        if choice == "Q":
            return StepOutcome.DECLINED
        ctx.remember(NTP_KEY, choice)

    provider = NTP_PROVIDERS.get(choice)
    if provider is None:
        raise StepError(f"invalid NTP choice '{choice}'; accepted values are A, B or C")
    install_ntp(ctx, provider)
    return StepOutcome.DONE


def offer_reboot(ctx: StepContext) -> StepOutcome:
    if ctx.confirm("Would you like to reboot the system now?", auto=False):
        return StepOutcome.REBOOT
    ctx.ui.log("Reboot skipped. Please reboot manually if necessary.")
    return StepOutcome.DECLINED


def build_steps() -> list[Step]:
    return [
        Step("Confirm or update the system timezone", set_timezone, "timedatectl set-timezone"),
        Step("Install and enable an NTP service", setup_ntp),
        Step("Reboot (optional)", offer_reboot),
    ]
