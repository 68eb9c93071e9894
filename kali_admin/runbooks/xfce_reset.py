from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path

from kali_admin.errors import StepError
from kali_admin.runner.steps import Step, StepContext, StepOutcome

logger = logging.getLogger(__name__)

NAME = "reset-xfce"
TARGET_USER_KEY = "target_user"

LIGHTDM_CONF = Path("/etc/lightdm/lightdm.conf")

PURGE_PACKAGES = (
    "kali-desktop-xfce",
    "xfce4",
    "xfce4-*",
    "lightdm",
    "lightdm-*",
    "gdm3",
    "sddm",
    "xserver-xorg",
    "xserver-xorg-*",
    "x11-common",
)
INSTALL_PACKAGES = ("kali-desktop-xfce", "xorg", "x11-xserver-utils", "lightdm")
LEFTOVER_DIRS = (
    "~/.config/xfce4",
    "~/.cache/xfce4",
    "~/.local/share/xfce4",
    "/etc/xdg/xfce4",
    "/usr/share/xfce4",
    "/var/lib/lightdm",
)
DISPLAY_MANAGERS = {"1": "gdm3", "2": "lightdm", "3": "sddm"}

# (setting, value) pairs enabling manual logins in the LightDM greeter.
LIGHTDM_LOGIN_SETTINGS = (
    ("greeter-show-manual-login", "true"),
    ("greeter-hide-users", "false"),
    ("allow-guest", "false"),
)


def home_of(user: str) -> Path:
    return Path("/root") if user == "root" else Path("/home") / user


def _target_user(ctx: StepContext) -> str | None:
    user = ctx.data.get(TARGET_USER_KEY, "")
    if not user:
        ctx.ui.warn("No target user recorded; skipping.")
        return None
    return user


def _user_exists(ctx: StepContext, name: str) -> bool:
    return ctx.shell.succeeds(["id", "--", name])


# --- Phase 1: remove and reinstall the desktop ------------------------------


def isolate_multi_user(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Switch to multi-user.target now? This will kill the GUI (XFCE4/X)."):
        ctx.ui.warn("Skipping isolation. (The GUI may respawn if not fully stopped.)")
        return StepOutcome.DECLINED
    ctx.shell.run(["systemctl", "isolate", "multi-user.target"])
    ctx.ui.status("System is now in multi-user mode.")
    return StepOutcome.DONE


def stop_lightdm(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Stop and disable LightDM now?"):
        return StepOutcome.DECLINED
    # The unit may already be gone; neither call is allowed to fail the step.
    ctx.shell.succeeds(["systemctl", "stop", "lightdm"])
    ctx.shell.succeeds(["systemctl", "disable", "lightdm"])
    ctx.ui.status("LightDM stopped and disabled.")
    return StepOutcome.DONE


def purge_desktop(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Purge XFCE4, LightDM, Xorg, and any other DMs (GDM3, SDDM, etc.)?"):
        return StepOutcome.DECLINED
    ctx.shell.run(["apt", "purge", "--autoremove", "-y", *PURGE_PACKAGES])
    return StepOutcome.DONE


def clean_leftovers(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Remove leftover XFCE/LightDM config (in /etc, /usr, and ~)?"):
        return StepOutcome.DECLINED
    for raw in LEFTOVER_DIRS:
        path = Path(os.path.expanduser(raw))
        logger.info("Removing %s", path)
        shutil.rmtree(path, ignore_errors=True)
    ctx.ui.status("Configuration files removed.")
    return StepOutcome.DONE


def apt_update(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Run apt update now?"):
        return StepOutcome.DECLINED
    ctx.shell.run(["apt", "update"])
    return StepOutcome.DONE


def reinstall_desktop(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Install " + ", ".join(INSTALL_PACKAGES) + "?"):
        return StepOutcome.DECLINED
    ctx.shell.run(["apt", "install", "-y", *INSTALL_PACKAGES])
    return StepOutcome.DONE


def reconfigure_lightdm(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Run dpkg-reconfigure lightdm?"):
        return StepOutcome.DECLINED
    ctx.shell.run(["dpkg-reconfigure", "lightdm"])
    return StepOutcome.DONE


def enable_manual_login(text: str) -> str:
    """Uncomment and set the LightDM greeter keys that allow typed logins."""
    for key, value in LIGHTDM_LOGIN_SETTINGS:
        text = re.sub(
            rf"^#*[ \t]*{re.escape(key)}=.*$",
            f"{key}={value}",
            text,
            flags=re.MULTILINE,
        )
    return text


def allow_root_login(ctx: StepContext) -> StepOutcome:
    ctx.ui.log("By default, Kali may block root logins via LightDM.")
    ctx.ui.log("If you plan to log in with a regular user, you can skip this step.")
    if not ctx.confirm("Configure LightDM to allow root GUI login?", auto=False):
        return StepOutcome.DECLINED
    if not LIGHTDM_CONF.is_file():
        ctx.ui.warn(f"{LIGHTDM_CONF} not found. You may need to configure it manually.")
        return StepOutcome.DONE
    LIGHTDM_CONF.write_text(enable_manual_login(LIGHTDM_CONF.read_text()))
    ctx.ui.status("LightDM config updated to allow manual logins.")
    ctx.ui.log("If root is still refused, check /etc/pam.d/lightdm.")
    return StepOutcome.DONE


def reboot(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Reboot now to apply all changes?"):
        ctx.ui.warn("Skipping reboot. You can reboot manually.")
        return StepOutcome.DECLINED
    ctx.ui.status("All desktop reset steps completed.")
    return StepOutcome.REBOOT


# --- Phase 2: login loop troubleshooting -----------------------------------


def capture_target_user(ctx: StepContext) -> StepOutcome:
    if ctx.data.get(TARGET_USER_KEY):
        ctx.ui.log(f"Target username already set to: {ctx.data[TARGET_USER_KEY]}")
        return StepOutcome.DONE
    if ctx.automated:
        raise StepError("no target user recorded; pass --user to choose the account to repair")
    if not ctx.confirm("Do you want to proceed with login loop fixes?"):
        return StepOutcome.DECLINED
    user = ctx.ask_valid(
        "Enter the username to fix (or 'root' if that's the case):",
        lambda name: _user_exists(ctx, name),
        "User '{value}' does not exist. Please try again.",
    )
    ctx.remember(TARGET_USER_KEY, user)
    ctx.ui.status(f"Target username set to: {user}")
    return StepOutcome.DONE


def check_disk_space(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Check your disk space usage now?"):
        return StepOutcome.DECLINED
    ctx.shell.run(["df", "-h"])
    ctx.ui.log("If any partition is at 100%, free space before continuing!")
    return StepOutcome.DONE


def fix_xauthority(ctx: StepContext) -> StepOutcome:
    user = _target_user(ctx)
    if user is None or not ctx.confirm(f"Fix ~/.Xauthority for user '{user}'?"):
        return StepOutcome.DECLINED
    xauth = home_of(user) / ".Xauthority"
    if not xauth.is_file():
        ctx.ui.warn(f"{xauth} not found.")
        return StepOutcome.DONE
    try:
        shutil.chown(xauth, user=user, group=user)
        xauth.chmod(0o600)
    except (OSError, LookupError) as exc:
        # Ownership repair is best-effort; the remaining steps still apply.
        ctx.ui.warn(f"Could not fully fix {xauth}: {exc}")
        return StepOutcome.DONE
    ctx.ui.status("Fixed ~/.Xauthority ownership and permissions.")
    return StepOutcome.DONE


def reset_home_permissions(ctx: StepContext) -> StepOutcome:
    user = _target_user(ctx)
    if user is None:
        return StepOutcome.DECLINED
    home = home_of(user)
    if not ctx.confirm(f"Reset {home} to 755 and correct ownership?"):
        return StepOutcome.DECLINED
    ctx.shell.run(["chown", "-R", f"{user}:{user}", str(home)])
    ctx.shell.run(["chmod", "-R", "755", str(home)])
    ctx.ui.status(f"Reset permissions for {home}.")
    return StepOutcome.DONE


def grep_journal(ctx: StepContext, pattern: str) -> list[str]:
    journal = ctx.shell.output(["journalctl", "-xe", "--no-pager"])
    needle = pattern.lower()
    return [line for line in journal.splitlines() if needle in line.lower()]


def show_xorg_errors(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Show Xorg-related logs?"):
        return StepOutcome.DECLINED
    lines = grep_journal(ctx, "xorg")
    ctx.ui.log("===== journalctl -xe | grep -i xorg =====")
    ctx.ui.log("\n".join(lines) if lines else "No Xorg errors found in journal.")
    user = ctx.data.get(TARGET_USER_KEY, "")
    if user:
        errors = home_of(user) / ".xsession-errors"
        if errors.is_file():
            ctx.ui.log(f"===== {errors} =====")
            ctx.ui.log(errors.read_text(errors="replace"))
        else:
            ctx.ui.log(f"No ~/.xsession-errors file found for {user}.")
    return StepOutcome.DONE


def show_display_manager_logs(ctx: StepContext) -> StepOutcome:
    if not ctx.confirm("Show logs for LightDM, GDM, or SDDM?"):
        return StepOutcome.DECLINED
    for label, pattern in (("LightDM", "lightdm"), ("GDM", "gdm"), ("SDDM", "sddm")):
        ctx.ui.log(f"===== Checking {label} logs =====")
        lines = grep_journal(ctx, pattern)
        ctx.ui.log("\n".join(lines) if lines else f"No {label} logs found.")
    return StepOutcome.DONE


def reinstall_display_manager(ctx: StepContext) -> StepOutcome:
    ctx.ui.log("Current DM is LightDM (likely), but you can install others.")
    if not ctx.confirm("Would you like to reinstall or switch display manager?", auto=False):
        return StepOutcome.DECLINED
    ctx.ui.log("1) gdm3 (GNOME)\n2) lightdm (LightDM)\n3) sddm (KDE Plasma)\n4) Skip")
    choice = ctx.ask_valid(
        "Enter choice [1-4]:",
        lambda value: value in DISPLAY_MANAGERS or value == "4",
        "Invalid choice '{value}'.",
    )
    if choice == "4":
        return StepOutcome.DECLINED
    dm = DISPLAY_MANAGERS[choice]
    ctx.ui.log(f"Reinstalling {dm}...")
    ctx.run_all(
        ["apt", "update"],
        ["apt", "install", "--reinstall", "-y", dm],
        ["dpkg-reconfigure", dm],
    )
    return StepOutcome.DONE


def create_rescue_user(ctx: StepContext) -> StepOutcome:
    ctx.ui.log("If the login loop persists, you can test with a fresh user.")
    if not ctx.confirm("Do you want to create a new user now? (last resort)", auto=False):
        return StepOutcome.DECLINED
    while True:
        name = ctx.ui.ask("Enter the new username (or leave empty to skip):")
        if not name:
            return StepOutcome.DECLINED
        if not _user_exists(ctx, name):
            break
        ctx.ui.warn(f"User '{name}' already exists. Try another username or press Enter to skip.")
    ctx.shell.run(["adduser", name])
    ctx.shell.run(["usermod", "-aG", "sudo", name])
    ctx.ui.status(f"User '{name}' created and added to sudo group.")
    return StepOutcome.DONE


def build_steps() -> list[Step]:
    return [
        Step("Move to multi-user.target (non-graphical mode)", isolate_multi_user,
             "systemctl isolate multi-user.target"),
        Step("Stop and disable LightDM service", stop_lightdm,
             "systemctl stop lightdm && systemctl disable lightdm"),
        Step("Completely remove XFCE4, LightDM, Xorg", purge_desktop,
             "apt purge --autoremove -y " + " ".join(PURGE_PACKAGES)),
        Step("Clean up leftover config files", clean_leftovers, "rm -rf " + " ".join(LEFTOVER_DIRS)),
        Step("Update package lists", apt_update, "apt update"),
        Step("Reinstall XFCE4, LightDM, and Xorg", reinstall_desktop,
             "apt install -y " + " ".join(INSTALL_PACKAGES)),
        Step("Configure LightDM as default display manager", reconfigure_lightdm,
             "dpkg-reconfigure lightdm"),
        Step("(Optional) Allow root login in LightDM", allow_root_login, f"edit {LIGHTDM_CONF}"),
        Step("Reboot the system (recommended)", reboot),
        Step("Identify the username experiencing the login loop", capture_target_user),
        Step("Check disk space usage", check_disk_space, "df -h"),
        Step("Fix ownership/permissions of ~/.Xauthority", fix_xauthority),
        Step("Reset user home directory permissions", reset_home_permissions),
        Step("Check for Xorg errors in system logs", show_xorg_errors),
        Step("Check display manager logs", show_display_manager_logs),
        Step("(Optional) Reinstall/verify display manager", reinstall_display_manager),
        Step("(Optional) Create a new user if all else fails", create_rescue_user),
    ]
