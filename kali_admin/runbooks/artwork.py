from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from kali_admin.errors import StepError
from kali_admin.runner.steps import Step, StepContext, StepOutcome

logger = logging.getLogger(__name__)

NAME = "artwork"
SOURCE_KEY = "source_dir"
DEFAULT_SOURCE = "bg-artwork"

DESKTOP_IMAGE = "default.jpg"
LOGIN_IMAGE = "background.jpg"
REQUIRED_IMAGES = (DESKTOP_IMAGE, LOGIN_IMAGE)


@dataclass(frozen=True)
class ArtworkPaths:
    """Where Kali looks for desktop and login backgrounds."""

    backgrounds: Path = Path("/usr/share/backgrounds/kali")
    desktop_links: Path = Path("/usr/share/backgrounds/kali-16x9")
    login_links: Path = Path("/usr/share/desktop-base/active-theme/login")


def _source(ctx: StepContext) -> Path:
    return Path(ctx.data.get(SOURCE_KEY) or DEFAULT_SOURCE).expanduser().resolve()


def verify_images(ctx: StepContext) -> StepOutcome:
    source = _source(ctx)
    if not source.is_dir():
        raise StepError(
            f"folder '{source}' does not exist; create it and place "
            f"{' and '.join(REQUIRED_IMAGES)} in it"
        )
    for name in REQUIRED_IMAGES:
        if not (source / name).is_file():
            raise StepError(f"could not find '{name}' in '{source}'")
    # Stored absolute so a resumed run finds the same folder.
    ctx.remember(SOURCE_KEY, str(source))
    ctx.ui.status(f"Found {', '.join(REQUIRED_IMAGES)} in {source}.")
    return StepOutcome.DONE


def copy_images(ctx: StepContext, paths: ArtworkPaths) -> StepOutcome:
    source = _source(ctx)
    if not ctx.confirm(f"Copy {' and '.join(REQUIRED_IMAGES)} to {paths.backgrounds}?"):
        return StepOutcome.DECLINED
    if not paths.backgrounds.is_dir():
        raise StepError(f"directory '{paths.backgrounds}' does not exist")
    for name in REQUIRED_IMAGES:
        logger.info("Copying %s to %s", source / name, paths.backgrounds)
        shutil.copy2(source / name, paths.backgrounds / name)
    ctx.ui.status("Images copied successfully.")
    return StepOutcome.DONE


def relink(link: Path, target: Path) -> None:
    """Point `link` at `target`, replacing whatever was there."""
    if link.is_symlink() or link.exists():
        link.unlink()
    link.symlink_to(target)


def _link_step(ctx: StepContext, directory: Path, link_name: str, target: Path) -> StepOutcome:
    if not directory.is_dir():
        ctx.ui.warn(f"Directory '{directory}' does not exist. Skipping symlink creation.")
        return StepOutcome.DECLINED
    if not ctx.confirm(f"Point {directory / link_name} at {target}?"):
        return StepOutcome.DECLINED
    relink(directory / link_name, target)
    ctx.ui.status(f"Symbolic link to '{target.name}' updated in '{directory}'.")
    return StepOutcome.DONE


def link_desktop(ctx: StepContext, paths: ArtworkPaths) -> StepOutcome:
    return _link_step(ctx, paths.desktop_links, "default", paths.backgrounds / DESKTOP_IMAGE)


def link_login(ctx: StepContext, paths: ArtworkPaths) -> StepOutcome:
    return _link_step(ctx, paths.login_links, "background", paths.backgrounds / LOGIN_IMAGE)


def offer_reboot(ctx: StepContext) -> StepOutcome:
    if ctx.confirm("Would you like to reboot now so changes take effect?", auto=False):
        return StepOutcome.REBOOT
    ctx.ui.log("Reboot was not initiated.")
    return StepOutcome.DECLINED


def build_steps(paths: ArtworkPaths | None = None) -> list[Step]:
    paths = paths or ArtworkPaths()
    return [
        Step(f"Verify {' and '.join(REQUIRED_IMAGES)} are present", verify_images),
        Step(
            f"Copy images to {paths.backgrounds}",
            partial(copy_images, paths=paths),
            f"cp {' '.join(REQUIRED_IMAGES)} {paths.backgrounds}/",
        ),
        Step(
            "Update the 16:9 desktop background link",
            partial(link_desktop, paths=paths),
            f"ln -sf {paths.backgrounds / DESKTOP_IMAGE} {paths.desktop_links / 'default'}",
        ),
        Step(
            "Update the login screen background link",
            partial(link_login, paths=paths),
            f"ln -sf {paths.backgrounds / LOGIN_IMAGE} {paths.login_links / 'background'}",
        ),
        Step("Reboot (optional)", offer_reboot),
    ]
