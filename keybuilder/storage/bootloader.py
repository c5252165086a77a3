"""GRUB installation for legacy BIOS and UEFI (x86_64 and i386).

GRUB's boot directory lives on the system partition; the EFI images go to
the ESP in the removable-media location so no NVRAM entry is needed.
Configuration files, theme and fonts are copied from the shared resources
directory and the GRUB environment block is pre-seeded.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from keybuilder.domain.models import PartitionPlan, SlotIndex
from keybuilder.logging import LoggerFactory
from keybuilder.storage.devices import get_device_property, run_command
from keybuilder.storage.exceptions import BootloaderError
from keybuilder.storage.mount import TargetDirs


log = LoggerFactory.for_bootloader()

GRUB_ENVIRONMENT = (
    ("pager", "1"),
    ("locale_dir", "/grub/locale"),
    ("gfxmode", "auto"),
    ("gfxterm_font", "unicode"),
    ("color_normal", "green/black"),
    ("color_highlight", "black/light-green"),
    ("timeout_style", "menu"),
    ("timeout", "10"),
    ("default", "0"),
)


def _run(command: list[str]) -> None:
    try:
        run_command(command)
    except (subprocess.CalledProcessError, OSError) as error:
        raise BootloaderError(f"{command[0]} failed: {error}", command) from error


def grub_install_commands(device: str, targets: TargetDirs, locale_dir: Path) -> list[list[str]]:
    common = [f"--locale-directory={locale_dir}", f"--boot-directory={targets.system}"]
    efi = ["--removable", f"--efi-directory={targets.esp}", "--no-nvram"]
    return [
        ["grub-install", "--target=i386-pc", "--force", *common, device],
        ["grub-install", "--target=x86_64-efi", *common, *efi],
        ["grub-install", "--target=i386-efi", *common, *efi],
    ]


def _install_files(sources, destination: Path) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    for source in sources:
        target = destination / Path(source).name
        shutil.copyfile(source, target)
        os.chmod(target, 0o644)


def copy_grub_resources(grub_dir: Path, boot_dir: Path) -> None:
    """Copy *.cfg, the theme background and *.pf2 fonts into <boot>/grub."""
    _install_files(sorted(grub_dir.glob("*.cfg")), boot_dir / "grub")
    background = grub_dir / "themes" / "background.png"
    if background.exists():
        _install_files([background], boot_dir / "grub" / "themes")
    _install_files(sorted((grub_dir / "fonts").glob("*.pf2")), boot_dir / "grub" / "fonts")


def grub_environment(iso_dir: str, sys_uuid: str, lang: str) -> list[tuple[str, str]]:
    pager, locale_dir, *display = GRUB_ENVIRONMENT
    return [
        pager,
        ("sys_uuid", sys_uuid),
        ("iso_dir", f"/{iso_dir.strip('/')}"),
        locale_dir,
        ("lang", lang),
        *display,
    ]


def install_bootloader(
    device: str,
    plan: PartitionPlan,
    targets: TargetDirs,
    shared_dir: Path,
    iso_dir: str,
    lang: Optional[str] = None,
) -> None:
    """Install GRUB on the target device.

    Args:
        device: Whole device path (e.g. /dev/sdb)
        plan: Plan with the system partition node recorded
        targets: Mountpoints of the system partition and the ESP
        shared_dir: Directory holding the grub/ resources
        iso_dir: Directory for ISO files, relative to the system partition root
        lang: Two-letter language code (defaults to $LANG)

    Raises:
        BootloaderError: If any GRUB tool or file copy fails
    """
    grub_dir = shared_dir / "grub"
    grub_env = targets.system / "grub" / "grubenv"

    log.info("Commencing GRUB installation.")
    for command in grub_install_commands(device, targets, grub_dir / "locale"):
        _run(command)

    try:
        (targets.system / iso_dir.strip("/")).mkdir(parents=True, exist_ok=True)
        copy_grub_resources(grub_dir, targets.system)
    except OSError as error:
        raise BootloaderError(f"Failed to copy GRUB resources: {error}") from error

    log.debug("Setting up GRUB environment.")
    sys_uuid = get_device_property(plan[SlotIndex.SYSTEM].node, "UUID") or ""
    lang = (lang or os.environ.get("LANG", "en"))[:2]
    for key, value in grub_environment(iso_dir, sys_uuid, lang):
        _run(["grub-editenv", str(grub_env), "set", f"{key}={value}"])
