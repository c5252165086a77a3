"""Root privilege handling.

Partitioning and GRUB installation need root. When started as a regular
user the program replaces itself with ``sudo -E`` (keeping the
environment, so $LANG and the log/settings overrides survive) or, if sudo
is missing, with ``pkexec``.
"""

from __future__ import annotations

import os
import shutil
import sys
from typing import Optional, Sequence

from keybuilder.logging import LoggerFactory
from keybuilder.storage.exceptions import ConfigError


log = LoggerFactory.for_system()


def is_root() -> bool:
    return os.geteuid() == 0


def elevation_command(argv: Sequence[str]) -> Optional[list[str]]:
    """Command line that re-runs keybuilder as root, or None without a helper."""
    relaunch = [sys.executable, "-m", "keybuilder", *argv]
    sudo = shutil.which("sudo")
    if sudo:
        return [sudo, "-E", *relaunch]
    pkexec = shutil.which("pkexec")
    if pkexec:
        return [pkexec, *relaunch]
    return None


def require_root(argv: Sequence[str]) -> None:
    """Return when running as root, otherwise re-execute with elevated privileges.

    Raises:
        ConfigError: Neither sudo nor pkexec is available
    """
    if is_root():
        return

    command = elevation_command(argv)
    if command is None:
        raise ConfigError("Root privileges are required and neither sudo nor pkexec was found")

    log.info(f"Restarting with {os.path.basename(command[0])} for root privileges.")
    os.execvp(command[0], command)
