"""Shared state of one wizard run and the resources it must release."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from keybuilder.domain.models import PlanConfig, WizardState
from keybuilder.logging import LoggerFactory
from keybuilder.storage.devices import run_command


log = LoggerFactory.for_system()


@dataclass
class ResourceTracker:
    """Temporary mount directories to release on exit."""

    mount_dirs: List[Path] = field(default_factory=list)

    def register_mount_dir(self, path: Path) -> None:
        self.mount_dirs.append(Path(path))

    def cleanup(self) -> None:
        """Unmount and remove every registered directory; failures are only logged."""
        for directory in self.mount_dirs:
            if os.path.ismount(directory):
                try:
                    run_command(["umount", str(directory)])
                except (subprocess.CalledProcessError, OSError):
                    log.warning(f"Failed to unmount {directory}.")
            try:
                directory.rmdir()
            except OSError as error:
                log.warning(f"Failed to remove {directory}: {error}")
        self.mount_dirs.clear()


@dataclass
class WizardContext:
    """Everything the step handlers share for one wizard run."""

    config: PlanConfig
    state: WizardState = field(default_factory=WizardState)
    resources: ResourceTracker = field(default_factory=ResourceTracker)
    backtitle: str = ""
    label_use_property: str = "vendor"
    default_label: str = "KEYBUILDER"
    boot_isos_dir: str = "iso"
    shared_dir: Optional[Path] = None

    def add_message(self, message: str) -> None:
        if message:
            self.state.user_message += message if message.endswith("\n") else f"{message}\n"

    def take_message(self) -> str:
        message, self.state.user_message = self.state.user_message, ""
        return message
