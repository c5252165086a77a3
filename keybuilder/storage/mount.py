"""Mount handling for the system partition and the ESP during installation.

A partition that is already mounted (for example by the desktop
automounter) is used where it is. Otherwise it is mounted on a fresh
temporary directory that is registered with the resource tracker, so the
exit cleanup unmounts and removes it.
"""

from __future__ import annotations

import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from keybuilder.app.context import ResourceTracker
from keybuilder.domain.models import PartitionPlan, SlotIndex
from keybuilder.logging import LoggerFactory
from keybuilder.storage.devices import run_command
from keybuilder.storage.exceptions import MountOperationError


log = LoggerFactory.for_storage()


@dataclass(frozen=True)
class TargetDirs:
    system: Path
    esp: Path


def find_mountpoint(node: str) -> Optional[Path]:
    """Return where a partition is mounted, or None."""
    try:
        result = run_command(
            ["findmnt", "-ln", "-o", "TARGET", node], check=False, log_output=False
        )
    except OSError as error:
        log.debug(f"findmnt unavailable: {error}")
        return None
    if result.returncode != 0 or not result.stdout.strip():
        return None
    return Path(result.stdout.splitlines()[0].strip())


def mount_partition(node: str, resources: ResourceTracker, name: str) -> Path:
    """Mount a partition on a new temporary directory.

    Raises:
        ValueError: If the node is not a /dev path
        MountOperationError: If mount fails
    """
    if not node.startswith("/dev/"):
        raise ValueError(f"Invalid partition path: {node}")

    target = Path(tempfile.mkdtemp(prefix=f"keybuilder-{name}-"))
    resources.register_mount_dir(target)
    try:
        run_command(["mount", node, str(target)])
    except subprocess.CalledProcessError as error:
        raise MountOperationError(node, str(target), (error.stderr or "").strip()) from error
    log.debug(f"Mounted {node} on {target}")
    return target


def setup_target_dirs(plan: PartitionPlan, resources: ResourceTracker) -> TargetDirs:
    """Resolve mountpoints of the system partition and the ESP."""
    targets = {}
    for index, name in ((SlotIndex.SYSTEM, "system"), (SlotIndex.ESP, "esp")):
        node = plan[index].node
        if not node:
            raise MountOperationError(plan[index].name, "-", "partition has no device node")
        targets[name] = find_mountpoint(node) or mount_partition(node, resources, name)
    return TargetDirs(system=targets["system"], esp=targets["esp"])
