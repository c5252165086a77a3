"""Filesystem creation on freshly written partitions.

Filesystems per slot:
    storage: exFAT, labelled after the device vendor/model or a default
    ESP:     FAT, labelled ``EFI``
    system:  ext4, labelled ``casper-rw`` (live persistence)

Free space never gets a filesystem.
"""

from typing import Optional

from keybuilder.domain.models import PartitionPlan, SlotIndex
from keybuilder.logging import LoggerFactory
from keybuilder.storage.devices import get_device_property, run_command
from keybuilder.storage.exceptions import FormatOperationError


log = LoggerFactory.for_storage()

# exFAT and FAT volume labels are limited to 11 characters
MAX_LABEL_LENGTH = 11
ESP_LABEL = "EFI"
SYSTEM_LABEL = "casper-rw"


def storage_label(device: str, label_use_property: str, default_label: str) -> str:
    """Pick the storage volume label according to the configured policy.

    Args:
        device: Whole device path (e.g. /dev/sdb)
        label_use_property: "vendor", "model" or anything else for the default
        default_label: Label used when the property is empty or not requested
    """
    label: Optional[str] = None
    if label_use_property in {"vendor", "model"}:
        label = get_device_property(device, label_use_property.upper())
    return (label or default_label)[:MAX_LABEL_LENGTH]


def _build_mkfs_command(index: int, node: str, label: str) -> Optional[list[str]]:
    if index == SlotIndex.STORAGE:
        return ["mkfs.exfat", "-L", label, node]
    if index == SlotIndex.ESP:
        return ["mkfs.fat", "-n", ESP_LABEL, node]
    if index == SlotIndex.SYSTEM:
        return ["mkfs.ext4", "-F", "-L", SYSTEM_LABEL, node]
    return None


def make_filesystems(
    device: str,
    plan: PartitionPlan,
    *,
    label_use_property: str = "vendor",
    default_label: str = "KEYBUILDER",
) -> None:
    """Create a filesystem on every partition node of the plan.

    Raises:
        FormatOperationError: If any mkfs invocation fails
    """
    label = storage_label(device, label_use_property, default_label)

    for index, slot in enumerate(plan.slots):
        if not slot.node:
            continue
        command = _build_mkfs_command(index, slot.node, label)
        if command is None:
            continue

        log.info(f"Creating {command[0].split('.', 1)[1]} filesystem on {slot.node}")
        try:
            result = run_command(command, check=False, log_command=False)
        except OSError as error:
            raise FormatOperationError(f"{command[0]} unavailable: {error}", slot.node) from error

        if result.returncode != 0:
            stderr_output = result.stderr.strip() if result.stderr else "no error message"
            log.error(f"Format command failed with code {result.returncode}")
            log.error(f"Command: {' '.join(command)}")
            log.error(f"Error output: {stderr_output}")
            raise FormatOperationError(
                f"Failed to create filesystem on {slot.node}: {stderr_output}", slot.node
            )
