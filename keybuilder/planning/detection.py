"""Detect whether an already partitioned device can be reused.

A device is reusable when it has an EFI System Partition with a FAT
filesystem and a partition carrying the configured system label, both at
least as large as their configured minimums. Every problem found is
reported as its own flag.
"""

from __future__ import annotations

from typing import Iterable, Optional

from keybuilder.domain.models import (
    CompatibilityFlags,
    DeviceGeometry,
    PartitionInfo,
    PartitionPlan,
    PlanConfig,
    SlotIndex,
)
from keybuilder.logging import LoggerFactory
from keybuilder.storage import devices
from keybuilder.storage.partition_table import EFI_SYSTEM_PARTITION_GUID


log = LoggerFactory.for_detection()

FAT_FSTYPE = "vfat"


def _claim(plan: PartitionPlan, index: SlotIndex, partition: PartitionInfo) -> None:
    slot = plan[index]
    slot.enabled = True
    slot.node = partition.node
    slot.size_mib = partition.size_mib


def detect_layout(
    device: str,
    geometry: DeviceGeometry,
    config: PlanConfig,
    partitions: Optional[Iterable[PartitionInfo]] = None,
) -> tuple[PartitionPlan, CompatibilityFlags]:
    """Reconstruct a plan from the partitions already present on a device.

    Args:
        device: Device path (e.g. /dev/sdb)
        geometry: Geometry of the device
        config: Configured slot names and minimum sizes
        partitions: Pre-fetched partition list (queried from lsblk when omitted)

    Returns:
        Tuple of (plan with the qualifying ESP/system slots enabled, flags)
    """
    plan = PartitionPlan.from_config(geometry, config)
    flags = CompatibilityFlags()
    if partitions is None:
        partitions = devices.list_partitions(device)

    system_name = plan[SlotIndex.SYSTEM].name
    for partition in partitions:
        if partition.part_type == EFI_SYSTEM_PARTITION_GUID:
            if partition.fstype != FAT_FSTYPE:
                flags.esp_wrong_filesystem = True
                log.warning(f"{partition.name} (EFI partition) doesn't have FAT filesystem!")
                continue
            if partition.size_mib < plan[SlotIndex.ESP].min_size_mib:
                flags.esp_too_small = True
                log.warning(f"{partition.name} (EFI partition) is too small!")
                continue
            _claim(plan, SlotIndex.ESP, partition)

        if partition.label == system_name:
            if partition.size_mib < plan[SlotIndex.SYSTEM].min_size_mib:
                flags.system_too_small = True
                log.warning(f"{partition.name} is too small for main partition!")
                continue
            _claim(plan, SlotIndex.SYSTEM, partition)

    flags.esp_missing = not plan[SlotIndex.ESP].enabled
    flags.system_missing = not plan[SlotIndex.SYSTEM].enabled

    if flags.is_compatible:
        log.info(
            f"{device} already has a usable layout: ESP {plan[SlotIndex.ESP].node}, "
            f"system {plan[SlotIndex.SYSTEM].node}"
        )
    else:
        log.debug(f"{device} layout not reusable: {', '.join(flags.describe())}")
    return plan, flags
