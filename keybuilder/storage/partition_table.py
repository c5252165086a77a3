"""GPT partition table assembly and writing via sfdisk.

The accepted plan is rendered as an sfdisk script: a header with explicit
sector geometry followed by one line per partition, laid out back to back
from the first usable LBA. Free space is never emitted; it simply remains
unallocated at the end of the device.
"""

from __future__ import annotations

from keybuilder.domain.models import MiB, PartitionPlan, SlotIndex
from keybuilder.logging import LoggerFactory
from keybuilder.storage.devices import run_command
from keybuilder.storage.exceptions import TableWriteError


log = LoggerFactory.for_storage()

MICROSOFT_BASIC_DATA_GUID = "ebd0a0a2-b9e5-4433-87c0-68b6b72699c7"
EFI_SYSTEM_PARTITION_GUID = "c12a7328-f81f-11d2-ba4b-00a0c93ec93b"
LINUX_FILESYSTEM_GUID = "0fc63daf-8483-4772-8e79-3d69d8477de4"

SLOT_TYPE_GUIDS = {
    SlotIndex.STORAGE: MICROSOFT_BASIC_DATA_GUID,
    SlotIndex.ESP: EFI_SYSTEM_PARTITION_GUID,
    SlotIndex.SYSTEM: LINUX_FILESYSTEM_GUID,
}

# Sectors kept free at the end of the disk for the backup GPT header and entries
BACKUP_GPT_SECTORS = 34


def first_usable_lba(sector_size: int) -> int:
    return MiB // sector_size


def last_usable_lba(total_sectors: int) -> int:
    return total_sectors - BACKUP_GPT_SECTORS


def assemble_sfdisk_input(device: str, plan: PartitionPlan) -> str:
    """Build the sfdisk script describing the plan's partition table.

    Args:
        device: Target block device (e.g. /dev/sdb)
        plan: Accepted partition plan

    Returns:
        sfdisk input text
    """
    geometry = plan.geometry
    sector_size = geometry.sector_size
    start = first_usable_lba(sector_size)

    lines = [
        "label: gpt",
        f"device: {device}",
        "unit: sectors",
        f"sector-size: {sector_size}",
        f"first-lba: {start}",
        f"last-lba: {last_usable_lba(geometry.total_sectors)}",
        "",
    ]

    for index, slot in enumerate(plan.slots):
        if not slot.enabled or index not in SLOT_TYPE_GUIDS:
            continue
        size = slot.size_mib * MiB // sector_size
        lines.append(
            f'start={start},size={size},type={SLOT_TYPE_GUIDS[index]},name="{slot.name}"'
        )
        start += size

    return "\n".join(lines) + "\n"


def write_partition_table(device: str, script: str, *, dry_run: bool = False) -> str:
    """Apply an sfdisk script to a device.

    Args:
        device: Target block device
        script: Output of assemble_sfdisk_input()
        dry_run: Pass --no-act so sfdisk only reports what it would do

    Returns:
        Combined sfdisk output (useful for showing a dry run to the user)

    Raises:
        TableWriteError: If sfdisk exits with a non-zero status
    """
    command = ["sfdisk", "--wipe", "always", "--wipe-partitions", "always", device]
    if dry_run:
        command.append("--no-act")
        log.debug(f"Executing (noact) -> {' '.join(command)}")
    else:
        log.info(f"Executing -> {' '.join(command)}")

    try:
        result = run_command(command, check=False, input=script, log_command=False)
    except OSError as error:
        raise TableWriteError(device, str(error)) from error

    if result.returncode != 0:
        stderr_msg = result.stderr.strip() if result.stderr else "no error message"
        log.error(f"sfdisk failed: stderr='{stderr_msg}' rc={result.returncode}")
        raise TableWriteError(device, stderr_msg)

    if not dry_run:
        for settle in (["partprobe", device], ["udevadm", "settle", "--timeout=10"]):
            try:
                run_command(settle, check=False, log_command=False)
            except OSError:
                log.debug(f"{settle[0]} not available")

    return "\n".join(part for part in (result.stdout, result.stderr) if part)
