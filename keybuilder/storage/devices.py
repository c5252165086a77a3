"""USB device detection and geometry queries using lsblk and blockdev.

Device Detection:
    Uses lsblk with JSON output to enumerate block devices. A device is
    offered to the user only when it is:

    1. A whole disk (type=disk)
    2. Attached over USB (tran=usb)
    3. Marked as removable (rm=1)
    4. Writable (ro=0)

Operations:
    - find_removable_devices(): Map of device path -> "Vendor Model" label
    - get_geometry(): Total size and logical sector size of a device
    - list_partitions(): Partitions with GPT type, GPT label, fstype and size
    - get_device_property(): Single lsblk column (VENDOR, MODEL, UUID...)
    - unmount_partitions(): Unmount every mounted node of a device

Example:
    >>> from keybuilder.storage.devices import find_removable_devices
    >>> find_removable_devices()
    {'/dev/sdb': 'SanDisk Ultra'}
"""
import json
import os
import re
import subprocess
from typing import Any, Optional

from keybuilder.domain.models import DeviceGeometry, PartitionInfo
from keybuilder.logging import LoggerFactory
from keybuilder.storage.exceptions import DeviceInaccessibleError, DeviceNotFoundError


log = LoggerFactory.for_storage()


def run_command(command, check=True, log_output=True, log_command=True, input=None):
    if log_command:
        log.debug(f"Running command: {' '.join(command)}")
    try:
        result = subprocess.run(
            command, check=check, text=True, capture_output=True, input=input
        )
    except subprocess.CalledProcessError as error:
        log.debug(f"Command failed: {' '.join(command)}")
        if error.stdout:
            log.debug(f"stdout: {error.stdout.strip()}")
        if error.stderr:
            log.debug(f"stderr: {error.stderr.strip()}")
        raise
    if result.stdout and (log_output or result.returncode != 0):
        log.bind(tags=["command-output"]).trace(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        log.debug(f"stderr: {result.stderr.strip()}")
    if log_command:
        log.debug(f"Command completed with return code {result.returncode}")
    return result


def _as_flag(value: Any) -> bool:
    """lsblk reports RM/RO as booleans, "0"/"1" strings or ints depending on version."""
    if isinstance(value, str):
        return value.strip() in {"1", "true"}
    return bool(value)


def _walk(entries: list[dict]):
    for entry in entries:
        yield entry
        yield from _walk(entry.get("children", []) or [])


def get_block_devices() -> list[dict]:
    """Return top-level block devices from lsblk, or an empty list on failure."""
    try:
        result = run_command(
            ["lsblk", "-J", "-b", "-d", "-o", "NAME,TYPE,TRAN,RM,RO,VENDOR,MODEL,SIZE"],
            log_output=False,
            log_command=False,
        )
        return json.loads(result.stdout).get("blockdevices", [])
    except (subprocess.CalledProcessError, json.JSONDecodeError) as error:
        log.error(f"lsblk failed: {error}")
        return []


def find_removable_devices() -> dict[str, str]:
    """Detect removable, writable USB disks.

    Returns:
        Mapping of device path (e.g. /dev/sdb) to a human-readable label
    """
    log.info("Looking for connected devices.")
    found: dict[str, str] = {}
    for device in get_block_devices():
        if device.get("type") != "disk":
            continue
        if device.get("tran") != "usb":
            continue
        if not _as_flag(device.get("rm")) or _as_flag(device.get("ro")):
            continue
        label = f"{device.get('vendor') or ''} {device.get('model') or ''}"
        found[f"/dev/{device['name']}"] = re.sub(r"\s+", " ", label).strip()

    if found:
        log.info(f"Found devices -> {' '.join(found)}")
    else:
        log.info("No removable USB devices found.")
    return found


def get_geometry(device: str) -> DeviceGeometry:
    """Query total byte size and logical sector size of a device.

    Raises:
        DeviceNotFoundError: If the device node is gone (key unplugged)
        DeviceInaccessibleError: If blockdev cannot read the device
    """
    if not os.path.exists(device):
        raise DeviceNotFoundError(device)
    try:
        size = run_command(["blockdev", "--getsize64", device], log_output=False)
        sector = run_command(["blockdev", "--getss", device], log_output=False)
        geometry = DeviceGeometry(
            total_bytes=int(size.stdout.strip()),
            sector_size=int(sector.stdout.strip()),
        )
    except (subprocess.CalledProcessError, OSError, ValueError) as error:
        log.error(f"{device} is inaccessible: {error}")
        raise DeviceInaccessibleError(device, str(error)) from error
    log.debug(f"{device}: {geometry.total_bytes} bytes, sector size {geometry.sector_size}")
    return geometry


def list_partitions(device: str) -> list[PartitionInfo]:
    """List the partitions of a device (empty list when lsblk fails)."""
    try:
        result = run_command(
            ["lsblk", "-J", "-b", "-o", "NAME,TYPE,PARTTYPE,PARTLABEL,FSTYPE,SIZE", device],
            log_output=False,
        )
        entries = json.loads(result.stdout).get("blockdevices", [])
    except (subprocess.CalledProcessError, json.JSONDecodeError) as error:
        log.error(f"Failed to list partitions of {device}: {error}")
        return []
    return [
        PartitionInfo.from_lsblk_dict(entry)
        for entry in _walk(entries)
        if entry.get("type") == "part"
    ]


def get_device_property(device: str, column: str) -> Optional[str]:
    """Read a single lsblk column of a device or partition (e.g. VENDOR, UUID)."""
    try:
        result = run_command(
            ["lsblk", "-lnd", "-o", column, device], log_output=False, log_command=False
        )
    except subprocess.CalledProcessError:
        return None
    value = re.sub(r"\s+", " ", result.stdout).strip()
    return value or None


def _mounted_nodes(device: str) -> list[tuple[str, str]]:
    try:
        result = run_command(
            ["lsblk", "-J", "-o", "NAME,MOUNTPOINT", device], log_output=False
        )
        entries = json.loads(result.stdout).get("blockdevices", [])
    except (subprocess.CalledProcessError, json.JSONDecodeError) as error:
        log.warning(f"Could not read mountpoints of {device}: {error}")
        return []
    return [
        (f"/dev/{entry['name']}", entry["mountpoint"])
        for entry in _walk(entries)
        if entry.get("mountpoint")
    ]


def unmount_partitions(device: str) -> bool:
    """Unmount every mounted partition of a device.

    Returns:
        True when nothing is left mounted, False if any unmount failed
    """
    success = True
    for node, mountpoint in _mounted_nodes(device):
        try:
            run_command(["umount", node])
            log.info(f"Unmounted {node} ({mountpoint}).")
        except subprocess.CalledProcessError as error:
            log.warning(f"Failed to unmount {node}: {error}")
            success = False
    return success
