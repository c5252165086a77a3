"""Custom exceptions for Keybuilder operations.

This module defines a hierarchy of exceptions so callers can tell a
recoverable planning problem from a fatal device or tool failure.

Exception Hierarchy:
    KeybuilderError (base)
        ├── DeviceError
        │   ├── DeviceNotFoundError
        │   └── DeviceInaccessibleError
        ├── SizingError
        │   ├── NoFlexiblePartitionsError
        │   └── InsufficientSpaceError
        ├── FormatError
        │   ├── TableWriteError
        │   └── FormatOperationError
        ├── MountError
        │   └── MountOperationError
        ├── BootloaderError
        ├── ConfigError
        └── WizardError
            ├── UserExit
            └── WizardAbort

Usage:
    from keybuilder.storage.exceptions import InsufficientSpaceError

    if available < required:
        raise InsufficientSpaceError(available, required)
"""

from typing import Optional


class KeybuilderError(Exception):
    """Base exception for all Keybuilder operations."""



class DeviceError(KeybuilderError):
    """Base exception for device-related errors."""



class DeviceNotFoundError(DeviceError):
    """Device was not found or does not exist."""

    def __init__(self, device_name: str):
        self.device_name = device_name
        super().__init__(f"Device not found: {device_name}")


class DeviceInaccessibleError(DeviceError):
    """Device geometry could not be queried."""

    def __init__(self, device_name: str, reason: str = ""):
        self.device_name = device_name
        self.reason = reason
        msg = f"{device_name} is inaccessible"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class SizingError(KeybuilderError):
    """Base exception for partition sizing failures."""



class NoFlexiblePartitionsError(SizingError):
    """No weighted partition is enabled, so there is nothing to distribute."""

    def __init__(self):
        super().__init__("No flexible partitions enabled (ratio = 0)")


class InsufficientSpaceError(SizingError):
    """Available space is smaller than the sum of minimum sizes."""

    def __init__(self, available_mib: int, required_mib: int):
        self.available_mib = available_mib
        self.required_mib = required_mib
        super().__init__(
            f"Not enough space for partitions: {available_mib} MiB available, "
            f"{required_mib} MiB required"
        )


class FormatError(KeybuilderError):
    """Base exception for partitioning and format operations."""



class TableWriteError(FormatError):
    """sfdisk could not write the partition table."""

    def __init__(self, device: str, stderr: str = ""):
        self.device = device
        self.stderr = stderr
        msg = f"Failed to write partition table to {device}"
        if stderr:
            msg += f": {stderr}"
        super().__init__(msg)


class FormatOperationError(FormatError):
    """Generic filesystem creation failure."""

    def __init__(self, message: str, device: Optional[str] = None):
        self.device = device
        super().__init__(message)


class MountError(KeybuilderError):
    """Base exception for mount-related errors."""



class MountOperationError(MountError):
    """Mounting a partition failed."""

    def __init__(self, node: str, target: str, reason: str = ""):
        self.node = node
        self.target = target
        self.reason = reason
        msg = f"Failed to mount {node} to {target}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class BootloaderError(KeybuilderError):
    """GRUB installation or configuration failed."""

    def __init__(self, message: str, command: Optional[list[str]] = None):
        self.command = command
        super().__init__(message)


class ConfigError(KeybuilderError):
    """Configuration or runtime environment is unusable."""



class WizardError(KeybuilderError):
    """Base exception for wizard termination paths."""



class UserExit(WizardError):
    """User chose to leave the wizard."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"User exited at step {step}")


class WizardAbort(WizardError):
    """Wizard cannot continue; cleanup and abnormal termination follow."""

    def __init__(self, reason: str, step: Optional[int] = None):
        self.reason = reason
        self.step = step
        msg = reason if step is None else f"Step {step}: {reason}"
        super().__init__(msg)
