"""Domain model for partition planning and the setup wizard.

This module holds the type-safe objects shared by the planning engine,
the storage helpers and the step controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterator


MiB = 1024**2

# 1 MiB alignment at the start plus ~1 MiB reserved for the backup GPT
GPT_OVERHEAD_MIB = 2


# ==============================================================================
# Device Domain
# ==============================================================================


@dataclass(frozen=True)
class DeviceGeometry:
    """Size information of the selected block device."""

    total_bytes: int
    sector_size: int = 512

    @property
    def total_mib(self) -> int:
        return self.total_bytes // MiB

    @property
    def usable_mib(self) -> int:
        """Space left for partitions once the GPT overhead is reserved."""
        return self.total_mib - GPT_OVERHEAD_MIB

    @property
    def total_sectors(self) -> int:
        return self.total_bytes // self.sector_size


@dataclass(frozen=True)
class PartitionInfo:
    """A partition found on a device by lsblk."""

    name: str  # e.g., "sdb2"
    part_type: str = ""  # GPT type GUID, lower case
    label: str = ""  # GPT partition name
    fstype: str = ""
    size_bytes: int = 0

    @property
    def node(self) -> str:
        return f"/dev/{self.name}"

    @property
    def size_mib(self) -> int:
        return self.size_bytes // MiB

    @classmethod
    def from_lsblk_dict(cls, entry: dict[str, Any]) -> PartitionInfo:
        """Convert an lsblk JSON entry (``-o NAME,TYPE,PARTTYPE,PARTLABEL,FSTYPE,SIZE``)."""
        return cls(
            name=entry["name"],
            part_type=(entry.get("parttype") or "").lower(),
            label=entry.get("partlabel") or "",
            fstype=entry.get("fstype") or "",
            size_bytes=int(entry.get("size") or 0),
        )


# ==============================================================================
# Partition Plan Domain
# ==============================================================================


class SlotIndex(IntEnum):
    """Logical partition roles, in on-disk order."""

    STORAGE = 0
    ESP = 1
    SYSTEM = 2
    FREE_SPACE = 3


WEIGHTED_SLOTS = (SlotIndex.STORAGE, SlotIndex.SYSTEM, SlotIndex.FREE_SPACE)
SLOT_COUNT = len(SlotIndex)


@dataclass
class PartitionSlot:
    name: str
    enabled: bool = False
    min_size_mib: int = 0
    size_mib: int = 0
    node: str = ""  # e.g., "/dev/sdb2", set once known


@dataclass(frozen=True)
class PlanConfig:
    """Configured labels, minimum sizes and default weights for each slot."""

    names: tuple[str, str, str, str]
    min_sizes_mib: tuple[int, int, int, int]
    weights: tuple[int, int, int, int] = (2, 50, 2, 1)  # index 1 is the fixed ESP size

    @property
    def esp_size_mib(self) -> int:
        return self.weights[SlotIndex.ESP]


def partition_node(device: str, number: int) -> str:
    """Build the device node of a partition (``/dev/sdb1``, ``/dev/mmcblk0p1``)."""
    separator = "p" if device[-1:].isdigit() else ""
    return f"{device}{separator}{number}"


@dataclass
class PartitionPlan:
    """Four partition slots on one device."""

    geometry: DeviceGeometry
    slots: list[PartitionSlot]

    def __post_init__(self) -> None:
        if len(self.slots) != SLOT_COUNT:
            raise ValueError(f"A partition plan needs {SLOT_COUNT} slots, got {len(self.slots)}")

    @classmethod
    def from_config(cls, geometry: DeviceGeometry, config: PlanConfig) -> PartitionPlan:
        slots = [
            PartitionSlot(name=name, min_size_mib=min_size)
            for name, min_size in zip(config.names, config.min_sizes_mib)
        ]
        return cls(geometry=geometry, slots=slots)

    def __getitem__(self, index: int) -> PartitionSlot:
        return self.slots[index]

    def __iter__(self) -> Iterator[PartitionSlot]:
        return iter(self.slots)

    @property
    def enabled_flags(self) -> list[bool]:
        return [slot.enabled for slot in self.slots]

    @property
    def sizes(self) -> list[int]:
        return [slot.size_mib for slot in self.slots]

    @property
    def min_sizes(self) -> list[int]:
        return [slot.min_size_mib for slot in self.slots]

    def enabled_indices(self) -> list[int]:
        return [index for index, slot in enumerate(self.slots) if slot.enabled]

    def set_enabled(self, indices) -> None:
        wanted = {int(index) for index in indices}
        for index, slot in enumerate(self.slots):
            slot.enabled = index in wanted

    def assign_nodes(self, device: str) -> None:
        """Number enabled partitions in index order; free space gets no node."""
        number = 1
        for index, slot in enumerate(self.slots):
            slot.node = ""
            if index == SlotIndex.FREE_SPACE or not slot.enabled:
                continue
            slot.node = partition_node(device, number)
            number += 1


# ==============================================================================
# Layout Detection Domain
# ==============================================================================


@dataclass
class CompatibilityFlags:
    """Independent reasons why an existing layout cannot be reused."""

    esp_missing: bool = False
    system_missing: bool = False
    esp_wrong_filesystem: bool = False
    esp_too_small: bool = False
    system_too_small: bool = False

    @property
    def is_compatible(self) -> bool:
        return not any(
            (
                self.esp_missing,
                self.system_missing,
                self.esp_wrong_filesystem,
                self.esp_too_small,
                self.system_too_small,
            )
        )

    def describe(self) -> list[str]:
        reasons = []
        if self.esp_wrong_filesystem:
            reasons.append("EFI partition doesn't have a FAT filesystem")
        if self.esp_too_small:
            reasons.append("EFI partition is too small")
        if self.esp_missing:
            reasons.append("No usable EFI partition found")
        if self.system_too_small:
            reasons.append("System partition is too small")
        if self.system_missing:
            reasons.append("No usable system partition found")
        return reasons


# ==============================================================================
# Size Validation Domain
# ==============================================================================


class ValidationOutcome(Enum):
    """Result of reconciling user-edited sizes with the plan."""

    UNCHANGED = "unchanged"  # accepted as-is
    ADJUSTED = "adjusted"  # clamped and/or absorbed by free space
    RESCALED = "rescaled"  # proportionally recalculated
    ESP_TOO_LARGE = "esp_too_large"
    SIZING_FAILED = "sizing_failed"


@dataclass(frozen=True)
class Advisory:
    text: str
    level: str = "warning"  # "warning" or "info"


@dataclass
class ValidationReport:
    outcome: ValidationOutcome
    advisories: list[Advisory] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.outcome is ValidationOutcome.UNCHANGED

    def message(self) -> str:
        return "\n".join(advisory.text for advisory in self.advisories)


# ==============================================================================
# Wizard Domain
# ==============================================================================


class StepOutcome(Enum):
    """How the wizard moves after a step."""

    ADVANCE = "advance"
    QUIT = "quit"
    REPEAT = "repeat"
    BACK = "back"
    ABORT = "abort"

    @classmethod
    def from_exit_code(cls, code: int) -> StepOutcome:
        """Translate a dialog exit status (OK, Cancel, Help, Extra, ESC)."""
        if code == 0:
            return cls.ADVANCE
        if code in (1, 255):
            return cls.QUIT
        if code == 2:
            return cls.REPEAT
        if code == 3:
            return cls.BACK
        return cls.ABORT


FIRST_STEP = 1
FINAL_STEP = 7


@dataclass
class WizardState:
    current_step: int = FIRST_STEP
    selected_device: str = ""
    plan: PartitionPlan | None = None
    user_message: str = ""
    keep_layout: bool = False
    devices: dict[str, str] = field(default_factory=dict)  # path -> label
