"""Proportional partition sizing.

The ESP gets a fixed size; storage, system and free space share the rest
of the device according to their weights. Integer division can leave a
few MiB unassigned; those are handed out one at a time to the enabled
weighted slots, in index order, so that the weighted sizes add up to the
available space exactly.
"""

from __future__ import annotations

from keybuilder.domain.models import (
    GPT_OVERHEAD_MIB,
    WEIGHTED_SLOTS,
    PartitionPlan,
    PlanConfig,
    SlotIndex,
)
from keybuilder.logging import LoggerFactory
from keybuilder.storage.exceptions import (
    InsufficientSpaceError,
    NoFlexiblePartitionsError,
)


log = LoggerFactory.for_sizing()


def available_mib(plan: PartitionPlan, esp_size_mib: int) -> int:
    """Space left for the weighted slots once the ESP and GPT overhead are taken."""
    return plan.geometry.total_mib - esp_size_mib - GPT_OVERHEAD_MIB


def compute_sizes(
    weight_storage: int,
    esp_size_mib: int,
    weight_system: int,
    weight_free: int,
    plan: PartitionPlan,
) -> list[int]:
    """Compute slot sizes in MiB and store them in the plan.

    Args:
        weight_storage: Weight of the storage partition
        esp_size_mib: Absolute size of the EFI System Partition
        weight_system: Weight of the system partition
        weight_free: Weight of the trailing free space
        plan: Plan whose enabled flags and minimum sizes drive the calculation

    Returns:
        The new sizes of all four slots (0 for disabled slots)

    Raises:
        NoFlexiblePartitionsError: No weighted slot is enabled
        InsufficientSpaceError: Available space is below the enabled minimums
    """
    enabled = plan.enabled_flags
    weights = {
        SlotIndex.STORAGE: weight_storage,
        SlotIndex.SYSTEM: weight_system,
        SlotIndex.FREE_SPACE: weight_free,
    }
    available = available_mib(plan, esp_size_mib)
    ratio = sum(weights[index] for index in WEIGHTED_SLOTS if enabled[index])

    if ratio == 0:
        log.error("No partitions enabled (ratio = 0)")
        raise NoFlexiblePartitionsError()

    required = sum(plan[index].min_size_mib for index in WEIGHTED_SLOTS if enabled[index])
    if available < required:
        log.warning(f"Not enough space for partitions: {available} MiB < {required} MiB")
        raise InsufficientSpaceError(available, required)

    sizes = [0] * len(plan.slots)
    for index in WEIGHTED_SLOTS:
        if enabled[index]:
            sizes[index] = weights[index] * available // ratio
    if enabled[SlotIndex.ESP]:
        sizes[SlotIndex.ESP] = esp_size_mib

    eligible = [index for index in WEIGHTED_SLOTS if enabled[index]]
    remainder = available - sum(sizes[index] for index in eligible)
    cursor = 0
    while remainder > 0:
        sizes[eligible[cursor]] += 1
        remainder -= 1
        cursor = (cursor + 1) % len(eligible)

    for slot, size in zip(plan.slots, sizes):
        slot.size_mib = size

    log.debug(
        f"available = {available} MiB, ratio = {ratio}, sizes = {sizes}, "
        f"sum(flex) = {sum(sizes[index] for index in eligible)} MiB"
    )
    return sizes


def plan_default_sizes(plan: PartitionPlan, config: PlanConfig) -> list[int]:
    """Size a freshly selected plan with the configured default weights."""
    weight_storage, esp_size, weight_system, weight_free = config.weights
    return compute_sizes(weight_storage, esp_size, weight_system, weight_free, plan)
