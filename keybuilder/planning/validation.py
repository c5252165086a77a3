"""Reconcile user-edited partition sizes with the device.

Edited sizes are clamped into range first. When free space is part of the
layout it absorbs any difference to the usable size; otherwise the sizing
engine is run again with the clamped sizes as weights so the layout is
scaled to fit, and slots the rescale pushed below their minimum are lifted
back to it.

Displayed sizes are only accepted unchanged when every enabled slot meets
its minimum.
"""

from __future__ import annotations

from typing import Sequence

from keybuilder.domain.models import (
    WEIGHTED_SLOTS,
    Advisory,
    PartitionPlan,
    SlotIndex,
    ValidationOutcome,
    ValidationReport,
)
from keybuilder.logging import LoggerFactory
from keybuilder.planning.sizing import compute_sizes
from keybuilder.planning.units import iec_to_mib, mib_to_iec
from keybuilder.storage.exceptions import InsufficientSpaceError, SizingError


log = LoggerFactory.for_sizing()


def _meets_minimums(plan: PartitionPlan) -> bool:
    return all(slot.size_mib >= slot.min_size_mib for slot in plan if slot.enabled)


def _restore_minimums(plan: PartitionPlan) -> None:
    """Lift weighted slots left below their minimum, taking the space from the others.

    The space comes from the slots with the most room above their own minimum,
    so the total stays the same.
    """
    weighted = [plan[index] for index in WEIGHTED_SLOTS if plan[index].enabled]
    deficit = 0
    for slot in weighted:
        if slot.size_mib < slot.min_size_mib:
            log.debug(f"{slot.name} rescaled to {slot.size_mib} MiB, raising to minimum")
            deficit += slot.min_size_mib - slot.size_mib
            slot.size_mib = slot.min_size_mib

    for slot in sorted(weighted, key=lambda s: s.size_mib - s.min_size_mib, reverse=True):
        if deficit == 0:
            break
        taken = min(deficit, slot.size_mib - slot.min_size_mib)
        slot.size_mib -= taken
        deficit -= taken


def _read_user_sizes(
    user_sizes: Sequence[str], plan: PartitionPlan
) -> tuple[list[int], bool]:
    """Map the user's strings onto all four slots.

    Returns:
        Tuple of (new sizes in MiB, whether every string matched the plan)
    """
    values = list(user_sizes)
    enabled_count = len(plan.enabled_indices())
    if len(values) != enabled_count:
        raise ValueError(
            f"Expected {enabled_count} sizes for the enabled partitions, got {len(values)}"
        )

    unchanged = True
    new_sizes: list[int] = []
    supplied = iter(values)
    for slot in plan.slots:
        if not slot.enabled:
            new_sizes.append(0)
            continue
        text = str(next(supplied)).strip()
        if text != mib_to_iec(slot.size_mib):
            unchanged = False
        try:
            new_sizes.append(iec_to_mib(text))
        except ValueError:
            log.debug(f"Could not parse size {text!r} for {slot.name}")
            unchanged = False
            new_sizes.append(0)
    return new_sizes, unchanged


def validate_sizes(user_sizes: Sequence[str], plan: PartitionPlan) -> ValidationReport:
    """Validate sizes entered by the user for every enabled slot, in index order.

    Args:
        user_sizes: IEC size strings (e.g. "2.0Gi", "500Mi"), one per enabled slot
        plan: Current plan; updated in place unless the sizes are unchanged

    Returns:
        ValidationReport whose outcome tells the caller whether the plan was
        accepted as-is or must be shown again
    """
    new_sizes, unchanged = _read_user_sizes(user_sizes, plan)
    log.debug(f"part_sizes = {plan.sizes}, new_sizes = {new_sizes}, accepted = {unchanged}")

    if unchanged and _meets_minimums(plan):
        return ValidationReport(ValidationOutcome.UNCHANGED)

    advisories: list[Advisory] = []
    usable = plan.geometry.usable_mib

    for index, slot in enumerate(plan.slots):
        if new_sizes[index] > usable:
            advisories.append(Advisory(f"{slot.name} size exceeded disk space!"))
            new_sizes[index] = usable // 2

    for index, slot in enumerate(plan.slots):
        if slot.enabled and new_sizes[index] < slot.min_size_mib:
            advisories.append(Advisory(f"{slot.name} was too small!"))
            new_sizes[index] = slot.min_size_mib

    total = sum(new_sizes)

    free = plan[SlotIndex.FREE_SPACE]
    if free.enabled:
        if total > usable and total - new_sizes[SlotIndex.FREE_SPACE] <= usable - free.min_size_mib:
            log.debug("free space reduced")
            new_sizes[SlotIndex.FREE_SPACE] -= total - usable
            total = usable
        elif total < usable:
            log.debug("free space expanded")
            new_sizes[SlotIndex.FREE_SPACE] += usable - total
            total = usable

    if total == usable:
        for slot, size in zip(plan.slots, new_sizes):
            slot.size_mib = size
        advisories.append(Advisory("Press next to accept changes.", level="info"))
        return ValidationReport(ValidationOutcome.ADJUSTED, advisories)

    # The clamped sizes are reused as weights here, which mixes absolute sizes
    # and proportions; it still yields a layout that fills the device.
    try:
        compute_sizes(*new_sizes, plan)
    except InsufficientSpaceError:
        advisories.append(Advisory(f"{plan[SlotIndex.ESP].name} was too big!"))
        return ValidationReport(ValidationOutcome.ESP_TOO_LARGE, advisories)
    except SizingError as error:
        log.warning(f"Rescaling failed: {error}")
        advisories.append(Advisory("Error calculating sizes!"))
        return ValidationReport(ValidationOutcome.SIZING_FAILED, advisories)

    _restore_minimums(plan)
    advisories.append(Advisory("Partitions scaled to fit disk size!"))
    return ValidationReport(ValidationOutcome.RESCALED, advisories)
