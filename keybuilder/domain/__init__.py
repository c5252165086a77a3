"""Domain models for partition planning and the setup wizard."""

from __future__ import annotations

from .models import (
    FINAL_STEP,
    FIRST_STEP,
    GPT_OVERHEAD_MIB,
    WEIGHTED_SLOTS,
    Advisory,
    CompatibilityFlags,
    DeviceGeometry,
    MiB,
    PartitionInfo,
    PartitionPlan,
    PartitionSlot,
    PlanConfig,
    SlotIndex,
    StepOutcome,
    ValidationOutcome,
    ValidationReport,
    WizardState,
    partition_node,
)


__all__ = [
    "FINAL_STEP",
    "FIRST_STEP",
    "GPT_OVERHEAD_MIB",
    "WEIGHTED_SLOTS",
    "Advisory",
    "CompatibilityFlags",
    "DeviceGeometry",
    "MiB",
    "PartitionInfo",
    "PartitionPlan",
    "PartitionSlot",
    "PlanConfig",
    "SlotIndex",
    "StepOutcome",
    "ValidationOutcome",
    "ValidationReport",
    "WizardState",
    "partition_node",
]
