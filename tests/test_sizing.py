"""Tests for planning/sizing.py - weighted partition size calculation.

This test suite covers:
- Reference layout of an 8000 MiB device
- Remainder distribution (no MiB lost to integer division)
- Disabled slots and the fixed-size ESP
- NoFlexiblePartitionsError and InsufficientSpaceError conditions
- Property checks over seeded random weights and devices
"""

import itertools
import random

import pytest

from keybuilder.domain.models import WEIGHTED_SLOTS, DeviceGeometry, MiB, SlotIndex
from keybuilder.planning import sizing
from keybuilder.storage.exceptions import InsufficientSpaceError, NoFlexiblePartitionsError


class TestComputeSizes:
    """Tests for compute_sizes() function."""

    def test_reference_layout(self, make_plan):
        """Test all slots on 8000 MiB with weights (2, 50, 2, 1)."""
        plan = make_plan()

        sizes = sizing.compute_sizes(2, 50, 2, 1, plan)

        assert sizes == [3180, 50, 3179, 1589]
        assert sizes[0] + sizes[2] + sizes[3] == 7948
        assert plan.sizes == sizes

    def test_disabled_slots_get_zero(self, make_plan):
        """Test that disabled slots are sized 0 and excluded from the ratio."""
        plan = make_plan(enabled=(SlotIndex.ESP, SlotIndex.SYSTEM))

        sizes = sizing.compute_sizes(2, 50, 2, 1, plan)

        assert sizes == [0, 50, 7948, 0]

    def test_disabled_esp_gets_zero_but_space_is_still_reserved(self, make_plan):
        """Test that the ESP size is subtracted even when the ESP is disabled."""
        plan = make_plan(enabled=(SlotIndex.STORAGE, SlotIndex.SYSTEM))

        sizes = sizing.compute_sizes(1, 50, 1, 1, plan)

        assert sizes[SlotIndex.ESP] == 0
        assert sizes[0] + sizes[2] == 7948

    def test_remainder_starts_at_first_eligible_slot(self, make_plan):
        """Test round-robin distribution of the remainder, skipping the ESP."""
        plan = make_plan()

        # available = 8000 - 51 - 2 = 7947, ratio 3 -> 2649 each, no remainder
        assert sizing.compute_sizes(1, 51, 1, 1, plan) == [2649, 51, 2649, 2649]
        # available = 7946 -> 2648 each, remainder 2 -> storage and system
        assert sizing.compute_sizes(1, 52, 1, 1, plan) == [2649, 52, 2649, 2648]

    def test_does_not_change_enabled_flags(self, make_plan):
        plan = make_plan(enabled=(0, 1, 2))

        sizing.compute_sizes(2, 50, 2, 1, plan)

        assert plan.enabled_flags == [True, True, True, False]

    def test_no_flexible_partitions(self, make_plan):
        """Test that a plan with only the ESP enabled is rejected."""
        plan = make_plan(enabled=(SlotIndex.ESP,))

        with pytest.raises(NoFlexiblePartitionsError):
            sizing.compute_sizes(2, 50, 2, 1, plan)

    def test_insufficient_space(self, make_plan):
        """Test that minimums exceeding the available space are rejected."""
        small = DeviceGeometry(total_bytes=1500 * MiB)
        plan = make_plan(device_geometry=small)

        with pytest.raises(InsufficientSpaceError) as exc_info:
            sizing.compute_sizes(2, 50, 2, 1, plan)

        assert exc_info.value.available_mib == 1448
        assert exc_info.value.required_mib == 1700

    def test_exactly_enough_space_is_accepted(self, make_plan):
        """Test the boundary where available space equals the minimums."""
        geometry = DeviceGeometry(total_bytes=(1700 + 50 + 2) * MiB)
        plan = make_plan(device_geometry=geometry)

        sizes = sizing.compute_sizes(2, 50, 2, 1, plan)

        assert sum(sizes) - sizes[SlotIndex.ESP] == 1700

    def test_failed_calculation_leaves_plan_untouched(self, make_plan):
        plan = make_plan(device_geometry=DeviceGeometry(total_bytes=1500 * MiB))
        plan[SlotIndex.SYSTEM].size_mib = 123

        with pytest.raises(InsufficientSpaceError):
            sizing.compute_sizes(2, 50, 2, 1, plan)

        assert plan[SlotIndex.SYSTEM].size_mib == 123


class TestPlanDefaultSizes:
    """Tests for plan_default_sizes() function."""

    def test_uses_configured_weights(self, make_plan, plan_config):
        plan = make_plan()

        assert sizing.plan_default_sizes(plan, plan_config) == [3180, 50, 3179, 1589]


class TestSizingProperties:
    """Property checks over seeded random devices, weights and slot selections."""

    SUBSETS = [
        subset
        for count in range(0, 4)
        for subset in itertools.combinations(WEIGHTED_SLOTS, count)
    ]

    @pytest.mark.parametrize("seed", range(20))
    def test_weighted_sizes_fill_available_space(self, make_plan, seed):
        """Test that enabled weighted sizes always sum to the available space."""
        rng = random.Random(seed)
        geometry = DeviceGeometry(total_bytes=rng.randint(4_000, 2_000_000) * MiB)
        esp_size = rng.randint(32, 512)
        weights = [rng.randint(1, 20) for _ in range(3)]
        enabled = [slot for slot in WEIGHTED_SLOTS if rng.random() < 0.7] or [SlotIndex.SYSTEM]
        plan = make_plan(enabled=[SlotIndex.ESP, *enabled], device_geometry=geometry)

        sizes = sizing.compute_sizes(weights[0], esp_size, weights[1], weights[2], plan)

        available = geometry.total_mib - esp_size - 2
        assert sum(sizes[index] for index in WEIGHTED_SLOTS) == available
        assert sizes[SlotIndex.ESP] == esp_size
        for index in WEIGHTED_SLOTS:
            if index not in enabled:
                assert sizes[index] == 0

    @pytest.mark.parametrize("subset", SUBSETS)
    def test_no_flexible_iff_no_weighted_slot(self, make_plan, subset):
        """Test NoFlexiblePartitionsError is raised exactly when no weighted slot is on."""
        plan = make_plan(enabled=[SlotIndex.ESP, *subset])

        if subset:
            sizing.compute_sizes(2, 50, 2, 1, plan)
        else:
            with pytest.raises(NoFlexiblePartitionsError):
                sizing.compute_sizes(2, 50, 2, 1, plan)

    @pytest.mark.parametrize("seed", range(20))
    def test_insufficient_space_iff_below_minimums(self, make_plan, seed):
        """Test InsufficientSpaceError is raised exactly when minimums do not fit."""
        rng = random.Random(seed)
        geometry = DeviceGeometry(total_bytes=rng.randint(500, 3_000) * MiB)
        plan = make_plan(device_geometry=geometry)
        required = 500 + 1000 + 200
        available = geometry.total_mib - 50 - 2

        if available < required:
            with pytest.raises(InsufficientSpaceError):
                sizing.compute_sizes(2, 50, 2, 1, plan)
        else:
            sizes = sizing.compute_sizes(2, 50, 2, 1, plan)
            assert sizes[0] + sizes[2] + sizes[3] == available
