"""
Pytest configuration and shared fixtures for keybuilder tests.

This module provides common fixtures and utilities used across all test modules.
"""

import json
from typing import Any, Dict
from unittest.mock import Mock

import pytest

from keybuilder.app.context import WizardContext
from keybuilder.domain.models import (
    DeviceGeometry,
    MiB,
    PartitionPlan,
    PlanConfig,
    WizardState,
)
from keybuilder.planning.sizing import plan_default_sizes


# ==============================================================================
# Plan Fixtures
# ==============================================================================


@pytest.fixture
def plan_config() -> PlanConfig:
    """Default slot names, minimum sizes (MiB) and weights."""
    return PlanConfig(
        names=("Storage", "EFI system partition", "Keybuilder", "free space"),
        min_sizes_mib=(500, 50, 1000, 200),
        weights=(2, 50, 2, 1),
    )


@pytest.fixture
def geometry() -> DeviceGeometry:
    """An 8000 MiB device with 512 byte sectors."""
    return DeviceGeometry(total_bytes=8000 * MiB, sector_size=512)


@pytest.fixture
def make_plan(geometry, plan_config):
    """Factory for plans with the given slots enabled."""

    def _make(enabled=(0, 1, 2, 3), device_geometry=None) -> PartitionPlan:
        plan = PartitionPlan.from_config(device_geometry or geometry, plan_config)
        plan.set_enabled(enabled)
        return plan

    return _make


@pytest.fixture
def sized_plan(make_plan, plan_config) -> PartitionPlan:
    """All four slots enabled and sized with the default weights.

    Sizes are (3180, 50, 3179, 1589) MiB.
    """
    plan = make_plan()
    plan.assign_nodes("/dev/sdb")
    plan_default_sizes(plan, plan_config)
    return plan


@pytest.fixture
def wizard_context(plan_config, tmp_path):
    """Wizard context with a shared directory under tmp_path."""
    return WizardContext(
        config=plan_config,
        state=WizardState(),
        backtitle="Keybuilder test",
        shared_dir=tmp_path / "share",
    )


@pytest.fixture
def mock_ui():
    """Dialog renderer double; set return values per test."""
    return Mock()


# ==============================================================================
# lsblk Fixtures
# ==============================================================================


@pytest.fixture
def lsblk_devices() -> Dict[str, Any]:
    """lsblk -J -b -d output with one eligible USB key and several others."""
    return {
        "blockdevices": [
            {
                "name": "sda",
                "type": "disk",
                "tran": "sata",
                "rm": False,
                "ro": False,
                "vendor": "ATA     ",
                "model": "Samsung SSD",
                "size": 256060514304,
            },
            {
                "name": "sdb",
                "type": "disk",
                "tran": "usb",
                "rm": True,
                "ro": False,
                "vendor": "SanDisk ",
                "model": "Ultra   Fit",
                "size": 30752636928,
            },
            {
                "name": "sdc",
                "type": "disk",
                "tran": "usb",
                "rm": "1",
                "ro": "1",
                "vendor": "Kingston",
                "model": "DataTraveler",
                "size": 8004304896,
            },
            {
                "name": "sr0",
                "type": "rom",
                "tran": "usb",
                "rm": "1",
                "ro": "0",
                "vendor": "ASUS",
                "model": "DVD",
                "size": 1073741312,
            },
        ]
    }


@pytest.fixture
def lsblk_partitions() -> Dict[str, Any]:
    """lsblk -J -b output of a device that already carries a usable layout."""
    return {
        "blockdevices": [
            {
                "name": "sdb",
                "type": "disk",
                "parttype": None,
                "partlabel": None,
                "fstype": None,
                "size": 8000 * MiB,
                "children": [
                    {
                        "name": "sdb1",
                        "type": "part",
                        "parttype": "EBD0A0A2-B9E5-4433-87C0-68B6B72699C7",
                        "partlabel": "Storage",
                        "fstype": "exfat",
                        "size": 3180 * MiB,
                    },
                    {
                        "name": "sdb2",
                        "type": "part",
                        "parttype": "c12a7328-f81f-11d2-ba4b-00a0c93ec93b",
                        "partlabel": "EFI system partition",
                        "fstype": "vfat",
                        "size": 50 * MiB,
                    },
                    {
                        "name": "sdb3",
                        "type": "part",
                        "parttype": "0fc63daf-8483-4772-8e79-3d69d8477de4",
                        "partlabel": "Keybuilder",
                        "fstype": "ext4",
                        "size": 3179 * MiB,
                    },
                ],
            }
        ]
    }


@pytest.fixture
def lsblk_json():
    """Serialize an lsblk payload the way the command prints it."""
    return lambda payload: json.dumps(payload)
