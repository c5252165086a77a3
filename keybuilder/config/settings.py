"""Settings storage for application configuration.

Values are layered: built-in defaults, then the system-wide file, then the
per-user file. Missing or unreadable files are skipped.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from keybuilder.domain.models import PlanConfig
from keybuilder.planning.units import iec_to_mib
from keybuilder.storage.exceptions import ConfigError


GLOBAL_SETTINGS_PATH = Path(
    os.environ.get("KEYBUILDER_GLOBAL_CONFIG", "/etc/keybuilder.json")
)
SETTINGS_PATH = Path(
    os.environ.get(
        "KEYBUILDER_SETTINGS_PATH",
        Path.home() / ".config" / "keybuilder" / "settings.json",
    )
)

# Directory holding grub/ resources when running from a checkout
PORTABLE_SHARED_DIR = Path(__file__).resolve().parents[2] / "share"

DEFAULT_SETTINGS: dict[str, Any] = {
    "storage_part_name": "Storage",
    "esp_part_name": "EFI system partition",
    "system_part_name": "Keybuilder",
    "free_part_name": "free space",
    "min_storage_size": "500Mi",
    "min_esp_size": "50Mi",
    "min_system_size": "1000Mi",
    "min_free_size": "200Mi",
    "storage_weight": 2,
    "esp_size": "50Mi",
    "system_weight": 2,
    "free_weight": 1,
    "label_use_property": "vendor",
    "label_storage": "KEYBUILDER",
    "boot_isos_dir": "iso",
    "shared_dir": "/usr/share/keybuilder",
    "debug": False,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_settings() -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    settings_store.values.update(_read_settings_file(GLOBAL_SETTINGS_PATH))
    settings_store.values.update(_read_settings_file(SETTINGS_PATH))


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def get_bool(key: str, default: bool = False) -> bool:
    return bool(get_setting(key, default))


def plan_config() -> PlanConfig:
    """Build the partition plan configuration from the current settings.

    Raises:
        ConfigError: If a size or weight setting cannot be parsed
    """
    try:
        names = tuple(
            str(get_setting(key))
            for key in (
                "storage_part_name",
                "esp_part_name",
                "system_part_name",
                "free_part_name",
            )
        )
        min_sizes = tuple(
            iec_to_mib(str(get_setting(key)))
            for key in (
                "min_storage_size",
                "min_esp_size",
                "min_system_size",
                "min_free_size",
            )
        )
        weights = (
            int(get_setting("storage_weight")),
            iec_to_mib(str(get_setting("esp_size"))),
            int(get_setting("system_weight")),
            int(get_setting("free_weight")),
        )
    except (TypeError, ValueError) as error:
        raise ConfigError(f"Invalid partition settings: {error}") from error
    return PlanConfig(names=names, min_sizes_mib=min_sizes, weights=weights)


def resolve_shared_dir() -> Path:
    """Locate the directory with GRUB resources.

    A portable checkout (``share/`` next to the package) wins over the
    configured system location.

    Raises:
        ConfigError: If neither location exists
    """
    if (PORTABLE_SHARED_DIR / "grub").is_dir():
        return PORTABLE_SHARED_DIR
    configured = Path(get_setting("shared_dir", DEFAULT_SETTINGS["shared_dir"]))
    if configured.is_dir():
        return configured
    raise ConfigError("Couldn't find shared directory.")


load_settings()
