"""Settings and registry persistence.

Settings are read from YAML and validated with voluptuous; anything not
given falls back to the defaults in const.py. The identifier registry's
recipes can be dumped to and loaded from YAML so restorable events outlive
the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import voluptuous as vol
import yaml

from .const import (
    BLE_NOTIFY_UUID,
    BLE_WRITE_UUID,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_DECODER_FORMATS,
    DEFAULT_LOG_CHUNK_SIZE,
)
from .domain.value_objects import MAX_PERIOD_MS

if TYPE_CHECKING:
    from .application.services.identifier_registry import IdentifierRegistry

_LOGGER = logging.getLogger(__name__)

REGISTRY_FORMAT_VERSION = 1


@dataclass(frozen=True)
class EventCoreSettings:
    """Tunables of the event core.

    Attributes:
        command_timeout: Upper bound of every remote round trip (seconds)
        log_chunk_size: Entries requested per log read
        max_period_ms: Largest accepted sample period
        write_uuid: GATT characteristic commands are written to
        notify_uuid: GATT characteristic replies and firings arrive on
        decoder_formats: Register kind -> struct format
    """

    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    log_chunk_size: int = DEFAULT_LOG_CHUNK_SIZE
    max_period_ms: int = MAX_PERIOD_MS
    write_uuid: str = BLE_WRITE_UUID
    notify_uuid: str = BLE_NOTIFY_UUID
    decoder_formats: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_DECODER_FORMATS)
    )


SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Optional("command_timeout"): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional("log_chunk_size"): vol.All(int, vol.Range(min=1, max=0xFFFF)),
        vol.Optional("max_period_ms"): vol.All(int, vol.Range(min=1, max=MAX_PERIOD_MS)),
        vol.Optional("write_uuid"): str,
        vol.Optional("notify_uuid"): str,
        vol.Optional("decoder_formats"): {str: str},
    },
    extra=vol.PREVENT_EXTRA,
)

_ADDRESS_SCHEMA = vol.Schema(
    {
        vol.Required("module"): vol.All(int, vol.Range(min=0, max=0xFF)),
        vol.Required("register"): vol.All(int, vol.Range(min=0, max=0xFF)),
        vol.Optional("index"): vol.All(int, vol.Range(min=0, max=0xFF)),
    }
)

_FILTER_SCHEMA = vol.Schema(
    {
        vol.Required("kind"): vol.In(["accumulate", "periodic_sample", "read_coupled"]),
        vol.Optional("period_ms"): vol.All(int, vol.Range(min=1, max=MAX_PERIOD_MS)),
        vol.Optional("data_address"): _ADDRESS_SCHEMA,
        vol.Optional("data_kind"): str,
    }
)


def _recipe_schema(value: Any) -> Any:
    """Validate a (recursive) recipe dictionary."""
    base = {vol.Optional("kind"): str, vol.Optional("identifier"): str}
    if isinstance(value, dict) and "address" in value:
        schema = vol.Schema({**base, vol.Required("address"): _ADDRESS_SCHEMA})
    else:
        schema = vol.Schema(
            {
                **base,
                vol.Required("filter"): _FILTER_SCHEMA,
                vol.Required("source"): _recipe_schema,
            }
        )
    return schema(value)


REGISTRY_SCHEMA = vol.Schema(
    {
        vol.Required("version"): REGISTRY_FORMAT_VERSION,
        vol.Required("recipes"): {str: _recipe_schema},
    }
)


def settings_from_dict(data: dict[str, Any] | None) -> EventCoreSettings:
    """Build settings from an already parsed mapping.

    Raises:
        ValueError: If the mapping does not match SETTINGS_SCHEMA
    """
    try:
        validated = SETTINGS_SCHEMA(data or {})
    except vol.Invalid as err:
        raise ValueError(f"Invalid settings: {err}") from err

    if "decoder_formats" in validated:
        formats = dict(DEFAULT_DECODER_FORMATS)
        formats.update(validated["decoder_formats"])
        validated["decoder_formats"] = formats
    return EventCoreSettings(**validated)


def load_settings(path: str | Path | None = None) -> EventCoreSettings:
    """Load settings from a YAML file.

    Args:
        path: YAML file; None returns the defaults

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML is malformed or fails validation
    """
    if path is None:
        return EventCoreSettings()

    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Settings file not found: {config_file}")

    try:
        data = yaml.safe_load(config_file.read_text())
    except yaml.YAMLError as err:
        raise ValueError(f"Invalid YAML: {err}") from err

    settings = settings_from_dict(data)
    _LOGGER.info(
        "Loaded settings from %s: timeout=%.1fs, chunk=%d",
        config_file,
        settings.command_timeout,
        settings.log_chunk_size,
    )
    return settings


def dump_registry_yaml(registry: "IdentifierRegistry") -> str:
    """Serialise every recipe of ``registry`` to YAML."""
    document = {
        "version": REGISTRY_FORMAT_VERSION,
        "recipes": registry.export_recipes(),
    }
    return yaml.safe_dump(document, sort_keys=True)


def load_registry_yaml(
    registry: "IdentifierRegistry", text: str, replace: bool = False
) -> int:
    """Load recipes from YAML into ``registry``.

    Returns:
        Number of recipes loaded

    Raises:
        ValueError: If the YAML is malformed or fails validation
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ValueError(f"Invalid YAML: {err}") from err

    try:
        validated = REGISTRY_SCHEMA(document)
    except vol.Invalid as err:
        raise ValueError(f"Invalid registry document: {err}") from err

    return registry.import_recipes(validated["recipes"], replace=replace)
