"""Constants for the remote event core.

Defaults for the tunables live here; deployments override them through
the YAML settings file read by config_loader.
"""

from __future__ import annotations

from typing import Final

# Filters live in their own module on the device; each derived event
# occupies one slot, exposed as an index of the filter notify register.
FILTER_MODULE_ID: Final = 0x09
FILTER_NOTIFY_REGISTER: Final = 0x03
MAX_FILTER_SLOTS: Final = 0xFE

# Timing constants (in seconds)
DEFAULT_COMMAND_TIMEOUT: Final = 5.0
BLE_CONNECTION_TIMEOUT: Final = 20.0
BLE_NOTIFY_SUBSCRIBE_TIMEOUT: Final = 5.0
BLE_DISCONNECT_TIMEOUT: Final = 3.0
BLE_DISCOVERY_TIMEOUT: Final = 7.0

# Log download
DEFAULT_LOG_CHUNK_SIZE: Final = 16

# BLE GATT characteristics
BLE_SERVICE_UUID: Final = "326a9000-85cb-9195-d9dd-464cfbbae75a"
BLE_WRITE_UUID: Final = "326a9001-85cb-9195-d9dd-464cfbbae75a"
BLE_NOTIFY_UUID: Final = "326a9006-85cb-9195-d9dd-464cfbbae75a"

# Register kind -> struct format used by StructEntryDecoder
DEFAULT_DECODER_FORMATS: Final = {
    "switch": "<B",
    "temperature": "<h",
    "counter": "<I",
    "acceleration": "<hhh",
}
