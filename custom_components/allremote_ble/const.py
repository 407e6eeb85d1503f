"""Constants for the ALLREMOTE BLE integration."""
from __future__ import annotations

from .allremote.const import DEFAULT_AUTH_TIMEOUT, DEFAULT_PASSWORD, REPEAT_INTERVAL

# Integration domain
DOMAIN = "allremote_ble"

# Config entry keys
CONF_ADDRESS = "address"
CONF_NAME = "name"
CONF_PASSWORD = "password"
CONF_CURRENT_PASSWORD = "current_password"
CONF_NEW_PASSWORD = "new_password"

# Options
CONF_REPEAT_INTERVAL_MS = "repeat_interval_ms"
CONF_AUTH_TIMEOUT = "auth_timeout"
DEFAULT_REPEAT_INTERVAL_MS = int(REPEAT_INTERVAL * 1000)
MIN_REPEAT_INTERVAL_MS = 20
MAX_REPEAT_INTERVAL_MS = 1000
MIN_AUTH_TIMEOUT = 1.0
MAX_AUTH_TIMEOUT = 30.0

# Password storage
STORE_VERSION = 1
STORE_KEY = f"{DOMAIN}_passwords"
STORE_SAVE_DELAY = 1  # seconds

# Dispatcher signals (suffixed with the device address)
SIGNAL_STATUS_UPDATE = f"{DOMAIN}_status_update"

# Bus event fired for every key report from the module
EVENT_KEYS_REPORTED = f"{DOMAIN}_keys_reported"

# Event entity types
EVENT_TYPE_PRESSED = "pressed"
EVENT_TYPE_RELEASED = "released"
EVENT_TYPES = [EVENT_TYPE_PRESSED, EVENT_TYPE_RELEASED]

# Services
SERVICE_CONNECT = "connect"
SERVICE_DISCONNECT = "disconnect"
SERVICE_RETRY_CONNECT = "retry_connect"
SERVICE_PRESS_KEYS = "press_keys"
SERVICE_RELEASE_KEYS = "release_keys"
SERVICE_SEND_COMMAND = "send_command"
SERVICE_CHANGE_PASSWORD = "change_password"

ATTR_CONFIG_ENTRY_ID = "config_entry_id"
ATTR_KEYS = "keys"
ATTR_DURATION = "duration"
ATTR_COMMAND = "command"

# Manufacturer info
MANUFACTURER = "ALLREMOTE"
MODEL_NAME = "BLE remote control module"
