"""Constants for the ALLREMOTE BLE protocol."""

# BLE Service and Characteristic UUIDs
ALLREMOTE_SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
ALLREMOTE_WRITE_UUID = "0000ffe9-0000-1000-8000-00805f9b34fb"
ALLREMOTE_NOTIFY_UUID = "0000ffe4-0000-1000-8000-00805f9b34fb"

# Modules advertise a local name starting with this prefix
DEVICE_NAME_PREFIX = "ALLREMOTE"

# Frame layout: head + byte_a + byte_b
FRAME_HEAD = 0xFF
FRAME_LENGTH = 3
COMMAND_MARKER = 0xFF

# Password change: header + 6 password bytes
PASSWORD_CHANGE_HEADER = bytes([0xAA, 0x2D, 0xD4])
PASSWORD_LENGTH = 6
DEFAULT_PASSWORD = "123456"

# Timeouts and delays (seconds)
DEFAULT_SCAN_TIMEOUT = 10.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_AUTH_TIMEOUT = 5.0
LINK_SETTLE_DELAY = 1.0
DISCOVERY_SETTLE_DELAY = 0.5
RECONNECT_DELAY = 10.0
MAX_RECONNECT_ATTEMPTS = 5

# Key repeat period while a key is held
REPEAT_INTERVAL = 0.05
RELEASE_REPEAT = 2
