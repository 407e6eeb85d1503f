"""Connection layer for ALLREMOTE BLE communication."""

from .client import BleakTransport
from .scanner import RemoteScanner, discover_remote_modules, is_remote_module
from .transport import Transport

__all__ = [
    "BleakTransport",
    "RemoteScanner",
    "Transport",
    "discover_remote_modules",
    "is_remote_module",
]
