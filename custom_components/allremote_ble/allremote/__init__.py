"""
ALLREMOTE BLE Protocol Library.

A Python library for driving ALLREMOTE remote-control modules via Bluetooth
Low Energy: connect and authenticate with the 6-character module password,
hold and release keys, and send the module's control commands.

Usage:
    from allremote import (
        KeyId,
        RemoteClient,
        SQLitePasswordStore,
        discover_remote_modules,
    )

    async def main():
        client = RemoteClient(password_store=SQLitePasswordStore())

        # Discover modules
        modules = await discover_remote_modules(timeout=10.0)
        if not modules:
            print("No ALLREMOTE modules found")
            return

        connected = asyncio.Event()
        client.add_listener(lambda status: status.is_connected and connected.set())

        # Connect (the password is remembered once authenticated)
        client.connect(modules[0].address, "123456")
        await connected.wait()

        # Hold "Up" for half a second
        await client.hold_keys([KeyId.K1], 0.5)

    import asyncio
    asyncio.run(main())
"""

__version__ = "0.1.0"

# Main client
from .remote import RemoteClient
from .connection.client import BleakTransport
from .connection.scanner import RemoteScanner, discover_remote_modules
from .connection.transport import Transport

# Models
from .models import ConnectionState, Event, RemoteStatus, SessionEvent

# Protocol
from .protocol.auth import AuthenticationPolicy, ExplicitAckPolicy
from .protocol.keys import Command, KeyId, StatusCode, parse_keys
from .protocol.state_machine import ConnectionStateMachine, SessionTimings

# Storage
from .storage.base import MemoryPasswordStore, PasswordStore
from .storage.database import SQLitePasswordStore

# Exceptions
from .exceptions import (
    AllRemoteError,
    TransportError,
    TimeoutError,
    AuthenticationRejected,
    ProtocolError,
    ValidationError,
    StorageError,
    NotConnectedError,
)

# Constants
from .const import (
    ALLREMOTE_SERVICE_UUID,
    ALLREMOTE_WRITE_UUID,
    ALLREMOTE_NOTIFY_UUID,
    DEFAULT_PASSWORD,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "RemoteClient",
    "BleakTransport",
    "RemoteScanner",
    "Transport",
    "discover_remote_modules",
    # Models
    "ConnectionState",
    "Event",
    "RemoteStatus",
    "SessionEvent",
    # Protocol
    "AuthenticationPolicy",
    "ExplicitAckPolicy",
    "Command",
    "KeyId",
    "StatusCode",
    "parse_keys",
    "ConnectionStateMachine",
    "SessionTimings",
    # Storage
    "MemoryPasswordStore",
    "PasswordStore",
    "SQLitePasswordStore",
    # Exceptions
    "AllRemoteError",
    "TransportError",
    "TimeoutError",
    "AuthenticationRejected",
    "ProtocolError",
    "ValidationError",
    "StorageError",
    "NotConnectedError",
    # Constants
    "ALLREMOTE_SERVICE_UUID",
    "ALLREMOTE_WRITE_UUID",
    "ALLREMOTE_NOTIFY_UUID",
    "DEFAULT_PASSWORD",
]
