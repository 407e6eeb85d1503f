"""Data models for the ALLREMOTE BLE protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import TYPE_CHECKING, Any, FrozenSet, Optional

if TYPE_CHECKING:
    from .protocol.keys import KeyId


class ConnectionState(IntEnum):
    """Connection state."""
    DISCONNECTED = 0
    CONNECTING = 1
    AUTHENTICATING = 2
    CONNECTED = 3
    RECONNECTING = 4


class SessionEvent(Enum):
    """Everything the connection state machine reacts to."""

    # Transport
    LINK_ESTABLISHED = auto()
    LINK_FAILED = auto()
    LINK_LOST = auto()
    DISCOVERY_COMPLETE = auto()
    DISCOVERY_FAILED = auto()
    DATA_RECEIVED = auto()
    RSSI_SAMPLE = auto()

    # Timers
    LINK_SETTLED = auto()
    DISCOVERY_SETTLED = auto()
    CONNECTION_TIMEOUT = auto()
    AUTH_TIMEOUT = auto()
    RECONNECT_DUE = auto()


@dataclass(frozen=True)
class Event:
    """A session event with its optional payload (frame bytes, RSSI, reason)."""
    type: SessionEvent
    payload: Any = None


@dataclass
class SessionContext:
    """Current connection session."""
    address: Optional[str] = None
    password: Optional[str] = None
    awaiting_auth_response: bool = False
    reconnect_attempts: int = 0
    remember: bool = False

    def reset(self):
        """Reset session state."""
        self.address = None
        self.password = None
        self.awaiting_auth_response = False
        self.reconnect_attempts = 0
        self.remember = False


@dataclass(frozen=True)
class RemoteStatus:
    """Snapshot of what the session exposes to its consumers."""
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    address: Optional[str] = None
    error_message: Optional[str] = None
    rssi: Optional[int] = None
    reported_keys: FrozenSet[KeyId] = field(default_factory=frozenset)
    learning_mode: bool = False
    reconnect_attempts: int = 0

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTED

    def as_dict(self) -> dict:
        """Plain representation for diagnostics."""
        return {
            "connection_state": self.connection_state.name,
            "address": self.address,
            "error_message": self.error_message,
            "rssi": self.rssi,
            "reported_keys": [key.value for key in sorted(self.reported_keys, key=lambda k: k.index)],
            "learning_mode": self.learning_mode,
            "reconnect_attempts": self.reconnect_attempts,
        }
