"""Transport interface consumed by the connection state machine."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ..models import Event, SessionEvent


_LOGGER = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class Transport(ABC):
    """
    Narrow view of a BLE GATT link.

    Every method returns immediately; outcomes arrive later as events:
    `open` -> LINK_ESTABLISHED / LINK_FAILED, `discover` ->
    DISCOVERY_COMPLETE / DISCOVERY_FAILED, plus LINK_LOST, DATA_RECEIVED
    (payload: bytes) and RSSI_SAMPLE (payload: dBm) at any time.
    """

    def __init__(self):
        self._listener: Optional[Listener] = None

    def set_listener(self, listener: Optional[Listener]):
        """Route all link events to a single listener."""
        self._listener = listener

    def emit(self, event_type: SessionEvent, payload: Any = None):
        if self._listener is None:
            _LOGGER.debug("No listener for %s", event_type.name)
            return
        self._listener(Event(event_type, payload))

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True between `open` and `close`."""

    @abstractmethod
    def open(self, address: str) -> None:
        """
        Start establishing a link to the module.

        The outcome arrives later as LINK_ESTABLISHED or LINK_FAILED.

        Raises:
            TransportError: If the link cannot even be attempted
        """

    @abstractmethod
    def close(self) -> None:
        """Tear the link down. Idempotent."""

    @abstractmethod
    def discover(self) -> None:
        """Locate the remote service and its data characteristics."""

    @abstractmethod
    def enable_notifications(self) -> None:
        """Subscribe to inbound frames."""

    @abstractmethod
    def write(self, data: bytes) -> bool:
        """Queue bytes for transmission. True iff accepted."""

    def request_rssi(self) -> None:
        """Ask for an RSSI sample, if the platform can provide one."""
