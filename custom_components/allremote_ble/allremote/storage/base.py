"""Password store interface."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..const import DEFAULT_PASSWORD


class PasswordStore(ABC):
    """
    Remembered module passwords, keyed by device address.

    The most recently saved address is the "last connected device" used for
    the startup auto-connect.
    """

    @abstractmethod
    def get(self, address: str) -> Optional[str]:
        """Return the stored password for an address, if any."""

    @abstractmethod
    def set(self, address: str, password: str) -> None:
        """Store a password and mark the address as last connected."""

    @abstractmethod
    def clear(self, address: str) -> bool:
        """Forget everything about an address. Returns True if it was known."""

    @abstractmethod
    def get_last_connected_device(self) -> Optional[str]:
        """Return the most recently saved address."""

    def get_default(self) -> str:
        """Return the factory default module password."""
        return DEFAULT_PASSWORD

    def list_addresses(self) -> List[str]:
        return []


class MemoryPasswordStore(PasswordStore):
    """Non-persistent store, mostly for tests and the demo CLI."""

    def __init__(self, default_password: str = DEFAULT_PASSWORD):
        # Insertion order is save order, most recent last
        self._passwords: Dict[str, str] = {}
        self._default = default_password

    def get(self, address: str) -> Optional[str]:
        return self._passwords.get(address.upper())

    def set(self, address: str, password: str) -> None:
        address = address.upper()
        self._passwords.pop(address, None)
        self._passwords[address] = password

    def clear(self, address: str) -> bool:
        return self._passwords.pop(address.upper(), None) is not None

    def get_last_connected_device(self) -> Optional[str]:
        return next(reversed(self._passwords), None)

    def get_default(self) -> str:
        return self._default

    def list_addresses(self) -> List[str]:
        return list(reversed(self._passwords))
