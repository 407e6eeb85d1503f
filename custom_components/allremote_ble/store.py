"""Password store backed by Home Assistant storage."""
from __future__ import annotations

import logging
from typing import Any

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.storage import Store

from .allremote.storage.base import PasswordStore
from .const import DEFAULT_PASSWORD, DOMAIN, STORE_KEY, STORE_SAVE_DELAY, STORE_VERSION

_LOGGER = logging.getLogger(__name__)

DATA_PASSWORD_STORE = "password_store"


class HassPasswordStore(PasswordStore):
    """Remembered module passwords in `.storage/allremote_ble_passwords`.

    The file is loaded once; reads are served from memory and writes are
    saved with a short delay, so the synchronous store interface never
    blocks the event loop.
    """

    def __init__(self, hass: HomeAssistant) -> None:
        """Initialize the store."""
        self._store: Store[dict[str, Any]] = Store(hass, STORE_VERSION, STORE_KEY)
        # Insertion order is save order, most recent last
        self._passwords: dict[str, str] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def async_load(self) -> None:
        """Load stored passwords."""
        if self._loaded:
            return
        data = await self._store.async_load() or {}
        self._passwords = dict(data.get("passwords", {}))
        last = data.get("last_connected")
        if last in self._passwords:
            self._passwords[last] = self._passwords.pop(last)
        self._loaded = True
        _LOGGER.debug("Loaded %d stored module password(s)", len(self._passwords))

    def get(self, address: str) -> str | None:
        return self._passwords.get(address.upper())

    def set(self, address: str, password: str) -> None:
        address = address.upper()
        self._passwords.pop(address, None)
        self._passwords[address] = password
        self._async_schedule_save()

    def clear(self, address: str) -> bool:
        known = self._passwords.pop(address.upper(), None) is not None
        self._async_schedule_save()
        return known

    def get_last_connected_device(self) -> str | None:
        return next(reversed(self._passwords), None)

    def get_default(self) -> str:
        return DEFAULT_PASSWORD

    def list_addresses(self) -> list[str]:
        return list(reversed(self._passwords))

    @callback
    def _async_schedule_save(self) -> None:
        self._store.async_delay_save(self._data_to_save, STORE_SAVE_DELAY)

    @callback
    def _data_to_save(self) -> dict[str, Any]:
        return {
            "passwords": self._passwords,
            "last_connected": self.get_last_connected_device(),
        }


async def async_get_password_store(hass: HomeAssistant) -> HassPasswordStore:
    """Return the loaded store shared by every config entry."""
    domain_data: dict[str, Any] = hass.data.setdefault(DOMAIN, {})
    store: HassPasswordStore | None = domain_data.get(DATA_PASSWORD_STORE)
    if store is None:
        store = domain_data[DATA_PASSWORD_STORE] = HassPasswordStore(hass)
    await store.async_load()
    return store
