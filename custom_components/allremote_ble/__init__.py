"""The ALLREMOTE BLE integration."""
from __future__ import annotations

import logging

from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.typing import ConfigType

from .const import CONF_ADDRESS, DOMAIN
from .coordinator import AllRemoteConfigEntry, AllRemoteCoordinator
from .services import async_setup_services
from .store import async_get_password_store

PLATFORMS: list[Platform] = [
    Platform.BINARY_SENSOR,
    Platform.BUTTON,
    Platform.EVENT,
    Platform.SENSOR,
    Platform.SWITCH,
]

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

_LOGGER = logging.getLogger(__name__)


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the ALLREMOTE BLE services."""
    async_setup_services(hass)
    return True


async def async_setup_entry(hass: HomeAssistant, entry: AllRemoteConfigEntry) -> bool:
    """Set up ALLREMOTE BLE from a config entry.

    Args:
        hass: Home Assistant instance
        entry: Config entry

    Returns:
        True if setup successful
    """
    address = entry.data[CONF_ADDRESS]

    password_store = await async_get_password_store(hass)
    if password_store.get(address) is None:
        raise ConfigEntryAuthFailed(f"No password stored for {address}")

    coordinator = AllRemoteCoordinator(hass, entry, password_store)
    entry.runtime_data = coordinator

    # Forward to platform setup
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Reload when the options change
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    await coordinator.async_start()

    _LOGGER.info("ALLREMOTE BLE integration setup complete for %s", address)
    return True


async def _async_update_listener(hass: HomeAssistant, entry: AllRemoteConfigEntry) -> None:
    """Apply new options by reloading the entry."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: AllRemoteConfigEntry) -> bool:
    """Unload a config entry.

    Args:
        hass: Home Assistant instance
        entry: Config entry

    Returns:
        True if unload successful
    """
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        await entry.runtime_data.async_stop()
    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: AllRemoteConfigEntry) -> None:
    """Forget the stored password when the module is removed."""
    password_store = await async_get_password_store(hass)
    password_store.clear(entry.data[CONF_ADDRESS])
