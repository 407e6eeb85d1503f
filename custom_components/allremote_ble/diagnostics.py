"""Diagnostics support for ALLREMOTE BLE integration."""
from __future__ import annotations

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.core import HomeAssistant

from .const import CONF_ADDRESS, CONF_PASSWORD
from .coordinator import AllRemoteConfigEntry

# Keys to redact from diagnostic data
TO_REDACT = {
    CONF_ADDRESS,
    CONF_PASSWORD,
}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: AllRemoteConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry.

    Args:
        hass: Home Assistant instance
        entry: Config entry

    Returns:
        Dictionary with diagnostic data
    """
    coordinator = entry.runtime_data
    data = coordinator.get_diagnostics_data()

    return {
        "entry": {
            "title": entry.title,
            "data": async_redact_data(dict(entry.data), TO_REDACT),
            "options": dict(entry.options),
        },
        "device": async_redact_data(data, TO_REDACT),
    }
