"""Services for the ALLREMOTE BLE integration."""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import config_validation as cv

from .allremote import Command, ValidationError, parse_keys
from .allremote.const import PASSWORD_LENGTH
from .const import (
    ATTR_COMMAND,
    ATTR_CONFIG_ENTRY_ID,
    ATTR_DURATION,
    ATTR_KEYS,
    CONF_CURRENT_PASSWORD,
    CONF_NEW_PASSWORD,
    CONF_PASSWORD,
    DOMAIN,
    SERVICE_CHANGE_PASSWORD,
    SERVICE_CONNECT,
    SERVICE_DISCONNECT,
    SERVICE_PRESS_KEYS,
    SERVICE_RELEASE_KEYS,
    SERVICE_RETRY_CONNECT,
    SERVICE_SEND_COMMAND,
)
from .coordinator import AllRemoteCoordinator

_LOGGER = logging.getLogger(__name__)


def _keys(value: Any) -> set:
    """Validate key names ("K1", "Up", ...) given as a list or comma separated string."""
    if isinstance(value, str):
        value = value.split(",")
    try:
        return parse_keys(cv.ensure_list(value))
    except ValidationError as err:
        raise vol.Invalid(str(err)) from err


def _command(value: Any) -> int:
    """Validate a command given by name ("module_reboot") or code (1-255)."""
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return Command[value.strip().upper()]
        except KeyError as err:
            raise vol.Invalid(f"Unknown command: {value}") from err
    return vol.All(vol.Coerce(int), vol.Range(min=1, max=255))(value)


_PASSWORD = vol.All(cv.string, vol.Length(min=PASSWORD_LENGTH, max=PASSWORD_LENGTH))

_BASE_SCHEMA = vol.Schema({vol.Required(ATTR_CONFIG_ENTRY_ID): cv.string})

CONNECT_SCHEMA = _BASE_SCHEMA.extend({vol.Optional(CONF_PASSWORD): _PASSWORD})

RETRY_CONNECT_SCHEMA = _BASE_SCHEMA.extend({vol.Required(CONF_PASSWORD): _PASSWORD})

PRESS_KEYS_SCHEMA = _BASE_SCHEMA.extend(
    {
        vol.Required(ATTR_KEYS): _keys,
        vol.Optional(ATTR_DURATION): vol.All(vol.Coerce(float), vol.Range(min=0, max=60)),
    }
)

SEND_COMMAND_SCHEMA = _BASE_SCHEMA.extend({vol.Required(ATTR_COMMAND): _command})

CHANGE_PASSWORD_SCHEMA = _BASE_SCHEMA.extend(
    {
        vol.Required(CONF_CURRENT_PASSWORD): _PASSWORD,
        vol.Required(CONF_NEW_PASSWORD): _PASSWORD,
    }
)


def _get_coordinator(hass: HomeAssistant, call: ServiceCall) -> AllRemoteCoordinator:
    entry_id = call.data[ATTR_CONFIG_ENTRY_ID]
    entry = hass.config_entries.async_get_entry(entry_id)
    if entry is None or entry.domain != DOMAIN:
        raise ServiceValidationError(f"Unknown ALLREMOTE config entry: {entry_id}")
    if entry.state is not ConfigEntryState.LOADED:
        raise ServiceValidationError(f"ALLREMOTE config entry {entry.title} is not loaded")
    return entry.runtime_data


@callback
def async_setup_services(hass: HomeAssistant) -> None:
    """Register the integration services."""

    async def _connect(call: ServiceCall) -> None:
        _get_coordinator(hass, call).connect(call.data.get(CONF_PASSWORD))

    async def _disconnect(call: ServiceCall) -> None:
        _get_coordinator(hass, call).disconnect()

    async def _retry_connect(call: ServiceCall) -> None:
        _get_coordinator(hass, call).retry_connect(call.data[CONF_PASSWORD])

    async def _press_keys(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call)
        await coordinator.async_press_keys(call.data[ATTR_KEYS], call.data.get(ATTR_DURATION))

    async def _release_keys(call: ServiceCall) -> None:
        _get_coordinator(hass, call).release_keys()

    async def _send_command(call: ServiceCall) -> None:
        _get_coordinator(hass, call).send_command(call.data[ATTR_COMMAND])

    async def _change_password(call: ServiceCall) -> None:
        _get_coordinator(hass, call).change_password(
            call.data[CONF_CURRENT_PASSWORD], call.data[CONF_NEW_PASSWORD]
        )

    hass.services.async_register(DOMAIN, SERVICE_CONNECT, _connect, schema=CONNECT_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_DISCONNECT, _disconnect, schema=_BASE_SCHEMA)
    hass.services.async_register(
        DOMAIN, SERVICE_RETRY_CONNECT, _retry_connect, schema=RETRY_CONNECT_SCHEMA
    )
    hass.services.async_register(DOMAIN, SERVICE_PRESS_KEYS, _press_keys, schema=PRESS_KEYS_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_RELEASE_KEYS, _release_keys, schema=_BASE_SCHEMA)
    hass.services.async_register(
        DOMAIN, SERVICE_SEND_COMMAND, _send_command, schema=SEND_COMMAND_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_CHANGE_PASSWORD, _change_password, schema=CHANGE_PASSWORD_SCHEMA
    )
    _LOGGER.debug("Registered %s services", DOMAIN)
