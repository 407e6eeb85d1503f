"""Config flow for ALLREMOTE BLE integration."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.components import bluetooth
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult

from .allremote.connection.scanner import is_remote_module
from .allremote.exceptions import ValidationError
from .allremote.protocol.frames import validate_password
from .const import (
    CONF_ADDRESS,
    CONF_AUTH_TIMEOUT,
    CONF_NAME,
    CONF_PASSWORD,
    CONF_REPEAT_INTERVAL_MS,
    DEFAULT_AUTH_TIMEOUT,
    DEFAULT_PASSWORD,
    DEFAULT_REPEAT_INTERVAL_MS,
    DOMAIN,
    MAX_AUTH_TIMEOUT,
    MAX_REPEAT_INTERVAL_MS,
    MIN_AUTH_TIMEOUT,
    MIN_REPEAT_INTERVAL_MS,
)
from .store import async_get_password_store

_LOGGER = logging.getLogger(__name__)


def _short_name(address: str) -> str:
    return f"ALLREMOTE {address[-8:].replace(':', '')}"


class AllRemoteConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for ALLREMOTE BLE."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self._discovered_devices: dict[str, str] = {}
        self._address: str | None = None
        self._name: str | None = None

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> AllRemoteOptionsFlow:
        """Return the options flow."""
        return AllRemoteOptionsFlow()

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Handle the initial step - discover ALLREMOTE modules."""
        if user_input is not None:
            address = user_input[CONF_ADDRESS]
            await self.async_set_unique_id(address, raise_on_progress=False)
            self._abort_if_unique_id_configured()
            self._address = address
            self._name = self._discovered_devices.get(address, _short_name(address))
            return await self.async_step_password()

        # Check if Bluetooth is available
        if not bluetooth.async_scanner_count(self.hass, connectable=True):
            return self.async_abort(reason="bluetooth_not_available")

        current_addresses = self._async_current_ids(include_ignore=False)
        for service_info in bluetooth.async_discovered_service_info(
            self.hass, connectable=True
        ):
            if service_info.address in current_addresses:
                continue
            if not is_remote_module(service_info.name):
                continue
            self._discovered_devices[service_info.address] = service_info.name
            _LOGGER.debug(
                "Found module: %s (%s)", service_info.name, service_info.address
            )

        if not self._discovered_devices:
            return self.async_abort(reason="no_devices_found")

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_ADDRESS): vol.In(
                        {
                            address: f"{name} ({address})"
                            for address, name in self._discovered_devices.items()
                        }
                    )
                }
            ),
        )

    async def async_step_bluetooth(
        self, discovery_info: bluetooth.BluetoothServiceInfoBleak
    ) -> FlowResult:
        """Handle Bluetooth discovery."""
        _LOGGER.debug("Bluetooth discovery: %s", discovery_info)

        if not is_remote_module(discovery_info.name):
            return self.async_abort(reason="not_supported")

        await self.async_set_unique_id(discovery_info.address)
        self._abort_if_unique_id_configured()

        self._address = discovery_info.address
        self._name = discovery_info.name or _short_name(discovery_info.address)
        self.context["title_placeholders"] = {"name": self._name}

        return await self.async_step_bluetooth_confirm()

    async def async_step_bluetooth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Confirm Bluetooth discovery."""
        if user_input is None:
            self._set_confirm_only()
            return self.async_show_form(
                step_id="bluetooth_confirm",
                description_placeholders={"name": self._name},
            )
        return await self.async_step_password()

    async def async_step_password(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Ask for the 6 character module password."""
        errors: dict[str, str] = {}
        assert self._address is not None

        if user_input is not None:
            try:
                password = validate_password(user_input[CONF_PASSWORD])
            except ValidationError:
                errors[CONF_PASSWORD] = "invalid_password"
            else:
                store = await async_get_password_store(self.hass)
                store.set(self._address, password)
                return self.async_create_entry(
                    title=self._name or _short_name(self._address),
                    data={CONF_ADDRESS: self._address, CONF_NAME: self._name},
                )

        return self.async_show_form(
            step_id="password",
            data_schema=vol.Schema(
                {vol.Required(CONF_PASSWORD, default=DEFAULT_PASSWORD): str}
            ),
            description_placeholders={"name": self._name or self._address},
            errors=errors,
        )

    async def async_step_reauth(
        self, entry_data: Mapping[str, Any]
    ) -> FlowResult:
        """Handle a rejected or changed module password."""
        self._address = entry_data[CONF_ADDRESS]
        self._name = entry_data.get(CONF_NAME) or _short_name(self._address)
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Ask for the current module password again."""
        errors: dict[str, str] = {}
        assert self._address is not None

        if user_input is not None:
            try:
                password = validate_password(user_input[CONF_PASSWORD])
            except ValidationError:
                errors[CONF_PASSWORD] = "invalid_password"
            else:
                store = await async_get_password_store(self.hass)
                store.set(self._address, password)
                return self.async_update_reload_and_abort(self._get_reauth_entry())

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=vol.Schema({vol.Required(CONF_PASSWORD): str}),
            description_placeholders={"name": self._name},
            errors=errors,
        )


class AllRemoteOptionsFlow(config_entries.OptionsFlow):
    """Handle ALLREMOTE BLE options."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage key repeat and authentication timing."""
        if user_input is not None:
            return self.async_create_entry(data=user_input)

        options = self.config_entry.options
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_REPEAT_INTERVAL_MS,
                        default=options.get(CONF_REPEAT_INTERVAL_MS, DEFAULT_REPEAT_INTERVAL_MS),
                    ): vol.All(
                        vol.Coerce(int),
                        vol.Range(min=MIN_REPEAT_INTERVAL_MS, max=MAX_REPEAT_INTERVAL_MS),
                    ),
                    vol.Required(
                        CONF_AUTH_TIMEOUT,
                        default=options.get(CONF_AUTH_TIMEOUT, DEFAULT_AUTH_TIMEOUT),
                    ): vol.All(
                        vol.Coerce(float),
                        vol.Range(min=MIN_AUTH_TIMEOUT, max=MAX_AUTH_TIMEOUT),
                    ),
                }
            ),
        )
