"""Coordinator for ALLREMOTE BLE integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, TypeAlias

from homeassistant.components import bluetooth
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers.dispatcher import async_dispatcher_send

from .allremote import (
    BleakTransport,
    Command,
    KeyId,
    RemoteClient,
    RemoteStatus,
    SessionTimings,
    ValidationError,
)
from .const import (
    CONF_ADDRESS,
    CONF_AUTH_TIMEOUT,
    CONF_NAME,
    CONF_REPEAT_INTERVAL_MS,
    DEFAULT_AUTH_TIMEOUT,
    DEFAULT_REPEAT_INTERVAL_MS,
    EVENT_KEYS_REPORTED,
    SIGNAL_STATUS_UPDATE,
)
from .store import HassPasswordStore

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry

_LOGGER = logging.getLogger(__name__)


AllRemoteConfigEntry: TypeAlias = "ConfigEntry[AllRemoteCoordinator]"


class AllRemoteCoordinator:
    """Coordinator owning the session with one ALLREMOTE module."""

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        password_store: HassPasswordStore,
    ) -> None:
        """Initialize the coordinator."""
        self.hass = hass
        self.config_entry = config_entry

        # Device information from config entry
        self.address: str = config_entry.data[CONF_ADDRESS]
        self.device_name: str = config_entry.data.get(CONF_NAME) or config_entry.title

        options = config_entry.options
        repeat_interval_ms = options.get(CONF_REPEAT_INTERVAL_MS, DEFAULT_REPEAT_INTERVAL_MS)
        auth_timeout = options.get(CONF_AUTH_TIMEOUT, DEFAULT_AUTH_TIMEOUT)

        self._transport = BleakTransport(
            device_resolver=self._resolve_device,
            rssi_provider=self._last_rssi,
        )
        self.client = RemoteClient(
            self._transport,
            password_store=password_store,
            timings=SessionTimings(auth_timeout=auth_timeout),
            repeat_interval=repeat_interval_ms / 1000,
        )
        self._status = self.client.status
        self._started = False

        # Set up callbacks
        self._remove_listener = self.client.add_listener(self._handle_status)
        self.client.on_authentication_rejected = self._handle_authentication_rejected
        self.client.on_password_changed = self._handle_password_changed

    @property
    def status(self) -> RemoteStatus:
        """Return the latest session snapshot."""
        return self._status

    @property
    def available(self) -> bool:
        """Return whether the module is connected and authenticated."""
        return self._status.is_connected

    @property
    def signal(self) -> str:
        """Dispatcher signal carrying status snapshots for this module."""
        return f"{SIGNAL_STATUS_UPDATE}_{self.address}"

    async def async_start(self) -> None:
        """Start the coordinator and connect once."""
        _LOGGER.debug("Starting ALLREMOTE coordinator for %s", self.address)

        # RSSI follows the advertisements seen by Home Assistant
        self.config_entry.async_on_unload(
            bluetooth.async_register_callback(
                self.hass,
                self._handle_advertisement,
                bluetooth.BluetoothCallbackMatcher(address=self.address),
                bluetooth.BluetoothScanningMode.PASSIVE,
            )
        )

        if not self._started:
            self._started = True
            self.client.connect(self.address, remember=True)

    async def async_stop(self) -> None:
        """Stop the coordinator."""
        _LOGGER.debug("Stopping ALLREMOTE coordinator for %s", self.address)
        self._remove_listener()
        self.client.close()

    @callback
    def _resolve_device(self, address: str):
        return bluetooth.async_ble_device_from_address(self.hass, address, connectable=True)

    @callback
    def _last_rssi(self, address: str) -> int | None:
        service_info = bluetooth.async_last_service_info(self.hass, address, connectable=False)
        return service_info.rssi if service_info else None

    @callback
    def _handle_advertisement(
        self,
        service_info: bluetooth.BluetoothServiceInfoBleak,
        change: bluetooth.BluetoothChange,
    ) -> None:
        """Sample RSSI while a session is open."""
        if self._transport.is_open and service_info.rssi != self._status.rssi:
            self._transport.request_rssi()

    @callback
    def _handle_status(self, status: RemoteStatus) -> None:
        """Republish a snapshot from the client."""
        previous = self._status
        self._status = status

        if status.connection_state != previous.connection_state:
            _LOGGER.debug(
                "Connection state for %s: %s", self.address, status.connection_state.name
            )

        if status.reported_keys != previous.reported_keys and status.is_connected:
            self.hass.bus.async_fire(
                EVENT_KEYS_REPORTED,
                {
                    CONF_ADDRESS: self.address,
                    "keys": [key.value for key in sorted(status.reported_keys, key=lambda k: k.index)],
                },
            )

        async_dispatcher_send(self.hass, self.signal, status)

    @callback
    def _handle_authentication_rejected(self, address: str) -> None:
        _LOGGER.warning("Module %s rejected the stored password", address)
        self.config_entry.async_start_reauth(self.hass)

    @callback
    def _handle_password_changed(self, address: str) -> None:
        _LOGGER.info("Password of %s changed, asking for the new one", address)
        self.config_entry.async_start_reauth(self.hass)

    def _check(self, result: bool) -> None:
        if result:
            return
        err = self.client.machine.last_error
        if err is None:
            raise HomeAssistantError(f"Operation on {self.address} failed")
        if isinstance(err, ValidationError):
            raise ServiceValidationError(str(err)) from err
        raise HomeAssistantError(str(err)) from err

    # Service actions

    def connect(self, password: str | None = None) -> None:
        self._check(self.client.connect(self.address, password, remember=True))

    def disconnect(self) -> None:
        self.client.disconnect()

    def retry_connect(self, password: str, delay: float = 0.0) -> None:
        self._check(self.client.retry_with_password(password, delay=delay))

    async def async_press_keys(self, keys: Iterable[KeyId], duration: float | None = None) -> None:
        if duration is not None:
            self._check(await self.client.hold_keys(keys, duration))
        else:
            self._check(self.client.press_keys(keys))

    def release_keys(self) -> None:
        self._check(self.client.release_all())

    def send_command(self, command: Command | int) -> None:
        if command == Command.ENTER_LEARNING:
            self._check(self.client.enter_learning_mode())
        elif command == Command.EXIT_LEARNING:
            self._check(self.client.exit_learning_mode())
        else:
            self._check(self.client.send_command(command))

    def set_learning_mode(self, enabled: bool) -> None:
        if enabled:
            self._check(self.client.enter_learning_mode())
        else:
            self._check(self.client.exit_learning_mode())

    def change_password(self, current_password: str, new_password: str) -> None:
        self._check(self.client.change_password(current_password, new_password))

    def get_diagnostics_data(self) -> dict[str, Any]:
        """Return diagnostics data."""
        return {
            "address": self.address,
            "device_name": self.device_name,
            "available": self.available,
            "has_stored_password": self.client.password_store.get(self.address) is not None,
            "held_keys": sorted(key.value for key in self.client.repeater.held_keys),
            "repeat_interval": self.client.repeater.interval,
            "status": self._status.as_dict(),
        }
