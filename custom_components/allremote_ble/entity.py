"""Base entity for ALLREMOTE BLE integration."""

from __future__ import annotations

from homeassistant.core import callback
from homeassistant.helpers.device_registry import CONNECTION_BLUETOOTH, DeviceInfo
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import Entity

from .allremote import RemoteStatus
from .const import DOMAIN, MANUFACTURER, MODEL_NAME
from .coordinator import AllRemoteCoordinator


class AllRemoteEntity(Entity):
    """Base class for ALLREMOTE entities."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(self, coordinator: AllRemoteCoordinator, key: str) -> None:
        """Initialize the entity."""
        self.coordinator = coordinator
        self._attr_unique_id = f"{coordinator.address}_{key}"
        self._attr_device_info = DeviceInfo(
            connections={(CONNECTION_BLUETOOTH, coordinator.address)},
            identifiers={(DOMAIN, coordinator.address)},
            manufacturer=MANUFACTURER,
            name=coordinator.device_name,
            model=MODEL_NAME,
        )

    @property
    def available(self) -> bool:
        """Return whether the entity is available."""
        return self.coordinator.available

    async def async_added_to_hass(self) -> None:
        """Subscribe to status snapshots."""
        await super().async_added_to_hass()
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass, self.coordinator.signal, self._handle_status
            )
        )

    @callback
    def _handle_status(self, status: RemoteStatus) -> None:
        """Handle a new status snapshot."""
        self.async_write_ha_state()
