"""Event platform for ALLREMOTE BLE integration."""
from __future__ import annotations

import logging

from homeassistant.components.event import EventDeviceClass, EventEntity
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .allremote import RemoteStatus
from .const import EVENT_TYPE_PRESSED, EVENT_TYPE_RELEASED, EVENT_TYPES
from .coordinator import AllRemoteConfigEntry, AllRemoteCoordinator
from .entity import AllRemoteEntity

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: AllRemoteConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the key report event entity from a config entry."""
    async_add_entities([AllRemoteKeyEvent(entry.runtime_data)])


class AllRemoteKeyEvent(AllRemoteEntity, EventEntity):
    """Event entity for key reports sent by the module."""

    _attr_device_class = EventDeviceClass.BUTTON
    _attr_event_types = EVENT_TYPES
    _attr_translation_key = "keys"

    def __init__(self, coordinator: AllRemoteCoordinator) -> None:
        """Initialize the event entity."""
        super().__init__(coordinator, "key_event")
        self._last_keys = coordinator.status.reported_keys

    @callback
    def _handle_status(self, status: RemoteStatus) -> None:
        """Trigger an event when the reported key set changes."""
        if status.reported_keys == self._last_keys:
            self.async_write_ha_state()
            return

        self._last_keys = status.reported_keys
        if not status.is_connected:
            self.async_write_ha_state()
            return

        keys = sorted(status.reported_keys, key=lambda k: k.index)
        event_type = EVENT_TYPE_PRESSED if keys else EVENT_TYPE_RELEASED
        _LOGGER.debug("Triggering %s for %s", event_type, [key.value for key in keys])
        self._trigger_event(
            event_type,
            {
                "keys": [key.value for key in keys],
                "labels": [key.label for key in keys],
            },
        )
        self.async_write_ha_state()
