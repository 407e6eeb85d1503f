"""Binary sensor platform for ALLREMOTE BLE integration."""
from __future__ import annotations

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .coordinator import AllRemoteConfigEntry, AllRemoteCoordinator
from .entity import AllRemoteEntity


async def async_setup_entry(
    hass: HomeAssistant,
    entry: AllRemoteConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up ALLREMOTE binary sensors from a config entry."""
    coordinator = entry.runtime_data
    async_add_entities(
        [
            AllRemoteConnectionSensor(coordinator),
            AllRemoteLearningModeSensor(coordinator),
        ]
    )


class AllRemoteConnectionSensor(AllRemoteEntity, BinarySensorEntity):
    """Binary sensor showing whether the module is connected and authenticated."""

    _attr_device_class = BinarySensorDeviceClass.CONNECTIVITY
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_translation_key = "connection"

    def __init__(self, coordinator: AllRemoteCoordinator) -> None:
        """Initialize the connection sensor."""
        super().__init__(coordinator, "connection")

    @property
    def is_on(self) -> bool:
        return self.coordinator.status.is_connected

    @property
    def available(self) -> bool:
        """The connection sensor is always available, it reports the link itself."""
        return True


class AllRemoteLearningModeSensor(AllRemoteEntity, BinarySensorEntity):
    """Binary sensor showing whether the module is in learning mode."""

    _attr_translation_key = "learning_mode"

    def __init__(self, coordinator: AllRemoteCoordinator) -> None:
        """Initialize the learning mode sensor."""
        super().__init__(coordinator, "learning_mode")

    @property
    def is_on(self) -> bool:
        return self.coordinator.status.learning_mode
