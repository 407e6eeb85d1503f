"""Sensor platform for ALLREMOTE BLE integration."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import SIGNAL_STRENGTH_DECIBELS_MILLIWATT
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .allremote import ConnectionState, RemoteStatus
from .coordinator import AllRemoteConfigEntry, AllRemoteCoordinator
from .entity import AllRemoteEntity

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AllRemoteSensorEntityDescription(SensorEntityDescription):
    """Describes an ALLREMOTE sensor."""

    value_fn: Callable[[RemoteStatus], str | int | None]
    always_available: bool = False


def _reported_keys(status: RemoteStatus) -> str:
    if not status.reported_keys:
        return "none"
    return ", ".join(
        key.label for key in sorted(status.reported_keys, key=lambda k: k.index)
    )


# Sensor entity descriptions
SENSOR_TYPES: tuple[AllRemoteSensorEntityDescription, ...] = (
    AllRemoteSensorEntityDescription(
        key="connection_state",
        translation_key="connection_state",
        device_class=SensorDeviceClass.ENUM,
        options=[state.name.lower() for state in ConnectionState],
        value_fn=lambda status: status.connection_state.name.lower(),
        always_available=True,
    ),
    AllRemoteSensorEntityDescription(
        key="rssi",
        translation_key="rssi",
        device_class=SensorDeviceClass.SIGNAL_STRENGTH,
        native_unit_of_measurement=SIGNAL_STRENGTH_DECIBELS_MILLIWATT,
        state_class=SensorStateClass.MEASUREMENT,
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=lambda status: status.rssi,
    ),
    AllRemoteSensorEntityDescription(
        key="reported_keys",
        translation_key="reported_keys",
        value_fn=_reported_keys,
    ),
    AllRemoteSensorEntityDescription(
        key="reconnect_attempts",
        translation_key="reconnect_attempts",
        state_class=SensorStateClass.MEASUREMENT,
        entity_category=EntityCategory.DIAGNOSTIC,
        entity_registry_enabled_default=False,
        value_fn=lambda status: status.reconnect_attempts,
        always_available=True,
    ),
    AllRemoteSensorEntityDescription(
        key="last_error",
        translation_key="last_error",
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=lambda status: status.error_message,
        always_available=True,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: AllRemoteConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up ALLREMOTE sensors from a config entry."""
    coordinator = entry.runtime_data
    async_add_entities(
        AllRemoteSensor(coordinator, description) for description in SENSOR_TYPES
    )


class AllRemoteSensor(AllRemoteEntity, SensorEntity):
    """Sensor entity exposing one field of the session status."""

    entity_description: AllRemoteSensorEntityDescription

    def __init__(
        self,
        coordinator: AllRemoteCoordinator,
        description: AllRemoteSensorEntityDescription,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator, description.key)
        self.entity_description = description

    @property
    def native_value(self) -> str | int | None:
        """Return the sensor value."""
        return self.entity_description.value_fn(self.coordinator.status)

    @property
    def available(self) -> bool:
        """Connection state and errors are reported even while disconnected."""
        return self.entity_description.always_available or super().available
