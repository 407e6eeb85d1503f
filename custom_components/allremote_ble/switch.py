"""Switch platform for ALLREMOTE BLE integration."""
from __future__ import annotations

from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .coordinator import AllRemoteConfigEntry, AllRemoteCoordinator
from .entity import AllRemoteEntity


async def async_setup_entry(
    hass: HomeAssistant,
    entry: AllRemoteConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the learning mode switch from a config entry."""
    async_add_entities([AllRemoteLearningModeSwitch(entry.runtime_data)])


class AllRemoteLearningModeSwitch(AllRemoteEntity, SwitchEntity):
    """Puts the module into learning mode and takes it out again."""

    _attr_translation_key = "learning_mode"

    def __init__(self, coordinator: AllRemoteCoordinator) -> None:
        """Initialize the switch."""
        super().__init__(coordinator, "learning_mode_switch")

    @property
    def is_on(self) -> bool:
        return self.coordinator.status.learning_mode

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Enter learning mode."""
        self.coordinator.set_learning_mode(True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Exit learning mode."""
        self.coordinator.set_learning_mode(False)
