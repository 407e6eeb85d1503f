"""Button platform for ALLREMOTE BLE integration."""
from __future__ import annotations

from dataclasses import dataclass

from homeassistant.components.button import (
    ButtonDeviceClass,
    ButtonEntity,
    ButtonEntityDescription,
)
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .allremote import Command
from .coordinator import AllRemoteConfigEntry, AllRemoteCoordinator
from .entity import AllRemoteEntity


@dataclass(frozen=True, kw_only=True)
class AllRemoteButtonEntityDescription(ButtonEntityDescription):
    """Describes a button sending one module command."""

    command: Command


BUTTON_TYPES: tuple[AllRemoteButtonEntityDescription, ...] = (
    AllRemoteButtonEntityDescription(
        key="request_key_state",
        translation_key="request_key_state",
        command=Command.REQUEST_KEY_STATE,
    ),
    AllRemoteButtonEntityDescription(
        key="enable_board_keys",
        translation_key="enable_board_keys",
        entity_category=EntityCategory.CONFIG,
        command=Command.ENABLE_BOARD_KEYS,
    ),
    AllRemoteButtonEntityDescription(
        key="disable_board_keys",
        translation_key="disable_board_keys",
        entity_category=EntityCategory.CONFIG,
        command=Command.DISABLE_BOARD_KEYS,
    ),
    AllRemoteButtonEntityDescription(
        key="reboot_module",
        device_class=ButtonDeviceClass.RESTART,
        entity_category=EntityCategory.CONFIG,
        command=Command.MODULE_REBOOT,
    ),
    AllRemoteButtonEntityDescription(
        key="reset_module_password",
        translation_key="reset_module_password",
        entity_category=EntityCategory.CONFIG,
        entity_registry_enabled_default=False,
        command=Command.RESET_PASSWORD,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: AllRemoteConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up ALLREMOTE command buttons from a config entry."""
    coordinator = entry.runtime_data
    async_add_entities(
        AllRemoteButton(coordinator, description) for description in BUTTON_TYPES
    )


class AllRemoteButton(AllRemoteEntity, ButtonEntity):
    """Button sending a control command to the module."""

    entity_description: AllRemoteButtonEntityDescription

    def __init__(
        self,
        coordinator: AllRemoteCoordinator,
        description: AllRemoteButtonEntityDescription,
    ) -> None:
        """Initialize the button."""
        super().__init__(coordinator, description.key)
        self.entity_description = description

    async def async_press(self) -> None:
        """Send the command."""
        self.coordinator.send_command(self.entity_description.command)
