"""Key identifiers, command codes and status codes for the ALLREMOTE protocol."""

from enum import Enum, IntEnum
from typing import Dict, Iterable, Set, Tuple

from ..exceptions import ValidationError


class KeyId(str, Enum):
    """The sixteen remote keys."""

    K1 = "K1"
    K2 = "K2"
    K3 = "K3"
    K4 = "K4"
    K5 = "K5"
    K6 = "K6"
    K7 = "K7"
    K8 = "K8"
    K9 = "K9"
    K10 = "K10"
    K11 = "K11"
    K12 = "K12"
    K13 = "K13"
    K14 = "K14"
    K15 = "K15"
    K16 = "K16"

    @property
    def index(self) -> int:
        """Zero-based bit position across the 16-bit mask."""
        return int(self.value[1:]) - 1

    @property
    def mask(self) -> Tuple[int, int]:
        """(high byte, low byte) carrying this key's bit."""
        return KEY_MAP[self]

    @property
    def label(self) -> str:
        return KEY_LABELS.get(self, self.value)


# Low byte bits 0-7 carry K1-K8, high byte bits 0-7 carry K9-K16.
KEY_MAP: Dict[KeyId, Tuple[int, int]] = {
    key: ((1 << (key.index - 8), 0x00) if key.index >= 8 else (0x00, 1 << key.index))
    for key in KeyId
}

# K16 is only valid on its own; it is dropped from any combination.
EXCLUSIVE_KEY = KeyId.K16

KEY_LABELS: Dict[KeyId, str] = {
    KeyId.K1: "Up",
    KeyId.K2: "Down",
    KeyId.K3: "Left",
    KeyId.K4: "Right",
    KeyId.K5: "Function 1",
    KeyId.K6: "Function 2",
    KeyId.K7: "Function 3",
    KeyId.K8: "Function 4",
}


class Command(IntEnum):
    """Host -> module commands, sent as 0xFF 0xFF <cmd>."""

    REQUEST_KEY_STATE = 0x01
    ENTER_LEARNING = 0x02
    EXIT_LEARNING = 0x03
    DISABLE_BOARD_KEYS = 0x04
    ENABLE_BOARD_KEYS = 0x05
    RESET_PASSWORD = 0x06
    MODULE_REBOOT = 0x07


class StatusCode(Enum):
    """Module -> host status frames, keyed by (byte_a, byte_b)."""

    LINK_UP = (0x00, 0x0A)
    LINK_DOWN = (0x00, 0x0B)
    CREDENTIAL_ACCEPTED = (0xFF, 0x0C)
    CREDENTIAL_REJECTED = (0xFF, 0x0D)


STATUS_BY_BYTES: Dict[Tuple[int, int], StatusCode] = {
    status.value: status for status in StatusCode
}


def parse_key(name: str) -> KeyId:
    """
    Resolve a user supplied key name.

    Accepts identifiers ("K3", "k3") and display labels ("Left").

    Raises:
        ValidationError: If the name matches no key
    """
    text = name.strip()
    try:
        return KeyId(text.upper())
    except ValueError:
        pass
    for key, label in KEY_LABELS.items():
        if label.lower() == text.lower():
            return key
    raise ValidationError(f"Unknown key: {name!r}")


def parse_keys(names: Iterable[str]) -> Set[KeyId]:
    """Resolve several key names at once."""
    return {parse_key(name) for name in names}
