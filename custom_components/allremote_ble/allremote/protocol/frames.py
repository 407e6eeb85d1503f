"""Frame encoding and decoding for the ALLREMOTE protocol.

Every payload on the data characteristic is a 3 byte frame::

    0xFF <byte_a> <byte_b>

Key frames carry a 16 bit key mask (byte_a = high byte, byte_b = low byte),
command frames use byte_a = 0xFF, and four reserved byte pairs signal link
and credential status from the module.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Union

from .keys import EXCLUSIVE_KEY, KEY_MAP, STATUS_BY_BYTES, KeyId, StatusCode
from ..const import (
    COMMAND_MARKER,
    FRAME_HEAD,
    FRAME_LENGTH,
    PASSWORD_CHANGE_HEADER,
    PASSWORD_LENGTH,
)
from ..exceptions import ProtocolError, ValidationError


_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """Raw 3 byte frame."""
    head: int
    byte_a: int
    byte_b: int

    def to_bytes(self) -> bytes:
        return bytes([self.head, self.byte_a, self.byte_b])

    @classmethod
    def from_bytes(cls, data: bytes) -> "Frame":
        """
        Parse a raw frame.

        Raises:
            ProtocolError: If the length or head byte is wrong
        """
        if len(data) != FRAME_LENGTH:
            raise ProtocolError(f"Frame must be {FRAME_LENGTH} bytes, got {len(data)}")
        if data[0] != FRAME_HEAD:
            raise ProtocolError(f"Bad frame head: {data[0]:#04x}")
        return cls(data[0], data[1], data[2])


@dataclass(frozen=True)
class StatusFrame:
    """Link or credential status reported by the module."""
    status: StatusCode


@dataclass(frozen=True)
class KeyDataFrame:
    """Keys the module reports as held."""
    keys: FrozenSet[KeyId]


DecodedFrame = Union[StatusFrame, KeyDataFrame]


def apply_exclusive_key_rule(keys: Iterable[KeyId]) -> FrozenSet[KeyId]:
    """Drop K16 when it is combined with any other key."""
    keys = frozenset(keys)
    if EXCLUSIVE_KEY in keys and len(keys) > 1:
        return keys - {EXCLUSIVE_KEY}
    return keys


def composite_mask(keys: Iterable[KeyId]) -> tuple:
    """OR together the (high, low) bytes of each key."""
    high = 0
    low = 0
    for key in keys:
        key_high, key_low = KEY_MAP[key]
        high |= key_high
        low |= key_low
    return high, low


def encode_key_frame(keys: Iterable[KeyId]) -> bytes:
    """Encode the composite frame for a set of held keys."""
    high, low = composite_mask(apply_exclusive_key_rule(keys))
    return Frame(FRAME_HEAD, high, low).to_bytes()


def encode_release_frame() -> bytes:
    """
    Encode the all-keys-up frame.

    The module does not acknowledge it, so callers send it twice.
    """
    return Frame(FRAME_HEAD, 0x00, 0x00).to_bytes()


def encode_command_frame(cmd: int) -> bytes:
    """Encode a control command (learning mode, board keys, reboot, ...)."""
    if not 0 <= int(cmd) <= 0xFF:
        raise ValidationError(f"Command must fit in one byte, got {cmd}")
    return Frame(FRAME_HEAD, COMMAND_MARKER, int(cmd)).to_bytes()


def is_held_key_frame(data: bytes) -> bool:
    """
    Check for an outbound key frame with at least one key held.

    The module acts on the latest such frame only, so a newer one supersedes
    it. Release, command and credential frames never match.
    """
    return (
        len(data) == FRAME_LENGTH
        and data[0] == FRAME_HEAD
        and data[1] != COMMAND_MARKER
        and (data[1] | data[2]) != 0
    )


def validate_password(password: Optional[str]) -> str:
    """
    Check a module password.

    Raises:
        ValidationError: If the password is not exactly 6 ASCII characters
    """
    if not password or len(password) != PASSWORD_LENGTH:
        raise ValidationError(f"Password must be {PASSWORD_LENGTH} characters")
    if not password.isascii():
        raise ValidationError("Password must only contain ASCII characters")
    return password


def encode_auth_frame(password: str) -> bytes:
    """Encode the authentication payload: the raw password bytes."""
    return validate_password(password).encode("utf-8")


def encode_password_change(new_password: str) -> bytes:
    """
    Encode a password change command.

    Format: 0xAA 0x2D 0xD4 + 6 password bytes (9 bytes total).
    """
    return PASSWORD_CHANGE_HEADER + validate_password(new_password).encode("utf-8")


def decode_keys(high: int, low: int) -> FrozenSet[KeyId]:
    """Decode a key mask into the set of held keys."""
    pressed = set()
    for key, (key_high, key_low) in KEY_MAP.items():
        hit_high = key_high != 0 and (high & key_high) != 0
        hit_low = key_low != 0 and (low & key_low) != 0
        if hit_high or hit_low:
            pressed.add(key)
    return frozenset(pressed)


def decode(data: bytes) -> Optional[DecodedFrame]:
    """
    Decode an inbound frame.

    Returns:
        StatusFrame for the reserved byte pairs, KeyDataFrame for anything
        else, None when the data is not a frame at all (wrong length or head).
        Never raises.
    """
    if data is None:
        return None
    try:
        frame = Frame.from_bytes(bytes(data))
    except ProtocolError as err:
        _LOGGER.debug("Ignoring %s: %s", bytes(data).hex(), err)
        return None

    status = STATUS_BY_BYTES.get((frame.byte_a, frame.byte_b))
    if status is not None:
        return StatusFrame(status)

    return KeyDataFrame(decode_keys(frame.byte_a, frame.byte_b))
