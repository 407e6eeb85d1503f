"""Protocol layer for ALLREMOTE BLE communication."""

from .auth import AuthenticationPolicy, AuthVerdict, ExplicitAckPolicy
from .frames import (
    Frame,
    KeyDataFrame,
    StatusFrame,
    decode,
    encode_auth_frame,
    encode_command_frame,
    encode_key_frame,
    encode_password_change,
    encode_release_frame,
)
from .keys import Command, KeyId, StatusCode, parse_key, parse_keys
from .repeater import KeyRepeater
from .state_machine import ConnectionStateMachine, SessionTimings

__all__ = [
    "AuthenticationPolicy",
    "AuthVerdict",
    "ExplicitAckPolicy",
    "Frame",
    "KeyDataFrame",
    "StatusFrame",
    "decode",
    "encode_auth_frame",
    "encode_command_frame",
    "encode_key_frame",
    "encode_password_change",
    "encode_release_frame",
    "Command",
    "KeyId",
    "StatusCode",
    "parse_key",
    "parse_keys",
    "KeyRepeater",
    "ConnectionStateMachine",
    "SessionTimings",
]
