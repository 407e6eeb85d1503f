"""Custom exceptions for the ALLREMOTE BLE protocol."""


class AllRemoteError(Exception):
    """Base exception for ALLREMOTE errors."""


class TransportError(AllRemoteError):
    """Link open or write failure."""


class TimeoutError(AllRemoteError):
    """Connection or authentication timed out."""


class AuthenticationRejected(AllRemoteError):
    """Module dropped the link while the password was being checked."""


class ProtocolError(AllRemoteError):
    """Malformed frame."""


class ValidationError(AllRemoteError):
    """Input rejected locally before anything was transmitted."""


class StorageError(AllRemoteError):
    """Error accessing password storage."""


class NotConnectedError(AllRemoteError):
    """Attempted operation requiring an authenticated link."""
