"""Connection and authentication state machine for the ALLREMOTE protocol."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Optional

from .auth import AuthenticationPolicy, AuthVerdict
from .frames import (
    KeyDataFrame,
    StatusFrame,
    decode,
    encode_auth_frame,
    encode_password_change,
    validate_password,
)
from .keys import KeyId, StatusCode
from ..const import (
    DEFAULT_AUTH_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DISCOVERY_SETTLE_DELAY,
    LINK_SETTLE_DELAY,
    MAX_RECONNECT_ATTEMPTS,
    RECONNECT_DELAY,
)
from ..exceptions import (
    AllRemoteError,
    AuthenticationRejected,
    NotConnectedError,
    StorageError,
    TimeoutError,
    TransportError,
    ValidationError,
)
from ..models import ConnectionState, Event, SessionContext, SessionEvent
from ..storage.base import MemoryPasswordStore, PasswordStore

if TYPE_CHECKING:
    from ..connection.transport import Transport


_LOGGER = logging.getLogger(__name__)

MSG_CONNECTION_TIMEOUT = "Connection timeout, check that the device is in range"
MSG_AUTH_SEND_FAILED = "Failed to send authentication password"
MSG_AUTH_REJECTED = "Authentication failed, password may be incorrect"
MSG_PASSWORD_INCORRECT = "Password incorrect"
MSG_PASSWORD_CORRECT = "Password correct"
MSG_NOT_CONNECTED = "Device not connected, cannot change password"
MSG_NO_TARGET = "Connection information missing"
MSG_CURRENT_PASSWORD_WRONG = "Current password is incorrect"
MSG_PASSWORD_CHANGED = "Password changed, device removed. Scan again to reconnect"
MSG_PASSWORD_CHANGE_FAILED = "Password change failed"
MSG_RECONNECT_EXHAUSTED = "Reconnect attempts exhausted"


@dataclass
class SessionTimings:
    """Delays and retry limits used by the state machine (seconds)."""
    connection_timeout: float = DEFAULT_CONNECT_TIMEOUT
    auth_timeout: float = DEFAULT_AUTH_TIMEOUT
    link_settle: float = LINK_SETTLE_DELAY
    discovery_settle: float = DISCOVERY_SETTLE_DELAY
    reconnect_delay: float = RECONNECT_DELAY
    max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS


class ConnectionStateMachine:
    """
    Lifecycle of one remote module session.

    Disconnected -> Connecting -> Authenticating -> Connected, plus
    Reconnecting for explicit retries. Transport callbacks and timers are all
    turned into `Event`s and fed to `handle_event`, one at a time, on the
    event loop that started the connection.

    Timers are cancellable loop callbacks. Each connection attempt gets a
    sequence number, and a timer or transport event belonging to an older
    attempt is dropped when it runs.
    """

    def __init__(
        self,
        transport: "Transport",
        password_store: Optional[PasswordStore] = None,
        timings: Optional[SessionTimings] = None,
        policy: Optional[AuthenticationPolicy] = None,
    ):
        """
        Initialize the state machine.

        Args:
            transport: Link to the module; its events are routed to `post`
            password_store: Remembered passwords (in-memory if omitted)
            timings: Delay overrides
            policy: Authentication outcome policy (timeout-as-success if omitted)
        """
        self._transport = transport
        self._transport.set_listener(self.post)
        self._store = password_store or MemoryPasswordStore()
        self._timings = timings or SessionTimings()
        self._policy = policy or AuthenticationPolicy()

        self._ctx = SessionContext()
        self._state = ConnectionState.DISCONNECTED
        self._error_message: Optional[str] = None
        self._last_error: Optional[AllRemoteError] = None
        self._rssi: Optional[int] = None
        self._reported_keys: FrozenSet[KeyId] = frozenset()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._attempt = 0
        # Connection timeout, auth timeout and reconnect delay share one slot
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._delay_handle: Optional[asyncio.TimerHandle] = None

        self._handlers: Dict[SessionEvent, Callable[[Event], None]] = {
            SessionEvent.LINK_ESTABLISHED: self._on_link_established,
            SessionEvent.LINK_SETTLED: self._on_link_settled,
            SessionEvent.LINK_FAILED: self._on_link_failed,
            SessionEvent.LINK_LOST: self._on_link_lost,
            SessionEvent.DISCOVERY_COMPLETE: self._on_discovery_complete,
            SessionEvent.DISCOVERY_FAILED: self._on_discovery_failed,
            SessionEvent.DISCOVERY_SETTLED: self._on_discovery_settled,
            SessionEvent.CONNECTION_TIMEOUT: self._on_connection_timeout,
            SessionEvent.AUTH_TIMEOUT: self._on_auth_timeout,
            SessionEvent.RECONNECT_DUE: self._on_reconnect_due,
            SessionEvent.DATA_RECEIVED: self._on_data_received,
            SessionEvent.RSSI_SAMPLE: self._on_rssi_sample,
        }

        # Callbacks
        self.on_connection_state_changed: Optional[Callable[[ConnectionState], None]] = None
        self.on_error: Optional[Callable[[Optional[str]], None]] = None
        self.on_keys_reported: Optional[Callable[[FrozenSet[KeyId]], None]] = None
        self.on_rssi: Optional[Callable[[int], None]] = None
        self.on_authentication_rejected: Optional[Callable[[str], None]] = None
        self.on_password_changed: Optional[Callable[[str], None]] = None

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @state.setter
    def state(self, state: ConnectionState):
        """Set connection state and notify."""
        if self._state != state:
            _LOGGER.debug(f"Connection state: {self._state.name} -> {state.name}")
            self._state = state
            if self.on_connection_state_changed:
                self.on_connection_state_changed(state)

    @property
    def address(self) -> Optional[str]:
        return self._ctx.address

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def rssi(self) -> Optional[int]:
        return self._rssi

    @property
    def reported_keys(self) -> FrozenSet[KeyId]:
        return self._reported_keys

    @property
    def reconnect_attempts(self) -> int:
        return self._ctx.reconnect_attempts

    @property
    def awaiting_auth_response(self) -> bool:
        return self._ctx.awaiting_auth_response

    @property
    def password_store(self) -> PasswordStore:
        return self._store

    @property
    def last_error(self) -> Optional[AllRemoteError]:
        """The failure behind `error_message`, None for informational messages."""
        return self._last_error

    def report_error(self, error: AllRemoteError):
        """Surface a failure raised outside the machine (e.g. rejected input)."""
        self._report_error(error)

    def clear_error(self):
        self._report(None)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def connect(
        self,
        address: str,
        password: Optional[str] = None,
        remember: bool = False,
    ) -> bool:
        """
        Start connecting to a module.

        Args:
            address: Bluetooth address of the module
            password: Module password; falls back to the stored password for
                the address, then to the store's default password
            remember: Store the password once authentication succeeds

        Returns:
            True if a connection attempt was started
        """
        if not address:
            self._report_error(ValidationError("No target device"))
            return False

        password = password or self._stored_password(address) or self._store.get_default()
        try:
            validate_password(password)
        except ValidationError as err:
            self._report_error(err)
            return False

        self._teardown_link()
        self._ctx.reset()
        self._ctx.address = address
        self._ctx.password = password
        self._ctx.remember = remember
        self._reported_keys = frozenset()
        self._report(None)

        _LOGGER.info("Connecting to %s", address)
        self._dial()
        return True

    def disconnect(self):
        """Cancel every pending timer, close the link and clear the session."""
        if self._state != ConnectionState.DISCONNECTED:
            _LOGGER.info("Disconnecting from %s", self._ctx.address)
        self._teardown_link()
        self._ctx.reset()
        self._reported_keys = frozenset()
        self.state = ConnectionState.DISCONNECTED

    def reconnect(self, password: Optional[str] = None, delay: Optional[float] = None) -> bool:
        """
        Redial the current target after a delay, optionally with a new password.

        Bounded by `SessionTimings.max_reconnect_attempts`. Never invoked
        automatically on link loss.

        Returns:
            True if a reconnect was scheduled
        """
        if password is not None:
            try:
                validate_password(password)
            except ValidationError as err:
                self._report_error(err)
                return False

        if (
            self._ctx.address is None
            or self._ctx.reconnect_attempts >= self._timings.max_reconnect_attempts
        ):
            _LOGGER.info(
                "Not reconnecting (target=%s, attempts=%d)",
                self._ctx.address,
                self._ctx.reconnect_attempts,
            )
            self._teardown_link()
            if self._ctx.address is None:
                self._report_error(NotConnectedError(MSG_NO_TARGET))
            else:
                self._report_error(TransportError(MSG_RECONNECT_EXHAUSTED))
            self._ctx.reconnect_attempts = 0
            self.state = ConnectionState.DISCONNECTED
            return False

        if password is not None:
            self._ctx.password = password

        self._teardown_link()
        self._ctx.reconnect_attempts += 1
        self.state = ConnectionState.RECONNECTING

        if delay is None:
            delay = self._timings.reconnect_delay
        _LOGGER.debug(
            "Reconnect %d/%d to %s in %.1fs",
            self._ctx.reconnect_attempts,
            self._timings.max_reconnect_attempts,
            self._ctx.address,
            delay,
        )
        self._timeout_handle = self._schedule(delay, SessionEvent.RECONNECT_DUE)
        return True

    def change_password_with_verification(self, current_password: str, new_password: str) -> bool:
        """
        Change the module password.

        The current password must match the one stored for the connected
        address. On a successful send the stored credential is purged so the
        remembered password can never diverge from the module's.

        Returns:
            True if the change command was sent
        """
        try:
            validate_password(current_password)
            validate_password(new_password)
        except ValidationError as err:
            self._report_error(err)
            return False

        if self._state != ConnectionState.CONNECTED:
            self._report_error(NotConnectedError(MSG_NOT_CONNECTED))
            return False

        address = self._ctx.address
        if address is None:
            self._report_error(NotConnectedError(MSG_NO_TARGET))
            return False

        if current_password != self._stored_password(address):
            _LOGGER.warning("Current password mismatch for %s", address)
            self._report_error(ValidationError(MSG_CURRENT_PASSWORD_WRONG))
            return False

        if not self.send(encode_password_change(new_password), sensitive=True):
            self._report_error(TransportError(MSG_PASSWORD_CHANGE_FAILED))
            return False

        try:
            self._store.clear(address)
        except StorageError as err:
            _LOGGER.error("Failed to purge stored password for %s: %s", address, err)
        _LOGGER.info("Password changed on %s, stored credential removed", address)
        self._report(MSG_PASSWORD_CHANGED)
        if self.on_password_changed:
            self.on_password_changed(address)
        return True

    def send(self, data: bytes, sensitive: bool = False) -> bool:
        """Write raw bytes to the module. Fire-and-forget."""
        if not self._transport.is_open:
            return False
        if sensitive:
            _LOGGER.debug(f"TX ({len(data)} bytes): <credential>")
        else:
            _LOGGER.debug(f"TX ({len(data)} bytes): {data.hex()}")
        return self._transport.write(data)

    # ------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------

    def post(self, event: Event):
        """
        Queue an event onto the owning event loop.

        Safe to call from transport callbacks on any thread. The event belongs
        to the current connection attempt and is dropped if a newer attempt
        has started by the time it runs.
        """
        if self._loop is None:
            self.handle_event(event)
            return
        self._loop.call_soon_threadsafe(self._deliver, self._attempt, event)

    def handle_event(self, event: Event):
        """Transition function: apply one event to the current state."""
        handler = self._handlers.get(event.type)
        if handler is None:
            _LOGGER.warning("Unhandled event %s", event.type)
            return
        handler(event)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _dial(self):
        self._new_attempt()
        self._ctx.awaiting_auth_response = False
        self.state = ConnectionState.CONNECTING
        self._timeout_handle = self._schedule(
            self._timings.connection_timeout, SessionEvent.CONNECTION_TIMEOUT
        )
        try:
            self._transport.open(self._ctx.address)
        except TransportError as err:
            self._fail(TransportError(f"Connection failed: {err}"))

    def _on_link_established(self, event: Event):
        if self._state != ConnectionState.CONNECTING:
            _LOGGER.debug("Ignoring link up in state %s", self._state.name)
            return
        _LOGGER.debug("Link up, discovering services in %.1fs", self._timings.link_settle)
        self._delay_handle = self._schedule(self._timings.link_settle, SessionEvent.LINK_SETTLED)

    def _on_link_settled(self, event: Event):
        if self._state == ConnectionState.CONNECTING:
            self._transport.discover()

    def _on_link_failed(self, event: Event):
        if self._state == ConnectionState.CONNECTING:
            self._fail(TransportError(f"Connection failed: {event.payload}"))

    def _on_discovery_complete(self, event: Event):
        if self._state != ConnectionState.CONNECTING:
            return
        self._cancel_timers()
        self.state = ConnectionState.AUTHENTICATING
        self._transport.enable_notifications()
        self._transport.request_rssi()
        self._delay_handle = self._schedule(
            self._timings.discovery_settle, SessionEvent.DISCOVERY_SETTLED
        )

    def _on_discovery_failed(self, event: Event):
        if self._state == ConnectionState.CONNECTING:
            self._fail(TransportError(f"Service discovery failed: {event.payload}"))

    def _on_discovery_settled(self, event: Event):
        if self._state != ConnectionState.AUTHENTICATING or self._ctx.awaiting_auth_response:
            return

        _LOGGER.debug("Sending password (%d chars)", len(self._ctx.password))
        if not self.send(encode_auth_frame(self._ctx.password), sensitive=True):
            _LOGGER.warning("Password frame could not be sent to %s", self._ctx.address)
            self._fail(TransportError(MSG_AUTH_SEND_FAILED))
            return

        self._ctx.awaiting_auth_response = True
        self._timeout_handle = self._schedule(self._timings.auth_timeout, SessionEvent.AUTH_TIMEOUT)

    def _on_auth_timeout(self, event: Event):
        if self._state == ConnectionState.AUTHENTICATING and self._ctx.awaiting_auth_response:
            self._apply_verdict(self._policy.on_timeout())

    def _on_connection_timeout(self, event: Event):
        if self._state == ConnectionState.CONNECTING:
            _LOGGER.warning("Connection to %s timed out", self._ctx.address)
            self._fail(TimeoutError(MSG_CONNECTION_TIMEOUT))

    def _on_reconnect_due(self, event: Event):
        if self._state == ConnectionState.RECONNECTING:
            self._dial()

    def _on_link_lost(self, event: Event):
        if self._state in (ConnectionState.DISCONNECTED, ConnectionState.RECONNECTING):
            return

        if self._state == ConnectionState.AUTHENTICATING and self._ctx.awaiting_auth_response:
            if self._policy.on_link_lost() == AuthVerdict.REJECTED:
                self._reject()
                return

        _LOGGER.info("Link to %s lost", self._ctx.address)
        self._teardown_link()
        self.state = ConnectionState.DISCONNECTED

    def _on_data_received(self, event: Event):
        frame = decode(event.payload)
        if frame is None:
            return
        _LOGGER.debug(f"RX: {bytes(event.payload).hex()}")

        if isinstance(frame, StatusFrame):
            self._on_status(frame.status)
        elif isinstance(frame, KeyDataFrame):
            self._reported_keys = frame.keys
            if self.on_keys_reported:
                self.on_keys_reported(frame.keys)

    def _on_status(self, status: StatusCode):
        if self._state == ConnectionState.AUTHENTICATING and self._ctx.awaiting_auth_response:
            verdict = self._policy.on_status(status)
            if verdict != AuthVerdict.PENDING:
                self._apply_verdict(verdict)
                return

        if status == StatusCode.LINK_DOWN and self._state == ConnectionState.CONNECTED:
            _LOGGER.info("Module reported link down")
            self._teardown_link()
            self.state = ConnectionState.DISCONNECTED
        elif status == StatusCode.CREDENTIAL_REJECTED and self._state == ConnectionState.CONNECTED:
            self._report(MSG_PASSWORD_INCORRECT)
        elif status == StatusCode.CREDENTIAL_ACCEPTED:
            self._report(MSG_PASSWORD_CORRECT)
        else:
            _LOGGER.debug("Status %s in state %s", status.name, self._state.name)

    def _on_rssi_sample(self, event: Event):
        self._rssi = int(event.payload)
        if self.on_rssi:
            self.on_rssi(self._rssi)

    def _apply_verdict(self, verdict: AuthVerdict):
        if verdict == AuthVerdict.ACCEPTED:
            self._authenticated()
        elif verdict == AuthVerdict.REJECTED:
            self._reject()

    def _authenticated(self):
        self._cancel_timers()
        self._ctx.awaiting_auth_response = False
        self._ctx.reconnect_attempts = 0
        _LOGGER.info("Authenticated with %s", self._ctx.address)
        if self._ctx.remember:
            try:
                self._store.set(self._ctx.address, self._ctx.password)
            except StorageError as err:
                _LOGGER.error("Failed to store password for %s: %s", self._ctx.address, err)
        self.state = ConnectionState.CONNECTED

    def _reject(self):
        address = self._ctx.address
        _LOGGER.warning("Authentication with %s rejected", address)
        self._teardown_link()
        self._report_error(AuthenticationRejected(MSG_AUTH_REJECTED))
        self.state = ConnectionState.DISCONNECTED
        if self.on_authentication_rejected and address:
            self.on_authentication_rejected(address)

    def _fail(self, error: AllRemoteError):
        self._teardown_link()
        self._report_error(error)
        self.state = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _report(self, message: Optional[str], error: Optional[AllRemoteError] = None):
        if message is not None:
            _LOGGER.debug("Session message: %s", message)
        self._error_message = message
        self._last_error = error
        if self.on_error:
            self.on_error(message)

    def _report_error(self, error: AllRemoteError):
        self._report(str(error), error)

    def _stored_password(self, address: str) -> Optional[str]:
        try:
            return self._store.get(address)
        except StorageError as err:
            _LOGGER.error("Failed to read stored password for %s: %s", address, err)
            return None

    def _teardown_link(self):
        self._new_attempt()
        self._ctx.awaiting_auth_response = False
        if self._transport.is_open:
            self._transport.close()

    def _new_attempt(self):
        self._attempt += 1
        self._cancel_timers()

    def _cancel_timers(self):
        for handle in (self._timeout_handle, self._delay_handle):
            if handle is not None:
                handle.cancel()
        self._timeout_handle = None
        self._delay_handle = None

    def _schedule(self, delay: float, event_type: SessionEvent) -> asyncio.TimerHandle:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop.call_later(delay, self._fire, self._attempt, event_type)

    def _fire(self, attempt: int, event_type: SessionEvent):
        self._deliver(attempt, Event(event_type))

    def _deliver(self, attempt: int, event: Event):
        if attempt != self._attempt:
            _LOGGER.debug("Dropping stale %s", event.type.name)
            return
        self.handle_event(event)
