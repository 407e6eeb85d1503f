"""Session object tying transport, state machine, key repeat and storage together."""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Union

from .connection.client import BleakTransport
from .connection.transport import Transport
from .const import REPEAT_INTERVAL
from .exceptions import NotConnectedError, TransportError, ValidationError
from .models import ConnectionState, RemoteStatus
from .protocol.auth import AuthenticationPolicy
from .protocol.frames import encode_command_frame
from .protocol.keys import Command, KeyId, parse_key
from .protocol.repeater import KeyRepeater
from .protocol.state_machine import ConnectionStateMachine, SessionTimings
from .storage.base import PasswordStore


_LOGGER = logging.getLogger(__name__)

KeyLike = Union[KeyId, str]
StatusListener = Callable[[RemoteStatus], None]

MSG_NOT_CONNECTED = "Device not connected"
MSG_COMMAND_FAILED = "Failed to send command"
MSG_RELEASE_FAILED = "Failed to send key release"


class RemoteClient:
    """
    One remote module session.

    Owns the connection state machine, the key repeater and the password
    store. Nothing here is process-wide: create one client per module and
    pass it to whatever drives it.

    Usage:
        client = RemoteClient(password_store=SQLitePasswordStore())
        client.add_listener(lambda status: print(status.connection_state))
        client.connect("AA:BB:CC:DD:EE:FF", "123456")
        ...
        client.press("K1")
        client.release_all()
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        password_store: Optional[PasswordStore] = None,
        timings: Optional[SessionTimings] = None,
        policy: Optional[AuthenticationPolicy] = None,
        repeat_interval: float = REPEAT_INTERVAL,
    ):
        """
        Initialize the client.

        Args:
            transport: Link to the module (bleak if omitted)
            password_store: Remembered passwords (in-memory if omitted)
            timings: State machine delay overrides
            policy: Authentication outcome policy
            repeat_interval: Key repeat period in seconds
        """
        self._transport = transport or BleakTransport()
        self._machine = ConnectionStateMachine(
            self._transport,
            password_store=password_store,
            timings=timings,
            policy=policy,
        )
        self._repeater = KeyRepeater(self._machine.send, interval=repeat_interval)
        self._learning_mode = False
        self._auto_connect_attempted = False
        self._listeners: List[StatusListener] = []

        self._machine.on_connection_state_changed = self._on_state_changed
        self._machine.on_error = self._on_changed
        self._machine.on_keys_reported = self._on_changed
        self._machine.on_rssi = self._on_changed

        # Callbacks
        self.on_authentication_rejected: Optional[Callable[[str], None]] = None
        self.on_password_changed: Optional[Callable[[str], None]] = None
        self._machine.on_authentication_rejected = self._on_authentication_rejected
        self._machine.on_password_changed = self._on_password_changed

    @property
    def machine(self) -> ConnectionStateMachine:
        return self._machine

    @property
    def repeater(self) -> KeyRepeater:
        return self._repeater

    @property
    def password_store(self) -> PasswordStore:
        return self._machine.password_store

    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def is_connected(self) -> bool:
        return self._machine.state == ConnectionState.CONNECTED

    @property
    def learning_mode(self) -> bool:
        return self._learning_mode

    @property
    def status(self) -> RemoteStatus:
        """Snapshot of the observable session state."""
        return RemoteStatus(
            connection_state=self._machine.state,
            address=self._machine.address,
            error_message=self._machine.error_message,
            rssi=self._machine.rssi,
            reported_keys=self._machine.reported_keys,
            learning_mode=self._learning_mode,
            reconnect_attempts=self._machine.reconnect_attempts,
        )

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a callback for status snapshots.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(
        self,
        address: str,
        password: Optional[str] = None,
        remember: bool = True,
    ) -> bool:
        """Start connecting; see `ConnectionStateMachine.connect`."""
        return self._machine.connect(address, password, remember=remember)

    def disconnect(self):
        """Stop key repeat and drop the session."""
        self._repeater.cancel()
        self._machine.disconnect()

    def auto_connect(self) -> bool:
        """
        Connect to the last connected device, once per client.

        Returns:
            True if a connection attempt was started
        """
        if self._auto_connect_attempted:
            return False
        self._auto_connect_attempted = True

        address = self.password_store.get_last_connected_device()
        if address is None:
            _LOGGER.debug("No previously connected device, skipping auto-connect")
            return False

        _LOGGER.info(f"Auto-connecting to last connected device {address}")
        return self._machine.connect(address, remember=True)

    def retry_with_password(self, password: str, delay: float = 0.0) -> bool:
        """Redial the current target with a new password."""
        return self._machine.reconnect(password, delay=delay)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def press(self, key: KeyLike) -> bool:
        """Add a key to the held combination."""
        keys = self._resolve([key])
        if keys is None or not self._require_connected():
            return False
        return self._repeater.press(keys[0])

    def release(self, key: KeyLike) -> bool:
        """Remove a key from the held combination."""
        keys = self._resolve([key])
        if keys is None or not self._require_connected():
            return False
        return self._repeater.release(keys[0])

    def press_keys(self, keys: Iterable[KeyLike]) -> bool:
        """Replace the held combination."""
        resolved = self._resolve(keys)
        if resolved is None or not self._require_connected():
            return False
        return self._repeater.start(resolved)

    def release_all(self) -> bool:
        """Release every held key."""
        if not self._require_connected():
            self._repeater.cancel()
            return False
        if not self._repeater.release_all():
            self._machine.report_error(TransportError(MSG_RELEASE_FAILED))
            return False
        return True

    async def hold_keys(self, keys: Iterable[KeyLike], duration: float) -> bool:
        """Hold a combination for `duration` seconds, then release it. Zero taps it once."""
        if not self.press_keys(keys):
            return False
        try:
            await asyncio.sleep(duration)
        finally:
            if self.is_connected:
                self._repeater.release_all()
            else:
                self._repeater.cancel()
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def send_command(self, command: Union[Command, int]) -> bool:
        """Send a `0xFF 0xFF cmd` control frame."""
        if not self._require_connected():
            return False
        try:
            frame = encode_command_frame(int(command))
        except ValidationError as err:
            self._machine.report_error(err)
            return False

        if not self._machine.send(frame):
            _LOGGER.warning("Command 0x%02x could not be sent", int(command))
            self._machine.report_error(TransportError(MSG_COMMAND_FAILED))
            return False
        return True

    def enter_learning_mode(self) -> bool:
        return self._set_learning_mode(True)

    def exit_learning_mode(self) -> bool:
        return self._set_learning_mode(False)

    def enable_board_keys(self) -> bool:
        return self.send_command(Command.ENABLE_BOARD_KEYS)

    def disable_board_keys(self) -> bool:
        return self.send_command(Command.DISABLE_BOARD_KEYS)

    def reset_module_password(self) -> bool:
        return self.send_command(Command.RESET_PASSWORD)

    def reboot_module(self) -> bool:
        return self.send_command(Command.MODULE_REBOOT)

    def request_key_state(self) -> bool:
        return self.send_command(Command.REQUEST_KEY_STATE)

    def change_password(self, current_password: str, new_password: str) -> bool:
        """Change the module password; see `ConnectionStateMachine`."""
        return self._machine.change_password_with_verification(current_password, new_password)

    def close(self):
        """Drop the session and every listener."""
        self.disconnect()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_learning_mode(self, enabled: bool) -> bool:
        command = Command.ENTER_LEARNING if enabled else Command.EXIT_LEARNING
        if not self.send_command(command):
            return False
        self._learning_mode = enabled
        _LOGGER.info(f"Learning mode {'entered' if enabled else 'exited'}")
        self._publish()
        return True

    def _require_connected(self) -> bool:
        if self.is_connected:
            return True
        self._machine.report_error(NotConnectedError(MSG_NOT_CONNECTED))
        return False

    def _resolve(self, keys: Iterable[KeyLike]) -> Optional[List[KeyId]]:
        try:
            return [key if isinstance(key, KeyId) else parse_key(key) for key in keys]
        except ValidationError as err:
            self._machine.report_error(err)
            return None

    def _on_state_changed(self, state: ConnectionState):
        if state != ConnectionState.CONNECTED:
            self._repeater.cancel()
        if state == ConnectionState.DISCONNECTED:
            self._learning_mode = False
        self._publish()

    def _on_changed(self, _value=None):
        self._publish()

    def _on_authentication_rejected(self, address: str):
        if self.on_authentication_rejected:
            self.on_authentication_rejected(address)

    def _on_password_changed(self, address: str):
        if self.on_password_changed:
            self.on_password_changed(address)

    def _publish(self):
        status = self.status
        for listener in list(self._listeners):
            listener(status)
