"""Bleak implementation of the ALLREMOTE transport."""

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Optional, Set

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError
from bleak_retry_connector import establish_connection

from .transport import Transport
from ..exceptions import TransportError
from ..const import (
    ALLREMOTE_NOTIFY_UUID,
    ALLREMOTE_SERVICE_UUID,
    ALLREMOTE_WRITE_UUID,
    DEFAULT_CONNECT_TIMEOUT,
)
from ..models import SessionEvent
from ..protocol.frames import is_held_key_frame


_LOGGER = logging.getLogger(__name__)

DeviceResolver = Callable[[str], Optional[BLEDevice]]
RssiProvider = Callable[[str], Optional[int]]


class BleakTransport(Transport):
    """
    GATT link to a remote module over bleak.

    Writes are queued and drained by one writer task per link so frames
    leave in the order they were accepted, without the caller waiting for
    completion. A held-key frame still waiting in the queue is replaced by a
    newer one, so repeats never pile up in front of a release on a slow link.

    Usage:
        transport = BleakTransport()
        machine = ConnectionStateMachine(transport)
        machine.connect("AA:BB:CC:DD:EE:FF", "123456")
    """

    def __init__(
        self,
        device_resolver: Optional[DeviceResolver] = None,
        rssi_provider: Optional[RssiProvider] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        max_attempts: int = 3,
    ):
        """
        Initialize the transport.

        Args:
            device_resolver: Maps an address to a BLEDevice (e.g. from Home
                Assistant's bluetooth manager); enables bleak-retry-connector
            rssi_provider: Maps an address to its latest RSSI, if known
            connect_timeout: Timeout for a plain BleakClient connect
            max_attempts: Attempts for bleak-retry-connector
        """
        super().__init__()
        self._device_resolver = device_resolver
        self._rssi_provider = rssi_provider
        self._connect_timeout = connect_timeout
        self._max_attempts = max_attempts

        self._address: Optional[str] = None
        self._client: Optional[BleakClient] = None
        self._write_char: Optional[BleakGATTCharacteristic] = None
        self._notify_char: Optional[BleakGATTCharacteristic] = None
        self._opened = False
        self._generation = 0

        self._pending: Deque[bytes] = deque()
        self._write_ready = asyncio.Event()
        self._writer_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_open(self) -> bool:
        return self._opened

    @property
    def is_connected(self) -> bool:
        """Check if the GATT link is up."""
        return self._client is not None and self._client.is_connected

    def open(self, address: str) -> None:
        if self._opened:
            self.close()
        self._opened = True
        self._address = address
        self._generation += 1
        connect = self._connect(address, self._generation)
        try:
            self._spawn(connect)
        except RuntimeError as e:
            connect.close()
            self._opened = False
            raise TransportError(f"Cannot dial {address} without a running event loop") from e

    def close(self) -> None:
        self._opened = False
        self._generation += 1
        client = self._client
        self._client = None
        self._write_char = None
        self._notify_char = None

        if self._writer_task is not None:
            self._writer_task.cancel()
            self._writer_task = None
        self._pending.clear()

        if client is not None:
            self._spawn(self._disconnect(client))

    def discover(self) -> None:
        client = self._client
        if client is None:
            self.emit(SessionEvent.DISCOVERY_FAILED, "not connected")
            return

        try:
            service = client.services.get_service(ALLREMOTE_SERVICE_UUID)
        except BleakError as e:
            self.emit(SessionEvent.DISCOVERY_FAILED, str(e))
            return

        if service is None:
            self.emit(SessionEvent.DISCOVERY_FAILED, "service FFE0 not found")
            return

        self._write_char = service.get_characteristic(ALLREMOTE_WRITE_UUID)
        self._notify_char = service.get_characteristic(ALLREMOTE_NOTIFY_UUID)
        _LOGGER.debug(
            f"Write characteristic FFE9: {'found' if self._write_char else 'missing'}, "
            f"notify characteristic FFE4: {'found' if self._notify_char else 'missing'}"
        )

        if self._write_char is None or self._notify_char is None:
            self.emit(SessionEvent.DISCOVERY_FAILED, "data characteristics not found")
            return

        self.emit(SessionEvent.DISCOVERY_COMPLETE)

    def enable_notifications(self) -> None:
        if self._client is None or self._notify_char is None:
            _LOGGER.debug("Cannot enable notifications: not discovered")
            return
        self._spawn(self._start_notify(self._client, self._notify_char))

    def write(self, data: bytes) -> bool:
        if not self.is_connected or self._write_char is None:
            return False

        if self._writer_task is None or self._writer_task.done():
            self._writer_task = asyncio.get_running_loop().create_task(
                self._drain_writes(self._client, self._write_char)
            )

        data = bytes(data)
        if is_held_key_frame(data) and self._pending and is_held_key_frame(self._pending[-1]):
            self._pending[-1] = data
        else:
            self._pending.append(data)
        self._write_ready.set()
        return True

    def request_rssi(self) -> None:
        if self._rssi_provider is None or self._address is None:
            return
        rssi = self._rssi_provider(self._address)
        if rssi is not None:
            self.emit(SessionEvent.RSSI_SAMPLE, rssi)

    async def _connect(self, address: str, generation: int):
        device = self._device_resolver(address) if self._device_resolver else None

        try:
            if device is not None:
                client = await establish_connection(
                    BleakClient,
                    device,
                    device.name or address,
                    disconnected_callback=self._on_disconnect,
                    max_attempts=self._max_attempts,
                )
            else:
                client = BleakClient(address, disconnected_callback=self._on_disconnect)
                await asyncio.wait_for(client.connect(), timeout=self._connect_timeout)
        except asyncio.TimeoutError:
            if generation == self._generation:
                self.emit(SessionEvent.LINK_FAILED, f"connection to {address} timed out")
            return
        except BleakError as e:
            if generation == self._generation:
                self.emit(SessionEvent.LINK_FAILED, str(e))
            return

        if generation != self._generation:
            _LOGGER.debug("Link to %s superseded, dropping it", address)
            await self._disconnect(client)
            return

        self._client = client
        _LOGGER.info(f"Connected to {address}")
        self.emit(SessionEvent.LINK_ESTABLISHED)

    async def _disconnect(self, client: BleakClient):
        try:
            if client.is_connected:
                await client.disconnect()
        except BleakError as e:
            _LOGGER.warning(f"Error during disconnect: {e}")

    async def _start_notify(self, client: BleakClient, char: BleakGATTCharacteristic):
        try:
            await client.start_notify(char, self._on_notification)
        except BleakError as e:
            _LOGGER.warning(f"Failed to enable notifications: {e}")

    async def _drain_writes(
        self,
        client: BleakClient,
        char: BleakGATTCharacteristic,
    ):
        response = "write-without-response" not in char.properties
        while True:
            await self._write_ready.wait()
            while self._pending:
                data = self._pending.popleft()
                try:
                    await client.write_gatt_char(char, data, response=response)
                except (BleakError, asyncio.TimeoutError) as e:
                    _LOGGER.warning(f"Write of {len(data)} bytes failed: {e}")
            self._write_ready.clear()

    def _on_disconnect(self, client: BleakClient):
        if client is not self._client:
            return
        _LOGGER.info("Disconnected from module")
        self._client = None
        if self._writer_task is not None:
            self._writer_task.cancel()
            self._writer_task = None
        self._pending.clear()
        self._write_char = None
        self._notify_char = None
        self.emit(SessionEvent.LINK_LOST)

    def _on_notification(self, sender, data: bytearray):
        _LOGGER.debug(f"RX: {bytes(data).hex()}")
        self.emit(SessionEvent.DATA_RECEIVED, bytes(data))

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
