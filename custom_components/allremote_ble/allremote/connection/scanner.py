"""Name-filtered BLE discovery of ALLREMOTE modules."""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ..const import DEFAULT_SCAN_TIMEOUT, DEVICE_NAME_PREFIX


_LOGGER = logging.getLogger(__name__)

DiscoveryCallback = Callable[[BLEDevice, AdvertisementData], None]

# Sorts modules that never reported a signal last
_NO_SIGNAL = -127


def is_remote_module(name: Optional[str]) -> bool:
    """Check whether an advertised name belongs to a remote module."""
    return bool(name) and name.upper().startswith(DEVICE_NAME_PREFIX)


class RemoteScanner:
    """
    Collects advertisements whose name starts with ``ALLREMOTE``.

    The modules advertise no service UUID, so the bleak scan is unfiltered
    and matching happens on the local name (or the cached device name).
    """

    def __init__(self):
        self._devices: Dict[str, BLEDevice] = {}
        self._rssi: Dict[str, int] = {}
        self._listener: Optional[DiscoveryCallback] = None

    @property
    def rssi(self) -> Dict[str, int]:
        """Latest RSSI per discovered address."""
        return dict(self._rssi)

    def _detection_callback(
        self,
        device: BLEDevice,
        advertisement_data: AdvertisementData,
    ):
        name = advertisement_data.local_name or device.name
        if not is_remote_module(name):
            return

        self._rssi[device.address] = advertisement_data.rssi
        if device.address in self._devices:
            return

        _LOGGER.debug(
            "Discovered %s (%s, %s dBm)", name, device.address, advertisement_data.rssi
        )
        self._devices[device.address] = device
        if self._listener:
            self._listener(device, advertisement_data)

    async def _listen(
        self,
        done: asyncio.Event,
        timeout: float,
        listener: Optional[DiscoveryCallback],
    ):
        """Run one scan until `done` is set or `timeout` expires."""
        self._devices.clear()
        self._listener = listener
        try:
            async with BleakScanner(detection_callback=self._detection_callback):
                try:
                    await asyncio.wait_for(done.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._listener = None

    async def scan(
        self,
        timeout: float = DEFAULT_SCAN_TIMEOUT,
        on_discovered: Optional[DiscoveryCallback] = None,
    ) -> List[BLEDevice]:
        """
        Scan for remote modules.

        Args:
            timeout: Scan duration in seconds
            on_discovered: Called once per newly seen module

        Returns:
            Discovered modules, strongest signal first
        """
        _LOGGER.info("Scanning for remote modules for %.0fs", timeout)
        await self._listen(asyncio.Event(), timeout, on_discovered)

        devices = sorted(
            self._devices.values(),
            key=lambda device: self._rssi.get(device.address, _NO_SIGNAL),
            reverse=True,
        )
        _LOGGER.info("Found %d remote module(s)", len(devices))
        return devices

    async def find_by_address(
        self,
        address: str,
        timeout: float = DEFAULT_SCAN_TIMEOUT,
    ) -> Optional[BLEDevice]:
        """Scan until the module at `address` advertises or `timeout` expires."""
        target = address.upper()
        found = asyncio.Event()

        def on_found(device: BLEDevice, _: AdvertisementData):
            if device.address.upper() == target:
                found.set()

        _LOGGER.debug("Searching for module at %s", address)
        await self._listen(found, timeout, on_found)
        return next(
            (device for device in self._devices.values() if device.address.upper() == target),
            None,
        )


async def discover_remote_modules(
    timeout: float = DEFAULT_SCAN_TIMEOUT,
) -> List[BLEDevice]:
    """Scan once with a throwaway `RemoteScanner`."""
    return await RemoteScanner().scan(timeout=timeout)
