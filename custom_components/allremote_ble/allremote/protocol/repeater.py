"""Level-triggered key repeat while keys are held."""

import asyncio
import logging
from typing import Awaitable, Callable, FrozenSet, Iterable, Optional, Set

from .frames import apply_exclusive_key_rule, encode_key_frame, encode_release_frame
from .keys import KeyId
from ..const import RELEASE_REPEAT, REPEAT_INTERVAL


_LOGGER = logging.getLogger(__name__)


class KeyRepeater:
    """
    Re-sends the composite key frame every `interval` seconds while keys are held.

    The module has no reliable key-down edge over BLE, so the held state is
    repeated and any dropped frame is corrected on the next tick. Exactly one
    send loop exists at a time: the task handle is the only cancellation
    mechanism and starting a new combination replaces it.
    """

    def __init__(
        self,
        write: Callable[[bytes], bool],
        interval: float = REPEAT_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the repeater.

        Args:
            write: Fire-and-forget frame writer, returns False if not accepted
            interval: Repeat period in seconds
            sleep: Waits out one period between sends
        """
        self._write = write
        self.interval = interval
        self._sleep = sleep
        self._held: Set[KeyId] = set()
        self._task: Optional[asyncio.Task] = None

    @property
    def held_keys(self) -> FrozenSet[KeyId]:
        return frozenset(self._held)

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, keys: Iterable[KeyId]) -> bool:
        """Replace the held combination and (re)start the send loop."""
        keys = set(keys)
        if not keys:
            return self.release_all()

        self.cancel()
        self._held = keys
        frame = encode_key_frame(keys)
        _LOGGER.debug(
            "Repeating %s as %s every %.0fms",
            sorted(key.value for key in apply_exclusive_key_rule(keys)),
            frame.hex(),
            self.interval * 1000,
        )
        self._task = asyncio.get_running_loop().create_task(self._run(frame))
        return True

    def press(self, key: KeyId) -> bool:
        """Add a key to the held combination."""
        return self.start(self._held | {key})

    def release(self, key: KeyId) -> bool:
        """Remove a key; releasing the last one sends the release frame."""
        remaining = self._held - {key}
        if remaining:
            return self.start(remaining)
        return self.release_all()

    def release_all(self) -> bool:
        """Stop repeating and send the release frame twice."""
        self.cancel()
        self._held = set()
        frame = encode_release_frame()
        results = [self._write(frame) for _ in range(RELEASE_REPEAT)]
        return all(results)

    def cancel(self):
        """Stop the send loop and forget the held keys without sending anything."""
        self._held = set()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, frame: bytes):
        while True:
            if not self._write(frame):
                _LOGGER.debug("Repeat frame %s not accepted", frame.hex())
            await self._sleep(self.interval)
