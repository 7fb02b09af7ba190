"""
Progress Reporting

An owner-checked progress slot and a cancellable periodic ticker that
advances an estimated progress value while the real work runs.
"""
import asyncio
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

_owner_ids = itertools.count(1)


class ProgressSlot:
    """
    Holds the latest progress of one run and forwards updates to a callback.

    Only the current owner may publish. Values never decrease. After
    ``close()`` every write is dropped, so nothing stale reaches the caller.
    """

    def __init__(self, callback=None):
        self._callback = callback
        self._lock = threading.Lock()
        self._owner = None
        self._closed = False
        self.value = 0.0

    @property
    def closed(self):
        return self._closed

    def claim(self):
        """Take ownership of the slot and return the owner token."""
        with self._lock:
            self._owner = next(_owner_ids)
            return self._owner

    def publish(self, owner, value):
        """
        Record a progress value for ``owner``.

        Returns:
            bool: Whether the value was accepted
        """
        with self._lock:
            if self._closed or owner != self._owner:
                return False
            value = min(100.0, float(value))
            if value <= self.value:
                return False
            self.value = value
            callback = self._callback

        if callback is not None:
            callback(value)
        return True

    def close(self):
        """Stop accepting updates."""
        with self._lock:
            self._closed = True
            self._owner = None


class ProgressTicker:
    """
    Periodic task that creeps progress towards ``ceiling``.

    Args:
        slot (ProgressSlot): Slot to write into
        owner (int): Owner token from ``slot.claim()``
        interval (float): Seconds between ticks
        step (float): Progress added per tick
        ceiling (float): Highest value the ticker will publish
    """

    def __init__(self, slot, owner, interval=0.2, step=3.0, ceiling=95.0):
        self.slot = slot
        self.owner = owner
        self.interval = interval
        self.step = step
        self.ceiling = ceiling
        self._task = None

    def start(self):
        self._task = asyncio.ensure_future(self._tick())
        return self

    def stop(self):
        """
        Cancel the ticker.

        A cancelled task never resumes past its pending sleep, so no tick is
        published after this returns.
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _tick(self):
        while True:
            await asyncio.sleep(self.interval)
            value = min(self.ceiling, self.slot.value + self.step)
            if self.slot.publish(self.owner, value):
                logger.debug('Progress %.1f%%', value)
