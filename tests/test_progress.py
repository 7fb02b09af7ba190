"""
Tests for the owner-checked progress slot and the periodic ticker.
"""
from __future__ import annotations

import asyncio

from core.progress import ProgressSlot, ProgressTicker


def test_slot_is_monotonic():
    updates = []
    slot = ProgressSlot(updates.append)
    owner = slot.claim()

    assert slot.publish(owner, 10)
    assert not slot.publish(owner, 5)
    assert slot.publish(owner, 40)
    assert not slot.publish(owner, 40)

    assert updates == [10.0, 40.0]
    assert slot.value == 40.0


def test_slot_caps_at_100():
    slot = ProgressSlot()
    owner = slot.claim()

    slot.publish(owner, 250)

    assert slot.value == 100.0


def test_stale_owner_is_ignored():
    updates = []
    slot = ProgressSlot(updates.append)
    stale = slot.claim()
    current = slot.claim()

    assert not slot.publish(stale, 50)
    assert slot.publish(current, 20)
    assert updates == [20.0]


def test_closed_slot_drops_writes():
    updates = []
    slot = ProgressSlot(updates.append)
    owner = slot.claim()
    slot.publish(owner, 30)

    slot.close()

    assert slot.closed
    assert not slot.publish(owner, 60)
    assert updates == [30.0]


def test_ticker_advances_until_ceiling():
    updates = []
    slot = ProgressSlot(updates.append)
    owner = slot.claim()

    async def scenario():
        ticker = ProgressTicker(slot, owner, interval=0.005, step=10.0, ceiling=35.0).start()
        await asyncio.sleep(0.2)
        ticker.stop()

    asyncio.run(scenario())

    assert updates == [10.0, 20.0, 30.0, 35.0]


def test_stopped_ticker_publishes_nothing():
    updates = []
    slot = ProgressSlot(updates.append)
    owner = slot.claim()

    async def scenario():
        ticker = ProgressTicker(slot, owner, interval=0.01, step=1.0).start()
        await asyncio.sleep(0.05)
        ticker.stop()
        seen = list(updates)
        await asyncio.sleep(0.1)
        return seen

    seen = asyncio.run(scenario())

    assert seen
    assert updates == seen
