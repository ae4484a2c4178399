"""Tests for the clock source."""

import asyncio

import pytest

from study_forest.core.clock import AsyncioClock, ManualClock


async def test_manual_clock_fires_due_timers_in_order():
    clock = ManualClock(start_ms=0)
    calls = []

    clock.call_every(1000, lambda: calls.append(("a", clock.now_ms())))
    clock.call_every(2000, lambda: calls.append(("b", clock.now_ms())))

    await clock.advance(2000)

    assert calls == [("a", 1000), ("a", 2000), ("b", 2000)]
    assert clock.now_ms() == 2000


async def test_manual_clock_awaits_async_callbacks():
    clock = ManualClock()
    seen = []

    async def callback():
        await asyncio.sleep(0)
        seen.append(clock.now_ms())

    clock.call_every(500, callback)
    await clock.advance(1500)

    assert seen == [500, 1000, 1500]


async def test_cancel_from_inside_callback_finishes_callback():
    clock = ManualClock()
    calls = []
    handle = None

    def callback():
        handle.cancel()
        calls.append(clock.now_ms())

    handle = clock.call_every(1000, callback)
    await clock.advance(5000)

    assert calls == [1000]
    assert handle.cancelled
    assert clock.active_timers == 0


async def test_set_time_jumps_without_firing():
    clock = ManualClock()
    calls = []
    clock.call_every(1000, lambda: calls.append(1))

    clock.set_time(10_000)

    assert calls == []
    assert clock.now_ms() == 10_000


def test_interval_must_be_positive():
    clock = ManualClock()
    with pytest.raises(ValueError):
        clock.call_every(0, lambda: None)


async def test_asyncio_clock_repeats_until_cancelled():
    clock = AsyncioClock()
    calls = []

    handle = clock.call_every(10, lambda: calls.append(1))
    await asyncio.sleep(0.08)
    handle.cancel()
    count = len(calls)
    await asyncio.sleep(0.05)

    assert count >= 2
    assert len(calls) == count


async def test_asyncio_timer_cancelled_in_callback_completes_awaits():
    clock = AsyncioClock()
    finished = []
    handle = None

    async def callback():
        handle.cancel()
        await asyncio.sleep(0.01)
        finished.append(True)

    handle = clock.call_every(5, callback)
    await asyncio.sleep(0.1)

    assert finished == [True]


async def test_asyncio_timer_survives_callback_errors():
    clock = AsyncioClock()
    calls = []

    def callback():
        calls.append(1)
        raise RuntimeError("boom")

    handle = clock.call_every(10, callback)
    await asyncio.sleep(0.06)
    handle.cancel()

    assert len(calls) >= 2
