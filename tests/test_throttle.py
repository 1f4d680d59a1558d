# tests/test_throttle.py
from __future__ import annotations

import asyncio

import pytest

from inventory_pulse.throttle import WriteThrottle


@pytest.mark.asyncio
async def test_never_exceeds_max_concurrent():
    throttle = WriteThrottle(3)
    peak = 0

    async def write(i: int) -> int:
        nonlocal peak
        peak = max(peak, throttle.active)
        await asyncio.sleep(0.01)
        return i

    results = await asyncio.gather(*(throttle.run(write, i) for i in range(20)))

    assert results == list(range(20))
    assert peak == 3
    assert throttle.active == 0


@pytest.mark.asyncio
async def test_slot_released_when_write_fails():
    throttle = WriteThrottle(1)

    async def boom():
        raise RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await throttle.run(boom)
    assert throttle.active == 0

    # gate still usable
    async with throttle:
        assert throttle.active == 1
    assert throttle.active == 0


def test_rejects_zero_slots():
    with pytest.raises(ValueError):
        WriteThrottle(0)
