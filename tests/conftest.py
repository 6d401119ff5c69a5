# tests/conftest.py
import asyncio
from datetime import datetime

import pytest


class FakeClock:
    """Reloj manual. Arranca a mediodía local para no cruzar medianoche por accidente."""

    def __init__(self, start: float | None = None):
        self.now = start if start is not None else datetime(2025, 3, 10, 12, 0).timestamp()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Sustituto de asyncio.sleep: avanza el reloj y cede el control una vez."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock) -> FakeSleep:
    return FakeSleep(clock)
