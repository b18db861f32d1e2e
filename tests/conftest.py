import sys
from pathlib import Path

# чтобы видеть src/
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import asyncio
from typing import Any, Dict, List, Tuple

import pytest

from nutrition_client.coordination.coordinator import ExecuteOptions, RequestCoordinator


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InstantSleep:
    """Replaces asyncio.sleep for retry delays: records the delay, yields once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class RecordingTelemetry:
    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def event(self, name: str, payload: dict):
        self.events.append((name, dict(payload)))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


class CallCounter:
    """Scripted async operation: pops results/exceptions, counts invocations."""

    def __init__(self, script: List[Any] | None = None, *, delay_s: float = 0.0):
        self.script = list(script or ["ok"])
        self.delay_s = delay_s
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(self.delay_s)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def instant_sleep():
    return InstantSleep()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def coordinator(clock, instant_sleep, telemetry):
    coord = RequestCoordinator(
        throttle_window_s=2.0,
        attempt_ceiling=2,
        cleanup_delay_s=60.0,
        default_options=ExecuteOptions(max_retries=1, retry_delay_s=2.0),
        clock=clock,
        sleep=instant_sleep,
        telemetry=telemetry,
    )
    yield coord
    coord.clear()
