import asyncio

import pytest

from nutrition_client.coordination.coordinator import ExecuteOptions
from nutrition_client.coordination.errors import OperationFailed

from tests.conftest import CallCounter


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_execution(coordinator):
    gate = asyncio.Event()
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        await gate.wait()
        return {"value": 42}

    waiters = [asyncio.create_task(coordinator.execute("GET:/stats:{}", op)) for _ in range(5)]
    await asyncio.sleep(0)
    assert coordinator.status().pending_count == 1
    assert coordinator.status().active_keys == ["GET:/stats:{}"]

    gate.set()
    results = await asyncio.gather(*waiters)

    assert calls["n"] == 1
    assert results == [{"value": 42}] * 5
    assert all(r is results[0] for r in results)
    assert coordinator.status().pending_count == 0


@pytest.mark.asyncio
async def test_meals_scenario_three_callers_one_fetch(coordinator):
    fetch_meals = CallCounter([[{"id": 1}]], delay_s=0.05)

    results = await asyncio.gather(*(coordinator.execute("GET:/meals:{}", fetch_meals) for _ in range(3)))

    assert results == [[{"id": 1}]] * 3
    assert fetch_meals.calls == 1


@pytest.mark.asyncio
async def test_attached_callers_receive_identical_rejection(coordinator):
    op = CallCounter([ValueError("backend down")], delay_s=0.01)
    opts = ExecuteOptions(max_retries=0)

    outcomes = await asyncio.gather(
        *(coordinator.execute("GET:/meals:{}", op, opts) for _ in range(3)),
        return_exceptions=True,
    )

    assert op.calls == 1
    assert all(isinstance(o, OperationFailed) for o in outcomes)
    assert outcomes[0] is outcomes[1] is outcomes[2]
    assert isinstance(outcomes[0].last_error, ValueError)
    assert coordinator.status().active_keys == []


@pytest.mark.asyncio
async def test_distinct_keys_run_independently(coordinator, clock):
    gate = asyncio.Event()
    seen = []

    def make(name):
        async def op():
            seen.append(name)
            await gate.wait()
            return name
        return op

    first = asyncio.create_task(coordinator.execute("GET:/meals:{}", make("meals")))
    second = asyncio.create_task(coordinator.execute("GET:/profile:{}", make("profile")))
    await asyncio.sleep(0)

    assert sorted(coordinator.status().active_keys) == ["GET:/meals:{}", "GET:/profile:{}"]
    gate.set()
    assert await asyncio.gather(first, second) == ["meals", "profile"]
    assert sorted(seen) == ["meals", "profile"]


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_operation(coordinator):
    gate = asyncio.Event()
    op_calls = {"n": 0}

    async def op():
        op_calls["n"] += 1
        await gate.wait()
        return "done"

    impatient = asyncio.create_task(coordinator.execute("GET:/plans:{}", op))
    patient = asyncio.create_task(coordinator.execute("GET:/plans:{}", op))
    await asyncio.sleep(0)

    impatient.cancel()
    with pytest.raises(asyncio.CancelledError):
        await impatient

    gate.set()
    assert await patient == "done"
    assert op_calls["n"] == 1


@pytest.mark.asyncio
async def test_empty_key_is_rejected(coordinator):
    with pytest.raises(ValueError):
        await coordinator.execute("", CallCounter())


@pytest.mark.asyncio
async def test_reuse_is_reported_to_telemetry(coordinator, telemetry):
    op = CallCounter(["ok"], delay_s=0.01)

    await asyncio.gather(coordinator.execute("k", op), coordinator.execute("k", op))

    names = telemetry.names()
    assert names.count("request_dispatched") == 1
    assert names.count("request_reused") == 1
    assert ("request_settled", {"key": "k", "outcome": "success"}) in telemetry.events
