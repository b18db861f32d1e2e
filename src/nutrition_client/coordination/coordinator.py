from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from nutrition_client.coordination.errors import RequestThrottled, TooManyRequests
from nutrition_client.coordination.retry import BACKOFF_MODES, Backoff, RetryPolicy, run_with_retries
from nutrition_client.telemetry.noop import NoOpTelemetry

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecuteOptions:
    max_retries: int = 1
    retry_delay_s: float = 2.0
    throttle: bool = True
    backoff: Backoff = "fixed"

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retry_delay_s < 0:
            raise ValueError("retry_delay_s must be >= 0")
        if self.backoff not in BACKOFF_MODES:
            raise ValueError(f"backoff must be one of {sorted(BACKOFF_MODES)}, got {self.backoff!r}")

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            retry_delay_s=self.retry_delay_s,
            backoff=self.backoff,
        )


@dataclass(frozen=True)
class CoordinatorStatus:
    pending_count: int
    active_keys: List[str] = field(default_factory=list)


class RequestCoordinator:
    """
    Single-flight + throttle + retry for client requests, keyed by a caller string.

    - concurrent `execute()` calls with the same key share one in-flight task
    - a new dispatch within `throttle_window_s` of the previous one is rejected
    - at most `attempt_ceiling` dispatches per key until a success resets the counter
    - per-key bookkeeping is dropped `cleanup_delay_s` after the cycle settles

    Must be used from a single event loop; the maps are not guarded by locks.
    """

    def __init__(
        self,
        *,
        throttle_window_s: float = 2.0,
        attempt_ceiling: int = 2,
        cleanup_delay_s: float = 15.0,
        default_options: ExecuteOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        telemetry: Any | None = None,
    ):
        if attempt_ceiling < 1:
            raise ValueError("attempt_ceiling must be >= 1")
        self.throttle_window_s = throttle_window_s
        self.attempt_ceiling = attempt_ceiling
        self.cleanup_delay_s = cleanup_delay_s
        self.default_options = default_options or ExecuteOptions()
        self._clock = clock
        self._sleep = sleep
        self._telemetry = telemetry or NoOpTelemetry()

        self._pending: Dict[str, asyncio.Task] = {}
        self._attempts: Dict[str, int] = {}
        self._last_dispatch: Dict[str, float] = {}
        self._cleanups: Dict[str, asyncio.TimerHandle] = {}

    async def execute(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        options: Optional[ExecuteOptions] = None,
    ) -> T:
        if not key:
            raise ValueError("key must be a non-empty string")
        opts = options or self.default_options

        pending = self._pending.get(key)
        if pending is not None:
            self._emit("request_reused", key=key)
            # shield: a cancelled waiter must not cancel the shared operation
            return await asyncio.shield(pending)

        now = self._clock()
        if opts.throttle:
            last = self._last_dispatch.get(key)
            if last is not None and (now - last) < self.throttle_window_s:
                retry_after_s = self.throttle_window_s - (now - last)
                self._emit("request_throttled", key=key, retry_after_s=round(retry_after_s, 3))
                raise RequestThrottled(key, retry_after_s=retry_after_s)

        count = self._attempts.get(key, 0)
        if count >= self.attempt_ceiling:
            self._emit("request_rejected", level=logging.WARNING, key=key, attempts=count)
            raise TooManyRequests(key, attempts=count)

        self._attempts[key] = count + 1
        self._last_dispatch[key] = now
        self._cancel_cleanup(key)

        task = asyncio.get_running_loop().create_task(self._run(key, operation, opts.to_policy()))
        self._pending[key] = task
        task.add_done_callback(partial(self._settle, key))
        self._emit("request_dispatched", key=key, dispatch=count + 1, max_retries=opts.max_retries)
        return await asyncio.shield(task)

    async def _run(self, key: str, operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
        result, _attempts = await run_with_retries(operation, policy=policy, key=key, sleep=self._sleep)
        return result

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is not task:
            # cleared while in flight; the key may already belong to a newer cycle
            return
        del self._pending[key]

        if task.cancelled():
            outcome = "cancelled"
        elif task.exception() is not None:
            outcome = "failure"
        else:
            outcome = "success"
            self._attempts[key] = 0

        level = logging.INFO if outcome == "success" else logging.WARNING
        self._emit("request_settled", level=level, key=key, outcome=outcome)
        self._schedule_cleanup(key, task.get_loop())

    def _schedule_cleanup(self, key: str, loop: asyncio.AbstractEventLoop) -> None:
        self._cancel_cleanup(key)
        self._cleanups[key] = loop.call_later(self.cleanup_delay_s, self._expire, key)

    def _cancel_cleanup(self, key: str) -> None:
        handle = self._cleanups.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _expire(self, key: str) -> None:
        self._cleanups.pop(key, None)
        if key in self._pending:
            return
        attempts = self._attempts.pop(key, 0)
        self._last_dispatch.pop(key, None)
        self._emit("request_state_expired", level=logging.DEBUG, key=key, attempts=attempts)

    def clear(self) -> None:
        logger.info("coordinator_cleared", extra={"event": "coordinator_cleared", "pending_count": len(self._pending)})
        for handle in self._cleanups.values():
            handle.cancel()
        self._cleanups.clear()
        self._pending.clear()
        self._attempts.clear()
        self._last_dispatch.clear()

    def clear_key(self, key: str) -> None:
        logger.info("coordinator_key_cleared", extra={"event": "coordinator_key_cleared", "key": key})
        self._cancel_cleanup(key)
        self._pending.pop(key, None)
        self._attempts.pop(key, None)
        self._last_dispatch.pop(key, None)

    def status(self) -> CoordinatorStatus:
        return CoordinatorStatus(pending_count=len(self._pending), active_keys=list(self._pending))

    def attempts(self, key: str) -> int:
        return self._attempts.get(key, 0)

    def _emit(self, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
        logger.log(level, event, extra={"event": event, **fields})
        self._telemetry.event(event, fields)
