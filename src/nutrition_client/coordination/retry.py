from __future__ import annotations
import asyncio, logging, random
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Tuple, TypeVar

from .errors import OperationFailed

T = TypeVar("T")

Backoff = Literal["fixed", "exponential"]
BACKOFF_MODES = frozenset({"fixed", "exponential"})

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 1
    retry_delay_s: float = 2.0
    backoff: Backoff = "fixed"
    max_delay_s: float = 30.0
    jitter: float = 0.2  # 20%, only for exponential

    def __post_init__(self):
        if self.backoff not in BACKOFF_MODES:
            raise ValueError(f"backoff must be one of {sorted(BACKOFF_MODES)}, got {self.backoff!r}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        if self.backoff == "fixed":
            return max(0.0, self.retry_delay_s)
        # exponential backoff with jitter
        delay = min(self.max_delay_s, self.retry_delay_s * (2 ** (attempt - 1)))
        jitter = delay * self.jitter * (random.random() * 2 - 1)
        return max(0.0, delay + jitter)


def is_retryable(exc: BaseException) -> bool:
    # errors without a retryable flag are retried
    return getattr(exc, "retryable", True) is not False


async def run_with_retries(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    key: str,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> Tuple[T, int]:
    """
    Runs `fn` up to `policy.max_attempts` times.

    Returns `(result, attempts_used)`. When attempts run out, or the error says
    it is not retryable, raises `OperationFailed` chained to the last error.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await fn()
        except Exception as e:
            logger.warning(
                "request_attempt_failed",
                extra={
                    "event": "request_attempt_failed",
                    "key": key,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            if not is_retryable(e) or attempt >= policy.max_attempts:
                raise OperationFailed(key, attempts=attempt, last_error=e) from e
            await sleep(policy.delay_for(attempt))
            continue
        if attempt > 1:
            logger.info(
                "request_retry_succeeded",
                extra={"event": "request_retry_succeeded", "key": key, "attempt": attempt},
            )
        return result, attempt
    raise AssertionError("max_attempts must be >= 1")
