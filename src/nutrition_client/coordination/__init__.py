from .coordinator import CoordinatorStatus, ExecuteOptions, RequestCoordinator
from .errors import CoordinationError, OperationFailed, RequestThrottled, TooManyRequests
from .keys import create_request_key
from .retry import RetryPolicy, run_with_retries

__all__ = [
    "CoordinationError",
    "CoordinatorStatus",
    "ExecuteOptions",
    "OperationFailed",
    "RequestCoordinator",
    "RequestThrottled",
    "RetryPolicy",
    "TooManyRequests",
    "create_request_key",
    "run_with_retries",
]
