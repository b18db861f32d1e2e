from nutrition_client.config import CoordinatorSettings, build_api_client, build_coordinator, get_settings
from nutrition_client.coordination import (
    CoordinationError,
    CoordinatorStatus,
    ExecuteOptions,
    OperationFailed,
    RequestCoordinator,
    RequestThrottled,
    TooManyRequests,
    create_request_key,
)

__all__ = [
    "CoordinationError",
    "CoordinatorSettings",
    "CoordinatorStatus",
    "ExecuteOptions",
    "OperationFailed",
    "RequestCoordinator",
    "RequestThrottled",
    "TooManyRequests",
    "build_api_client",
    "build_coordinator",
    "create_request_key",
    "get_settings",
]
