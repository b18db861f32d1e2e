from __future__ import annotations


class CoordinationError(Exception):
    """Базовая ошибка слоя координации запросов."""
    code: str = "COORDINATION_ERROR"
    retryable: bool = False

    def __init__(self, message: str, *, key: str, code: str | None = None):
        super().__init__(message)
        self.key = key
        if code is not None:
            self.code = code


class RequestThrottled(CoordinationError):
    code = "REQUEST_THROTTLED"

    def __init__(self, key: str, *, retry_after_s: float):
        super().__init__(f"Request throttled for {key}", key=key)
        self.retry_after_s = retry_after_s


class TooManyRequests(CoordinationError):
    code = "TOO_MANY_REQUESTS"

    def __init__(self, key: str, *, attempts: int):
        super().__init__(f"Too many requests for {key}", key=key)
        self.attempts = attempts


class OperationFailed(CoordinationError):
    code = "OPERATION_FAILED"

    def __init__(self, key: str, *, attempts: int, last_error: BaseException):
        super().__init__(f"Request failed for {key} after {attempts} attempt(s): {last_error}", key=key)
        self.attempts = attempts
        self.last_error = last_error
