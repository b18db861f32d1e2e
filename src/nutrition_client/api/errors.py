from __future__ import annotations


class ApiError(Exception):
    code: str = "API_ERROR"
    retryable: bool = False

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        if code is not None:
            self.code = code


class ApiTimeout(ApiError):
    code = "API_TIMEOUT"
    retryable = True


class ApiNetworkError(ApiError):
    code = "API_NETWORK_ERROR"
    retryable = True


class ApiServerError(ApiError):
    code = "API_SERVER_ERROR"
    retryable = True


class ApiAuthError(ApiError):
    code = "API_AUTH"
    retryable = False


class ApiRequestError(ApiError):
    code = "API_REQUEST_ERROR"
    retryable = False
