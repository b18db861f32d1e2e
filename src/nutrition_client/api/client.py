from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import httpx
from pydantic import ValidationError

from nutrition_client.api.errors import (
    ApiAuthError,
    ApiNetworkError,
    ApiRequestError,
    ApiServerError,
    ApiTimeout,
)
from nutrition_client.api.schemas import ApiEnvelope
from nutrition_client.coordination.coordinator import ExecuteOptions, RequestCoordinator
from nutrition_client.coordination.keys import create_request_key
from nutrition_client.secrets import TokenStore

logger = logging.getLogger(__name__)


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        for field in ("error", "message", "detail"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body.strip():
        return body.strip()[:200]
    return fallback


class NutritionApiClient:
    """
    Async REST client for the nutrition backend.

    GET calls always go through the `RequestCoordinator`, so identical reads
    issued concurrently (screen mount + pull-to-refresh, several widgets asking
    for the same statistics) share a single HTTP round-trip. Mutating calls
    are sent directly unless `coordinated=True` is passed.
    """

    def __init__(
        self,
        base_url: str,
        *,
        coordinator: RequestCoordinator | None = None,
        token_store: TokenStore | None = None,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        get_options: ExecuteOptions | None = None,
        debug_logging: bool = False,
    ):
        self._coordinator = coordinator or RequestCoordinator()
        self._debug_logging = debug_logging
        self._token_store = token_store
        self._get_options = get_options
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_s,
            headers={"Content-Type": "application/json"},
            follow_redirects=True,
            max_redirects=3,
            transport=transport,
        )

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    async def __aenter__(self) -> "NutritionApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        options: ExecuteOptions | None = None,
    ) -> Any:
        key = create_request_key("GET", path, params)
        return await self._coordinator.execute(
            key,
            lambda: self.request("GET", path, params=params),
            options or self._get_options,
        )

    async def post(self, path: str, json: Any = None, *, coordinated: bool = False, options: ExecuteOptions | None = None) -> Any:
        return await self._mutate("POST", path, json, coordinated=coordinated, options=options)

    async def put(self, path: str, json: Any = None, *, coordinated: bool = False, options: ExecuteOptions | None = None) -> Any:
        return await self._mutate("PUT", path, json, coordinated=coordinated, options=options)

    async def patch(self, path: str, json: Any = None, *, coordinated: bool = False, options: ExecuteOptions | None = None) -> Any:
        return await self._mutate("PATCH", path, json, coordinated=coordinated, options=options)

    async def delete(self, path: str, json: Any = None, *, coordinated: bool = False, options: ExecuteOptions | None = None) -> Any:
        return await self._mutate("DELETE", path, json, coordinated=coordinated, options=options)

    async def _mutate(
        self,
        method: str,
        path: str,
        json: Any,
        *,
        coordinated: bool,
        options: ExecuteOptions | None,
    ) -> Any:
        if not coordinated:
            return await self.request(method, path, json=json)
        key = create_request_key(method, path, data=json)
        return await self._coordinator.execute(key, lambda: self.request(method, path, json=json), options)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        headers = {}
        token = self._token_store.get() if self._token_store is not None else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        start = time.perf_counter()
        try:
            resp = await self._http.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning(
                "api_request_timeout",
                extra={"event": "api_request_timeout", "method": method, "path": path},
            )
            raise ApiTimeout(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning(
                "api_request_network_error",
                extra={"event": "api_request_network_error", "method": method, "path": path, "error": str(exc)},
            )
            raise ApiNetworkError(f"{method} {path} failed: {exc}") from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        status_code = resp.status_code
        extra = {
            "event": "api_request",
            "method": method,
            "path": path,
            "status_code": status_code,
            "latency_ms": latency_ms,
            "outcome": "error" if status_code >= 400 else "success",
        }
        if status_code >= 400:
            logger.error("api_request", extra=extra)
        else:
            logger.info("api_request", extra=extra)

        body = _decode_body(resp)
        if self._debug_logging:
            logger.info(
                "api_debug",
                extra={
                    "event": "api_debug",
                    "method": method,
                    "path": path,
                    "params": dict(params or {}),
                    "request_body": json,
                    "response_body": body,
                },
            )
        if status_code == 401:
            # token expired or revoked
            if self._token_store is not None:
                self._token_store.clear()
            raise ApiAuthError(_error_message(body, "Unauthorized"), status_code=401)
        if status_code == 429 or status_code >= 500:
            raise ApiServerError(_error_message(body, f"Server error {status_code}"), status_code=status_code)
        if status_code >= 400:
            raise ApiRequestError(_error_message(body, f"Request failed with {status_code}"), status_code=status_code)

        if isinstance(body, dict) and "success" in body:
            try:
                envelope = ApiEnvelope.model_validate(body)
            except ValidationError as exc:
                # the server already handled the request; never resend
                raise ApiRequestError(f"Malformed response body for {method} {path}", status_code=status_code) from exc
            if not envelope.success:
                raise ApiRequestError(envelope.failure_message(), status_code=status_code)
        return body
