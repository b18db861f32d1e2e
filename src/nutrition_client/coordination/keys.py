from __future__ import annotations

from typing import Any, Mapping

from nutrition_client.utils.hashing import hash_text_short, stable_json


def create_request_key(
    method: str,
    url: str,
    params: Mapping[str, Any] | None = None,
    data: Any = None,
) -> str:
    """
    Builds the dedup/throttle key for a request: `METHOD:url:paramsJSON`.

    A request body, when present, is appended as a short digest so keys stay
    compact and do not leak payloads into logs.
    """
    if not method or not url:
        raise ValueError("method and url are required to build a request key")
    key = f"{method.upper()}:{url}:{stable_json(dict(params or {}))}"
    if data is not None:
        key = f"{key}:{hash_text_short(stable_json(data))}"
    return key
