from __future__ import annotations

import hashlib
import json
from typing import Any


def hash_text_short(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


def stable_json(value: Any) -> str:
    # sort_keys: {"a":1,"b":2} and {"b":2,"a":1} must serialize identically
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
