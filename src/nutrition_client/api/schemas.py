from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ApiEnvelope(BaseModel):
    """Common `{success, data, error, message}` body returned by the nutrition backend."""

    model_config = ConfigDict(extra="allow")

    success: bool = True
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None

    def failure_message(self) -> str:
        return self.error or self.message or "Request failed"
