from __future__ import annotations


class NoOpTelemetry:
    def event(self, name: str, payload: dict):  # noqa: ARG002
        return None
