"""
Errors raised by the API client.

HTTP error responses become `ApiError`. Transport failures (no response at
all) are not wrapped: callers see `httpx.TransportError` unchanged.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Raised when the backend answers with a non-success status."""

    def __init__(
        self,
        status_code: int,
        payload: Any = None,
        *,
        method: str = "",
        url: str = "",
    ):
        super().__init__(f"{method} {url} -> {status_code}".strip())
        self.status_code = status_code
        self.payload = payload
        self.method = method
        self.url = url

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def detail(self) -> str:
        """Best-effort human-readable message taken from the payload.

        DRF-style backends answer with `{"detail": ...}` or a mapping of
        field -> [messages]; both are flattened into one line.
        """
        payload = self.payload
        if isinstance(payload, dict):
            if payload.get("detail"):
                return str(payload["detail"])
            parts = []
            for key, value in payload.items():
                if isinstance(value, list):
                    value = " ".join(str(v) for v in value)
                parts.append(f"{key}: {value}")
            if parts:
                return "; ".join(parts)
        if isinstance(payload, str) and payload.strip():
            return payload.strip()
        return f"Request failed ({self.status_code})"
