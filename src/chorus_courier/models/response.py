# src/chorus_courier/models/response.py
"""Backend response container."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

HTTP_OK = 200
HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class BackendResponse:
    """Status code and parsed JSON body of a backend call."""

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def rate_limited(self) -> bool:
        return self.status == HTTP_TOO_MANY_REQUESTS
