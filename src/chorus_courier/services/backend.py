"""Backend client for the encrypted messaging service.

This module provides the BackendClient class that handles all communication
between a Chorus Courier session and the messaging backend. It includes:

- HTTP client with bearer authentication and session cookies
- Metrics collection for monitoring
- One coroutine per backend operation used by the session bootstrap and
  the payload router
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

import httpx

from chorus_courier.core.errors import BackendError, SessionNotReadyError
from chorus_courier.core.settings import settings
from chorus_courier.models.response import BackendResponse
from chorus_courier.models.session import Session
from chorus_courier.schemas.client import ClientDescriptor
from chorus_courier.schemas.message import OtrMessage
from chorus_courier.schemas.prekey import PreKeyPayload

# Configure logger for this module
logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@dataclass
class BackendMetrics:
    """Metrics collection for backend operations."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    min_response_time: float = float('inf')
    max_response_time: float = 0.0
    status_counts: dict[int, int] = field(default_factory=lambda: defaultdict(int))
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    endpoint_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self,
        endpoint: str,
        response_time: float,
        status: int | None,
        error_type: str | None = None,
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time
        self.min_response_time = min(self.min_response_time, response_time)
        self.max_response_time = max(self.max_response_time, response_time)
        self.endpoint_counts[endpoint] += 1

        if status is not None:
            self.status_counts[status] += 1
        if error_type is None and status is not None and 200 <= status < 300:
            self.success_count += 1
        else:
            self.error_count += 1
            self.error_counts_by_type[error_type or f"http_{status}"] += 1

    def get_average_response_time(self) -> float:
        """Get average response time."""
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0

    def get_success_rate(self) -> float:
        """Get success rate as a percentage."""
        return (self.success_count / self.request_count * 100) if self.request_count > 0 else 0.0


@dataclass(frozen=True)
class BackendConfig:
    """Immutable configuration for backend operations."""

    email: str | None
    password: str | None
    persist: bool
    timeout_seconds: float


def load_backend_config() -> BackendConfig:
    """Build configuration object from global settings."""

    return BackendConfig(
        email=settings.email,
        password=settings.password,
        persist=settings.persist_login,
        timeout_seconds=float(settings.http_timeout_seconds),
    )


def bearer_header(access_token: str) -> dict[str, str]:
    """Return the Authorization header for a (possibly percent-encoded) token."""
    return {"Authorization": f"Bearer {unquote(access_token)}"}


class BackendClient:
    """HTTP client wrapper for the messaging backend.

    Every operation returns a BackendResponse and leaves the interpretation
    of the status code to the caller. Only transport failures raise.
    """

    def __init__(
        self,
        session: Session,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session
        self.config = config or load_backend_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._metrics = BackendMetrics()

    @property
    def metrics(self) -> BackendMetrics:
        return self._metrics

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.session.backend_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )

        return self._client

    async def aclose(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _session_token(self) -> str:
        if not self.session.access_token:
            raise SessionNotReadyError("Session has no access token; log in first")
        return self.session.access_token

    def _credentials(self) -> dict[str, Any]:
        return {"email": self.config.email, "password": self.config.password}

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        path: str
        json_data: Any | None = None
        params: Mapping[str, Any] | None = None
        access_token: str | None = None

    async def _request(self, params: RequestParams) -> BackendResponse:
        client = await self._ensure_client()

        headers: dict[str, str] = {}
        content: bytes | None = None
        if params.access_token is not None:
            headers.update(bearer_header(params.access_token))
        if params.json_data is not None:
            headers["Content-Type"] = JSON_CONTENT_TYPE
            content = json.dumps(params.json_data).encode("utf-8")

        start_time = time.time()
        endpoint = f"{params.method} {params.path}"
        status: int | None = None
        error_type = None

        try:
            response = await client.request(
                params.method,
                params.path,
                content=content,
                params=params.params,
                headers=headers,
            )
            status = response.status_code
        except httpx.HTTPError as exc:
            error_type = "network_error"
            raise BackendError(f"Backend request {endpoint} failed: {exc}") from exc
        except Exception as exc:
            error_type = "unknown_error"
            raise BackendError(f"Backend request {endpoint} failed: {exc}") from exc
        finally:
            if status is None and error_type is None:
                # cancelled mid-request
                error_type = "unknown_error"
            self._metrics.record_request(endpoint, time.time() - start_time, status, error_type)

        logger.debug("%s -> %d", endpoint, status)
        return BackendResponse(status=status, body=_parse_body(response))

    async def login(self) -> BackendResponse:
        """Authenticate with the configured credentials."""

        return await self._request(
            self.RequestParams(
                method="POST",
                path="/login",
                json_data=self._credentials(),
                params={"persist": "true" if self.config.persist else "false"},
            )
        )

    async def remove_cookies(self, labels: Sequence[str] | None = None) -> BackendResponse:
        """Revoke the user's session cookies, optionally only those with ``labels``."""

        payload = self._credentials()
        if labels:
            payload["labels"] = list(labels)
        return await self._request(
            self.RequestParams(method="POST", path="/cookies/remove", json_data=payload)
        )

    async def register_client(self, descriptor: ClientDescriptor) -> BackendResponse:
        """Register a new device for the authenticated user."""

        return await self._request(
            self.RequestParams(
                method="POST",
                path="/clients",
                json_data=descriptor.to_payload(),
                access_token=self._session_token(),
            )
        )

    async def get_self(self, access_token: str) -> BackendResponse:
        """Fetch the authenticated user's profile."""

        return await self._request(
            self.RequestParams(method="GET", path="/self", access_token=access_token)
        )

    async def update_connection_status(
        self, access_token: str, other_user_id: str, status: str
    ) -> BackendResponse:
        """Change the status of the connection to ``other_user_id``."""

        return await self._request(
            self.RequestParams(
                method="PUT",
                path=f"/connections/{other_user_id}",
                json_data={"status": status},
                access_token=access_token,
            )
        )

    async def update_client(self, prekeys: Sequence[PreKeyPayload]) -> BackendResponse:
        """Upload a replenishment batch of prekeys for the registered client."""

        client_id = self.session.client_id
        if client_id is None:
            raise SessionNotReadyError("Session has no registered client; log in first")
        return await self._request(
            self.RequestParams(
                method="PUT",
                path=f"/clients/{client_id}",
                json_data={"prekeys": [prekey.model_dump() for prekey in prekeys]},
                access_token=self._session_token(),
            )
        )

    async def fetch_prekeys(self, user_client_map: Mapping[str, Sequence[str]]) -> BackendResponse:
        """Claim one prekey per listed client of each listed user."""

        return await self._request(
            self.RequestParams(
                method="POST",
                path="/users/prekeys",
                json_data={user: list(clients) for user, clients in user_client_map.items()},
                access_token=self._session_token(),
            )
        )

    async def post_conversation_messages(
        self, conversation_id: str, message: OtrMessage, ignore_missing: bool
    ) -> BackendResponse:
        """Post an encrypted message to every listed device of a conversation."""

        return await self._request(
            self.RequestParams(
                method="POST",
                path=f"/conversations/{conversation_id}/otr/messages",
                json_data=message.model_dump(),
                params={"ignore_missing": "true" if ignore_missing else "false"},
                access_token=self._session_token(),
            )
        )


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
