# src/chorus_courier/models/session.py
"""Authenticated session context shared by bootstrap and message routing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from chorus_courier.core.errors import SessionNotReadyError
from chorus_courier.core.settings import Settings, settings
from chorus_courier.schemas.client import ClientDescriptor, ClientRecord


class RealtimeConnection(Protocol):
    """Subset of the real-time (websocket) connection API we rely on."""

    async def disconnect(self) -> None: ...


@dataclass
class Session:
    """Mutable context of one authenticated user.

    The caller owns the instance. Only the session bootstrap writes the
    access token, the client record and the profile.
    """

    backend_url: str
    client_info: ClientDescriptor
    access_token: str | None = None
    client: ClientRecord | None = None
    myself: dict[str, Any] | None = None
    realtime: RealtimeConnection | None = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> Session:
        """Build a fresh, unauthenticated session from configuration."""
        config = config or settings
        return cls(
            backend_url=config.backend_url,
            client_info=ClientDescriptor(
                type=config.client_type,
                client_class=config.client_class,
                model=config.client_model,
                label=config.client_label,
                cookie=config.cookie_label,
                password=config.password,
            ),
        )

    @property
    def client_id(self) -> str | None:
        return self.client.id if self.client is not None else None

    @property
    def self_user_id(self) -> str | None:
        if not self.myself:
            return None
        return self.myself.get("id")

    @property
    def is_ready(self) -> bool:
        return bool(self.access_token) and self.client_id is not None

    def require_ready(self) -> tuple[str, str]:
        """Return ``(access_token, client_id)`` or raise if either is missing."""
        if not self.access_token:
            raise SessionNotReadyError("Session has no access token; log in first")
        if self.client_id is None:
            raise SessionNotReadyError("Session has no registered client; log in first")
        return self.access_token, self.client_id

    async def disconnect_realtime(self) -> None:
        if self.realtime is not None:
            await self.realtime.disconnect()
            self.realtime = None

    def invalidate(self) -> None:
        """Forget credentials and identity after a logout."""
        self.access_token = None
        self.client = None
        self.myself = None
