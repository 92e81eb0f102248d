# src/chorus_courier/services/bootstrap.py
"""Session bootstrap: login, key registration and account housekeeping.

``SessionBootstrap.login`` walks one session from unauthenticated to ready:

1. log in, resetting cookies and retrying when the backend rate limits us
2. store the access token
3. generate identity and prekeys, keeping the last-resort prekey apart
4. generate signaling keys
5. register the client
6. fetch the user's profile

Each step starts only after the previous one finished. The first failure is
raised unchanged and nothing is rolled back, so the session keeps whatever
state it reached.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from chorus_courier.core.errors import (
    AuthenticationError,
    BackendError,
    ConnectionUpdateError,
    KeyMaterialError,
    RateLimitError,
    RegistrationError,
    SessionNotReadyError,
)
from chorus_courier.core.settings import settings
from chorus_courier.models.response import HTTP_OK, BackendResponse
from chorus_courier.models.session import Session
from chorus_courier.schemas.client import ClientRecord
from chorus_courier.schemas.connection import CONNECTION_ACCEPTED, ConnectionEvent
from chorus_courier.schemas.prekey import LAST_RESORT_PREKEY_ID, PreKeyPayload
from chorus_courier.services.backend import BackendClient
from chorus_courier.services.keystore import KeyStore, PreKeyBundle
from chorus_courier.utils.redact import redact_mapping, redact_token

logger = logging.getLogger(__name__)


class AutoConnectOutcome(Enum):
    """What an auto-connect attempt ended up doing."""
    ACCEPTED = "accepted"
    SKIPPED = "skipped"    # connection was not pending
    FAILED = "failed"


@dataclass(frozen=True)
class AutoConnectResult:
    """Best-effort result of accepting an incoming connection."""

    outcome: AutoConnectOutcome
    other_user_id: str | None
    response: BackendResponse | None = None
    error: ConnectionUpdateError | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome is AutoConnectOutcome.ACCEPTED


@dataclass(frozen=True)
class LogoutResult:
    """Result of a logout. ``logged_out`` is False when the backend refused."""

    logged_out: bool
    response: BackendResponse


def split_prekeys(
    key_store: KeyStore, bundles: Sequence[PreKeyBundle]
) -> tuple[PreKeyPayload, list[PreKeyPayload]]:
    """Serialize a prekey batch into ``(last_resort, regular)`` payloads.

    Raises:
        KeyMaterialError: If the batch has no last-resort prekey, no regular
            prekeys, or repeats an id.
    """
    last_resort: PreKeyPayload | None = None
    regular: list[PreKeyPayload] = []
    for bundle in bundles:
        payload = key_store.serialize_prekey(bundle)
        if payload.id == LAST_RESORT_PREKEY_ID:
            last_resort = payload
        else:
            regular.append(payload)

    if last_resort is None:
        raise KeyMaterialError(f"Key store returned no last-resort prekey (id {LAST_RESORT_PREKEY_ID})")
    if not regular:
        raise KeyMaterialError("Key store returned no regular prekeys")
    ids = [payload.id for payload in regular]
    if len(set(ids)) != len(ids):
        raise KeyMaterialError("Key store returned duplicate prekey ids")
    return last_resort, regular


class SessionBootstrap:
    """Drives one session through login and client registration."""

    def __init__(
        self,
        session: Session,
        backend: BackendClient,
        key_store: KeyStore,
        *,
        max_login_retries: int | None = None,
    ) -> None:
        self.session = session
        self.backend = backend
        self.key_store = key_store
        self.max_login_retries = (
            settings.max_login_retries if max_login_retries is None else max_login_retries
        )
        if self.max_login_retries < 0:
            raise ValueError("max_login_retries must not be negative")

    async def login(self) -> dict[str, Any]:
        """Log in, register a new client and return the user's profile."""

        response = await self._authenticate()
        self._store_access_token(response)
        await self._generate_key_material()
        await self._generate_signaling_key()
        await self._register_client()
        return await self._fetch_self()

    async def _authenticate(self) -> BackendResponse:
        attempt = 0
        while True:
            response = await self.backend.login()
            if not response.rate_limited:
                break
            if attempt >= self.max_login_retries:
                raise RateLimitError(
                    f"Login still rate limited after {attempt} cookie reset(s)", response
                )
            attempt += 1
            logger.warning(
                "Logins are too frequent; removing cookies on all clients (retry %d of %d)",
                attempt,
                self.max_login_retries,
            )
            await self.backend.remove_cookies()

        if not response.ok:
            raise AuthenticationError(f"Login rejected with status {response.status}", response)
        return response

    def _store_access_token(self, response: BackendResponse) -> None:
        body = response.body if isinstance(response.body, Mapping) else {}
        token = body.get("access_token")
        if not token:
            raise AuthenticationError("Login response carries no access token", response)
        self.session.access_token = token
        logger.info("Access token is %s", redact_token(token))

    async def _generate_key_material(self) -> None:
        bundles = await self.key_store.init_identity_and_prekeys()
        if self.key_store.identity is not None:
            fingerprint = self.key_store.compute_fingerprint(self.key_store.identity)
            logger.info("Public fingerprint is %s", fingerprint)

        last_resort, regular = split_prekeys(self.key_store, bundles)
        self.session.client_info.lastkey = last_resort
        self.session.client_info.prekeys = regular
        logger.debug("Serialized %d prekeys plus the last-resort prekey", len(regular))

    async def _generate_signaling_key(self) -> None:
        logger.debug("Creating signaling keys...")
        self.session.client_info.sigkeys = await self.key_store.generate_signaling_key()

    async def _register_client(self) -> None:
        info = self.session.client_info
        logger.info(
            'Registering new "%s" client of type "%s/%s/%s" with cookie label "%s"...',
            info.type,
            info.client_class,
            info.model,
            info.label,
            info.cookie,
        )
        logger.debug("Client descriptor: %s", redact_mapping(info.to_payload()))
        response = await self.backend.register_client(info)
        if not response.ok:
            raise RegistrationError(
                f"Client registration rejected with status {response.status}", response
            )
        self.session.client = ClientRecord.model_validate(response.body)
        logger.info("Registered client %s", self.session.client.id)

    async def _fetch_self(self) -> dict[str, Any]:
        response = await self.backend.get_self(self.session.access_token or "")
        if not response.ok:
            raise BackendError(f"Fetching own profile failed with status {response.status}", response)
        self.session.myself = response.body
        return response.body

    async def logout(self) -> LogoutResult:
        """Remove this client's cookie on the backend.

        Only a 200 counts as logged out; then the real-time connection is
        closed and the session forgets its credentials.

        Raises:
            SessionNotReadyError: If the client has no cookie label. Removing
                cookies without labels would log out every device.
        """
        cookie = self.session.client_info.cookie
        if not cookie:
            raise SessionNotReadyError("Client has no cookie label; refusing to remove all cookies")
        logger.info("Logging out user %s", self.session.self_user_id)
        response = await self.backend.remove_cookies([cookie])
        if response.status != HTTP_OK:
            logger.warning("Logout not completed, backend answered %d", response.status)
            return LogoutResult(logged_out=False, response=response)

        await self.session.disconnect_realtime()
        self.session.invalidate()
        return LogoutResult(logged_out=True, response=response)

    async def auto_connect(self, event: ConnectionEvent | Mapping[str, Any]) -> AutoConnectResult:
        """Accept a pending connection request. Never raises on backend failure."""

        if not isinstance(event, ConnectionEvent):
            event = ConnectionEvent.model_validate(event)
        other_user_id = event.counterpart_of(self.session.self_user_id)

        if not event.is_pending:
            return AutoConnectResult(AutoConnectOutcome.SKIPPED, other_user_id)

        if other_user_id is None:
            error = ConnectionUpdateError(
                f"Cannot accept connection {event.from_user} -> {event.to_user}: "
                f"own user id {self.session.self_user_id!r} is not a participant"
            )
            logger.warning("Auto-connection failed: %s", error)
            return AutoConnectResult(AutoConnectOutcome.FAILED, None, error=error)

        try:
            response = await self.backend.update_connection_status(
                self.session.access_token or "", other_user_id, CONNECTION_ACCEPTED
            )
        except BackendError as exc:
            error = ConnectionUpdateError(f"Auto-connection to {other_user_id} failed: {exc}")
            error.__cause__ = exc
            logger.warning("Auto-connection failed: %s", error)
            return AutoConnectResult(AutoConnectOutcome.FAILED, other_user_id, error=error)

        if not response.ok:
            error = ConnectionUpdateError(
                f"Auto-connection to {other_user_id} rejected with status {response.status}",
                response,
            )
            logger.warning("Auto-connection failed: %s", error)
            return AutoConnectResult(AutoConnectOutcome.FAILED, other_user_id, response, error)

        logger.info("Auto-connection to %s successful", other_user_id)
        return AutoConnectResult(AutoConnectOutcome.ACCEPTED, other_user_id, response)

    async def upload_prekeys(self, prekeys: Sequence[PreKeyPayload]) -> Any:
        """Upload a replenishment batch of prekeys; only HTTP 200 counts as success."""

        logger.info("Uploading %d new prekey(s) to the backend...", len(prekeys))
        response = await self.backend.update_client(prekeys)
        if response.status != HTTP_OK:
            raise RegistrationError(f"Prekey upload rejected with status {response.status}", response)
        return response.body
