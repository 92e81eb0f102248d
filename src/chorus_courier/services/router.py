# src/chorus_courier/services/router.py
"""Fan-out of per-device encrypted payloads into conversation messages."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from chorus_courier.core.errors import BackendError
from chorus_courier.models.response import BackendResponse
from chorus_courier.models.session import Session
from chorus_courier.schemas.message import OtrMessage, RecipientMap, RecipientPayload
from chorus_courier.services.backend import BackendClient

logger = logging.getLogger(__name__)

SESSION_ID_SEPARATOR = "@"


class DeliveryTolerance(Enum):
    """Value of the backend's ``ignore_missing`` flag for a send.

    The polarity is intentionally inverted: a send with no payloads at all asks
    the backend to check full device coverage, so the reply lists every device
    we are missing. Once at least one payload exists, partial delivery is
    accepted.
    """
    STRICT_IF_EMPTY = False
    TOLERANT_IF_ANY = True

    @classmethod
    def for_recipients(cls, recipients: RecipientMap) -> DeliveryTolerance:
        return cls.TOLERANT_IF_ANY if recipients else cls.STRICT_IF_EMPTY

    @property
    def ignore_missing(self) -> bool:
        return self.value

    @property
    def query_value(self) -> str:
        return "true" if self.value else "false"


def split_session_id(session_id: str) -> tuple[str, str]:
    """Split ``<userId>@<clientId>`` on the first separator."""
    user_id, separator, client_id = session_id.partition(SESSION_ID_SEPARATOR)
    if not separator or not user_id or not client_id:
        raise ValueError(f"Malformed session id {session_id!r}, expected <userId>@<clientId>")
    return user_id, client_id


def build_recipient_map(
    payloads: Iterable[RecipientPayload | Mapping[str, Any]] | None,
) -> RecipientMap:
    """Group encrypted payloads by user id and client id.

    A later payload for the same device replaces an earlier one.
    """
    recipients: RecipientMap = {}
    if not payloads:
        return recipients

    for payload in payloads:
        if not isinstance(payload, RecipientPayload):
            payload = RecipientPayload.model_validate(payload)
        user_id, client_id = split_session_id(payload.session_id)
        recipients.setdefault(user_id, {})[client_id] = payload.encrypted_payload

    return recipients


class PayloadRouter:
    """Sends encrypted payloads to a conversation on behalf of one session."""

    def __init__(self, session: Session, backend: BackendClient) -> None:
        self.session = session
        self.backend = backend

    async def send_message(
        self,
        conversation_id: str,
        payloads: Iterable[RecipientPayload | Mapping[str, Any]] | None,
    ) -> BackendResponse:
        """Post payloads to a conversation and return the raw backend response.

        Per-recipient delivery problems reported in the response (such as
        missing or redundant devices) are left to the caller.
        """
        _, client_id = self.session.require_ready()
        recipients = build_recipient_map(payloads)
        tolerance = DeliveryTolerance.for_recipients(recipients)
        logger.debug(
            "Sending to %d user(s) in conversation %s with ignore_missing=%s",
            len(recipients),
            conversation_id,
            tolerance.query_value,
        )
        return await self.backend.post_conversation_messages(
            conversation_id,
            OtrMessage(sender=client_id, recipients=recipients),
            tolerance.ignore_missing,
        )

    async def get_prekeys(self, user_client_map: Mapping[str, Sequence[str]]) -> Any:
        """Fetch prekeys for the given clients of the given users."""
        response = await self.backend.fetch_prekeys(user_client_map)
        if not response.ok:
            raise BackendError(f"Prekey lookup failed with status {response.status}", response)
        return response.body
