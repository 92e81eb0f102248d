# tests/services/test_router.py
"""Tests for recipient map building and message sending."""

import pytest

from chorus_courier.core.errors import BackendError, SessionNotReadyError
from chorus_courier.models.response import BackendResponse
from chorus_courier.schemas.message import OtrMessage, RecipientPayload
from chorus_courier.services.router import (
    DeliveryTolerance,
    PayloadRouter,
    build_recipient_map,
    split_session_id,
)

EXAMPLE_PAYLOADS = [
    {"sessionId": "u1@c1", "encryptedPayload": "X"},
    {"sessionId": "u1@c2", "encryptedPayload": "Y"},
    {"sessionId": "u2@c1", "encryptedPayload": "Z"},
]


class TestBuildRecipientMap:
    """Test the build_recipient_map function."""

    def test_groups_by_user_and_client(self):
        recipients = build_recipient_map(EXAMPLE_PAYLOADS)

        assert recipients == {"u1": {"c1": "X", "c2": "Y"}, "u2": {"c1": "Z"}}

    def test_accepts_models(self):
        payloads = [RecipientPayload(session_id="u1@c1", encrypted_payload="X")]

        assert build_recipient_map(payloads) == {"u1": {"c1": "X"}}

    @pytest.mark.parametrize("payloads", [None, []])
    def test_empty_input_gives_empty_map(self, payloads):
        assert build_recipient_map(payloads) == {}

    def test_last_write_wins_for_duplicates(self):
        payloads = [
            {"sessionId": "u1@c1", "encryptedPayload": "first"},
            {"sessionId": "u2@c9", "encryptedPayload": "other"},
            {"sessionId": "u1@c1", "encryptedPayload": "second"},
        ]

        recipients = build_recipient_map(payloads)

        assert recipients["u1"] == {"c1": "second"}
        assert len(recipients) == 2

    def test_one_key_per_distinct_user(self):
        payloads = [
            {"sessionId": f"user{n % 4}@client{n}", "encryptedPayload": str(n)}
            for n in range(20)
        ]

        recipients = build_recipient_map(payloads)

        assert set(recipients) == {"user0", "user1", "user2", "user3"}
        assert sum(len(clients) for clients in recipients.values()) == 20

    def test_returns_fresh_map_each_call(self):
        first = build_recipient_map(EXAMPLE_PAYLOADS)
        first["u1"]["c1"] = "tampered"

        assert build_recipient_map(EXAMPLE_PAYLOADS)["u1"]["c1"] == "X"

    @pytest.mark.parametrize("session_id", ["no-separator", "@client", "user@"])
    def test_malformed_session_id_raises(self, session_id):
        with pytest.raises(ValueError, match="Malformed session id"):
            build_recipient_map([{"sessionId": session_id, "encryptedPayload": "X"}])

    def test_split_on_first_separator(self):
        assert split_session_id("u1@c1") == ("u1", "c1")


class TestDeliveryTolerance:
    """Test the ignore_missing polarity."""

    def test_tolerant_when_any_recipient(self):
        tolerance = DeliveryTolerance.for_recipients({"u1": {"c1": "X"}})

        assert tolerance is DeliveryTolerance.TOLERANT_IF_ANY
        assert tolerance.ignore_missing is True
        assert tolerance.query_value == "true"

    def test_strict_when_empty(self):
        tolerance = DeliveryTolerance.for_recipients({})

        assert tolerance is DeliveryTolerance.STRICT_IF_EMPTY
        assert tolerance.ignore_missing is False
        assert tolerance.query_value == "false"


class TestPayloadRouter:
    """Test PayloadRouter.send_message and get_prekeys."""

    @pytest.mark.asyncio
    async def test_send_message_tolerates_missing_devices(self, ready_session, mock_backend):
        response = BackendResponse(201, {"missing": {}, "redundant": {}, "deleted": {}})
        mock_backend.post_conversation_messages.return_value = response

        result = await PayloadRouter(ready_session, mock_backend).send_message("conv-1", EXAMPLE_PAYLOADS)

        assert result is response
        mock_backend.post_conversation_messages.assert_awaited_once_with(
            "conv-1",
            OtrMessage(sender="client-1", recipients={"u1": {"c1": "X", "c2": "Y"}, "u2": {"c1": "Z"}}),
            True,
        )

    @pytest.mark.asyncio
    async def test_empty_send_demands_strict_delivery(self, ready_session, mock_backend):
        mock_backend.post_conversation_messages.return_value = BackendResponse(412, {"missing": {"u1": ["c1"]}})

        result = await PayloadRouter(ready_session, mock_backend).send_message("conv-1", [])

        assert result.status == 412
        mock_backend.post_conversation_messages.assert_awaited_once_with(
            "conv-1", OtrMessage(sender="client-1", recipients={}), False
        )

    @pytest.mark.asyncio
    async def test_send_requires_ready_session(self, session, mock_backend):
        with pytest.raises(SessionNotReadyError):
            await PayloadRouter(session, mock_backend).send_message("conv-1", EXAMPLE_PAYLOADS)

        mock_backend.post_conversation_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_prekeys_returns_body(self, ready_session, mock_backend):
        body = {"u1": {"c1": {"id": 3, "key": "a2V5"}}}
        mock_backend.fetch_prekeys.return_value = BackendResponse(200, body)

        result = await PayloadRouter(ready_session, mock_backend).get_prekeys({"u1": ["c1"]})

        assert result == body
        mock_backend.fetch_prekeys.assert_awaited_once_with({"u1": ["c1"]})

    @pytest.mark.asyncio
    async def test_get_prekeys_raises_on_error(self, ready_session, mock_backend):
        mock_backend.fetch_prekeys.return_value = BackendResponse(403)

        with pytest.raises(BackendError) as exc_info:
            await PayloadRouter(ready_session, mock_backend).get_prekeys({"u1": ["c1"]})

        assert exc_info.value.status == 403
