# src/chorus_courier/schemas/message.py
"""Schemas for encrypted conversation messages."""

from pydantic import BaseModel, ConfigDict, Field

# user id -> client id -> encrypted payload
RecipientMap = dict[str, dict[str, str]]


class RecipientPayload(BaseModel):
    """One encrypted payload addressed to a single device."""

    session_id: str = Field(..., alias="sessionId", description="Session id of the form <userId>@<clientId>")
    encrypted_payload: str = Field(..., alias="encryptedPayload")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class OtrMessage(BaseModel):
    """Body posted to a conversation's encrypted message endpoint."""

    sender: str = Field(..., description="Client id of the sending device")
    recipients: RecipientMap = Field(default_factory=dict)
