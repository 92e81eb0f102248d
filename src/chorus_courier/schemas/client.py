# src/chorus_courier/schemas/client.py
"""Client (device) related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .prekey import PreKeyPayload


class SignalingKeys(BaseModel):
    """Symmetric keys the backend uses to protect push notifications."""

    enckey: str = Field(..., description="Base64-encoded AES-256 key")
    mackey: str = Field(..., description="Base64-encoded HMAC-SHA256 key")


class ClientDescriptor(BaseModel):
    """Device descriptor submitted when registering a new client.

    The key fields start out empty and are filled in by the session bootstrap
    before registration.
    """

    type: str = "permanent"
    client_class: str = Field(default="desktop", alias="class")
    model: str | None = None
    label: str | None = None
    cookie: str | None = Field(default=None, description="Label of the cookie this client is bound to")
    password: str | None = None
    lastkey: PreKeyPayload | None = None
    prekeys: list[PreKeyPayload] = Field(default_factory=list)
    sigkeys: SignalingKeys | None = None

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body expected by the client registration endpoint."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ClientRecord(BaseModel):
    """Client record assigned by the backend after registration."""

    id: str
    type: str | None = None
    client_class: str | None = Field(default=None, alias="class")
    label: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")
