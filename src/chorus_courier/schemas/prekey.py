# src/chorus_courier/schemas/prekey.py
"""Prekey-related Pydantic schemas."""

from pydantic import BaseModel, Field

# Reserved id of the standing last-resort prekey
LAST_RESORT_PREKEY_ID = 65535


class PreKeyPayload(BaseModel):
    """Serialized prekey as uploaded to the backend."""

    id: int = Field(..., ge=0, le=LAST_RESORT_PREKEY_ID)
    key: str = Field(..., description="Base64-encoded prekey bundle")

    @property
    def is_last_resort(self) -> bool:
        return self.id == LAST_RESORT_PREKEY_ID
