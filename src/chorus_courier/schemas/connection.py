# src/chorus_courier/schemas/connection.py
"""Connection event schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

CONNECTION_PENDING = "pending"
CONNECTION_ACCEPTED = "accepted"


class ConnectionEvent(BaseModel):
    """A connection request between two users.

    Backend events nest the connection under a ``connection`` key; both the
    nested and the flat shape are accepted.
    """

    from_user: str = Field(..., alias="from")
    to_user: str = Field(..., alias="to")
    status: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def unwrap_connection(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("connection"), dict):
            return data["connection"]
        return data

    def counterpart_of(self, user_id: str | None) -> str | None:
        """Return the participant that is not ``user_id``.

        None when ``user_id`` is unknown or not part of the connection.
        """
        involved = [self.from_user, self.to_user]
        if user_id is None or user_id not in involved:
            return None
        involved.remove(user_id)
        return involved[-1]

    @property
    def is_pending(self) -> bool:
        return self.status == CONNECTION_PENDING
