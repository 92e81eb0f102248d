"""
Pydantic schemas for backend request/response bodies.

These schemas define the structure of backend data for serialization and validation.
"""

from .client import ClientDescriptor, ClientRecord, SignalingKeys
from .connection import CONNECTION_ACCEPTED, CONNECTION_PENDING, ConnectionEvent
from .message import OtrMessage, RecipientMap, RecipientPayload
from .prekey import LAST_RESORT_PREKEY_ID, PreKeyPayload

__all__ = [
    "ClientDescriptor", "ClientRecord", "SignalingKeys",
    "CONNECTION_ACCEPTED", "CONNECTION_PENDING", "ConnectionEvent",
    "OtrMessage", "RecipientMap", "RecipientPayload",
    "LAST_RESORT_PREKEY_ID", "PreKeyPayload",
]
