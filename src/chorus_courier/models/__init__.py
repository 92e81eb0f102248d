"""Session-side models for Chorus Courier."""

from .response import BackendResponse
from .session import RealtimeConnection, Session

__all__ = [
    "BackendResponse",
    "RealtimeConnection", "Session",
]
