# src/chorus_courier/services/__init__.py
"""Services driving a Chorus Courier session."""

from .backend import BackendClient
from .bootstrap import SessionBootstrap
from .keystore import KeyStore, LocalKeyStore
from .router import DeliveryTolerance, PayloadRouter, build_recipient_map

__all__ = [
    "BackendClient",
    "SessionBootstrap",
    "KeyStore",
    "LocalKeyStore",
    "DeliveryTolerance",
    "PayloadRouter",
    "build_recipient_map",
]
