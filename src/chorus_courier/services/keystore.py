# src/chorus_courier/services/keystore.py
"""Key store producing the identity, prekeys and signaling keys of a device."""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass
from typing import Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from chorus_courier.core.settings import settings
from chorus_courier.schemas.client import SignalingKeys
from chorus_courier.schemas.prekey import LAST_RESORT_PREKEY_ID, PreKeyPayload

SIGNALING_KEY_BYTES = 32


def _raw_public(key: X25519PrivateKey | Ed25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


@dataclass(frozen=True)
class IdentityKeyPair:
    """Long-term identity of this device."""

    private_key: Ed25519PrivateKey

    @property
    def public_bytes(self) -> bytes:
        return _raw_public(self.private_key)


@dataclass(frozen=True)
class PreKeyBundle:
    """One generated prekey and its id."""

    id: int
    private_key: X25519PrivateKey

    @property
    def public_bytes(self) -> bytes:
        return _raw_public(self.private_key)


class KeyStore(Protocol):
    """Key material operations the session bootstrap relies on."""

    identity: IdentityKeyPair | None

    async def init_identity_and_prekeys(self) -> list[PreKeyBundle]: ...

    def serialize_prekey(self, bundle: PreKeyBundle) -> PreKeyPayload: ...

    def compute_fingerprint(self, identity: IdentityKeyPair) -> str: ...

    async def generate_signaling_key(self) -> SignalingKeys: ...


class LocalKeyStore:
    """In-memory key store backed by ``cryptography``.

    ``init_identity_and_prekeys`` returns ``batch_size`` regular prekeys with
    ids starting at 0, followed by the last-resort prekey.
    """

    def __init__(self, batch_size: int | None = None) -> None:
        self.batch_size = settings.prekey_batch_size if batch_size is None else batch_size
        if not 0 < self.batch_size < LAST_RESORT_PREKEY_ID:
            raise ValueError(f"Prekey batch size must be between 1 and {LAST_RESORT_PREKEY_ID - 1}")
        self.identity: IdentityKeyPair | None = None
        self.last_resort_prekey: PreKeyBundle | None = None
        self.prekeys: dict[int, PreKeyBundle] = {}
        self._next_prekey_id = 0

    async def init_identity_and_prekeys(self) -> list[PreKeyBundle]:
        self.identity = IdentityKeyPair(Ed25519PrivateKey.generate())
        self.last_resort_prekey = PreKeyBundle(LAST_RESORT_PREKEY_ID, X25519PrivateKey.generate())
        self.prekeys = {}
        self._next_prekey_id = 0
        return [*self.new_prekeys(self.batch_size), self.last_resort_prekey]

    def new_prekeys(self, count: int) -> list[PreKeyBundle]:
        """Generate ``count`` fresh prekeys, wrapping ids below the sentinel."""
        bundles = []
        for _ in range(count):
            bundle = PreKeyBundle(self._next_prekey_id, X25519PrivateKey.generate())
            self.prekeys[bundle.id] = bundle
            bundles.append(bundle)
            self._next_prekey_id = (self._next_prekey_id + 1) % LAST_RESORT_PREKEY_ID
        return bundles

    def serialize_prekey(self, bundle: PreKeyBundle) -> PreKeyPayload:
        if self.identity is None:
            raise ValueError("Identity not initialised")
        # identity public key followed by the prekey public key
        material = self.identity.public_bytes + bundle.public_bytes
        return PreKeyPayload(id=bundle.id, key=base64.b64encode(material).decode())

    def compute_fingerprint(self, identity: IdentityKeyPair) -> str:
        return identity.public_bytes.hex()

    async def generate_signaling_key(self) -> SignalingKeys:
        return SignalingKeys(
            enckey=base64.b64encode(secrets.token_bytes(SIGNALING_KEY_BYTES)).decode(),
            mackey=base64.b64encode(secrets.token_bytes(SIGNALING_KEY_BYTES)).decode(),
        )
