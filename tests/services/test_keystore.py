# tests/services/test_keystore.py
"""Tests for the local key store."""

import base64

import pytest

from chorus_courier.schemas.prekey import LAST_RESORT_PREKEY_ID
from chorus_courier.services.keystore import LocalKeyStore


class TestLocalKeyStore:
    """Test LocalKeyStore key generation and serialization."""

    @pytest.mark.asyncio
    async def test_init_returns_batch_plus_last_resort(self):
        key_store = LocalKeyStore(batch_size=5)

        bundles = await key_store.init_identity_and_prekeys()

        assert [bundle.id for bundle in bundles] == [0, 1, 2, 3, 4, LAST_RESORT_PREKEY_ID]
        assert key_store.identity is not None
        assert key_store.last_resort_prekey is bundles[-1]

    @pytest.mark.asyncio
    async def test_serialized_prekey_carries_identity_and_prekey(self, key_store):
        bundles = await key_store.init_identity_and_prekeys()

        payload = key_store.serialize_prekey(bundles[0])

        material = base64.b64decode(payload.key)
        assert payload.id == 0
        assert len(material) == 64
        assert material[:32] == key_store.identity.public_bytes
        assert material[32:] == bundles[0].public_bytes

    def test_serialize_requires_identity(self, key_store):
        bundle = key_store.new_prekeys(1)[0]

        with pytest.raises(ValueError, match="Identity"):
            key_store.serialize_prekey(bundle)

    @pytest.mark.asyncio
    async def test_fingerprint_is_hex_of_identity(self, key_store):
        await key_store.init_identity_and_prekeys()

        fingerprint = key_store.compute_fingerprint(key_store.identity)

        assert len(fingerprint) == 64
        assert bytes.fromhex(fingerprint) == key_store.identity.public_bytes

    @pytest.mark.asyncio
    async def test_signaling_keys_are_fresh(self, key_store):
        first = await key_store.generate_signaling_key()
        second = await key_store.generate_signaling_key()

        assert len(base64.b64decode(first.enckey)) == 32
        assert len(base64.b64decode(first.mackey)) == 32
        assert first != second

    def test_new_prekey_ids_wrap_below_sentinel(self, key_store):
        key_store._next_prekey_id = LAST_RESORT_PREKEY_ID - 1

        ids = [bundle.id for bundle in key_store.new_prekeys(2)]

        assert ids == [LAST_RESORT_PREKEY_ID - 1, 0]

    @pytest.mark.parametrize("batch_size", [-1, 0, LAST_RESORT_PREKEY_ID])
    def test_invalid_batch_size(self, batch_size):
        with pytest.raises(ValueError, match="batch size"):
            LocalKeyStore(batch_size=batch_size)
