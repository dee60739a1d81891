"""
Unit tests for API key material.
"""

import pytest

from app.modules.environments.api_keys import ApiKeyManager, ApiKeyDecryptionError


class TestApiKeyManager:

    def test_generated_keys_are_hex_and_unique(self, key_manager):
        keys = {key_manager.generate() for _ in range(50)}
        assert len(keys) == 50
        assert all(len(k) == 32 and int(k, 16) >= 0 for k in keys)

    def test_encrypted_key_is_not_plaintext(self, key_manager):
        key = key_manager.generate()
        token = key_manager.encrypt(key)
        assert key not in token
        assert key_manager.decrypt(token) == key

    def test_decrypt_with_other_secret_fails(self, key_manager):
        token = key_manager.encrypt(key_manager.generate())
        with pytest.raises(ApiKeyDecryptionError):
            ApiKeyManager("another-secret").decrypt(token)

    def test_hash_is_stable_sha256(self):
        assert ApiKeyManager.hash("abc") == ApiKeyManager.hash("abc")
        assert len(ApiKeyManager.hash("abc")) == 64

    def test_issue_record(self, key_manager):
        issued = key_manager.issue("U1")
        record = issued["record"]
        assert record["user_id"] == "U1"
        assert record["hash"] == key_manager.hash(issued["plaintext"])
        assert key_manager.decrypt(record["key"]) == issued["plaintext"]
        assert record["created_at"]

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            ApiKeyManager("")
