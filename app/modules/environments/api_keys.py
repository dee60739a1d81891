"""
API key material for environments.

Secrets are generated with `secrets`, stored Fernet-encrypted in the
`environments.api_keys` column and looked up by their sha256 hash.
"""

import base64
import hashlib
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from app.config.settings import settings

logger = logging.getLogger(__name__)

API_KEY_BYTES = 16  # 32 hex characters
_DEV_SECRET = "environments-api-dev-secret"


class ApiKeyDecryptionError(Exception):
    """Raised when a stored key cannot be decrypted with the configured secret."""


def _derive_fernet_key(master: str) -> bytes:
    digest = hashlib.sha256(master.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class ApiKeyManager:
    def __init__(self, master_secret: str):
        if not master_secret:
            raise ValueError("API key encryption secret must not be empty")
        self._fernet = Fernet(_derive_fernet_key(master_secret))

    def generate(self) -> str:
        return secrets.token_hex(API_KEY_BYTES)

    @staticmethod
    def hash(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def encrypt(self, key: str) -> str:
        return self._fernet.encrypt(key.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            raise ApiKeyDecryptionError("Stored API key could not be decrypted") from e

    def issue(self, user_id: str) -> Dict[str, Any]:
        """Create a new key; returns the plaintext and the record to store."""
        key = self.generate()
        record = {
            "key": self.encrypt(key),
            "hash": self.hash(key),
            "user_id": user_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        return {"plaintext": key, "record": record}


_manager: Optional[ApiKeyManager] = None


def get_api_key_manager() -> ApiKeyManager:
    global _manager
    if _manager is None:
        secret = settings.api_key_encryption_secret
        if not secret:
            if settings.is_production:
                raise RuntimeError("API_KEY_ENCRYPTION_SECRET must be set in production")
            logger.warning("API_KEY_ENCRYPTION_SECRET not set; using development secret")
            secret = _DEV_SECRET
        _manager = ApiKeyManager(secret)
    return _manager
