import hashlib
import json
import logging
import time
from supabase import Client
from app.modules.auth.schemas import UserSession
from app.modules.environments.api_keys import ApiKeyManager
from app.modules.environments.usecases import ENVIRONMENTS_TABLE
from fastapi import HTTPException
from typing import Dict, Any

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache():
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            logger.warning("Token validation failed: %s", e)
            raise HTTPException(status_code=401, detail="Invalid or expired token")

    def get_session_from_token(self, token: str) -> UserSession:
        """Build a session from a user JWT; organization and environment come from app_metadata"""
        user_data = self.get_current_user(token)
        # app_metadata is set server-side and cannot be modified by users
        app_metadata = user_data.get("app_metadata", {})
        organization_id = app_metadata.get("organization_id")
        if not organization_id:
            raise HTTPException(status_code=403, detail="No organization associated with this user")
        return UserSession(
            user_id=user_data["id"],
            organization_id=organization_id,
            environment_id=app_metadata.get("environment_id"),
            email=user_data.get("email"),
        )

    def get_session_from_api_key(self, api_key: str, key_manager: ApiKeyManager) -> UserSession:
        """Resolve an API key to the environment that owns it"""
        key_hash = key_manager.hash(api_key)
        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .select("id, organization_id, api_keys")\
            .contains("api_keys", json.dumps([{"hash": key_hash}]))\
            .limit(1)\
            .execute()

        if not result.data:
            logger.warning("Rejected unknown API key")
            raise HTTPException(status_code=401, detail="Invalid API key")

        environment = result.data[0]
        issuer = next(
            (k.get("user_id") for k in environment.get("api_keys") or [] if k.get("hash") == key_hash),
            None
        )
        if not issuer:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return UserSession(
            user_id=issuer,
            organization_id=environment["organization_id"],
            environment_id=environment["id"],
            via_api_key=True,
        )
