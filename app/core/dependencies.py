"""
Core dependencies for route protection: resolve the caller into a UserSession
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.schemas import UserSession
from app.modules.auth.service import AuthService
from app.modules.environments.api_keys import get_api_key_manager
from supabase import Client
from typing import Optional


security = HTTPBearer(auto_error=False)

API_KEY_SCHEME = "apikey"


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _api_key_from_header(request: Request) -> Optional[str]:
    """Return the secret of an `Authorization: ApiKey <secret>` header, if any"""
    scheme, _, value = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == API_KEY_SCHEME and value.strip():
        return value.strip()
    return None


def get_user_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserSession:
    """Session from a user JWT only"""
    if credentials is None:
        raise _unauthorized()
    return auth_service.get_session_from_token(credentials.credentials)


def get_external_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service),
    service_supabase: Client = Depends(get_service_supabase)
) -> UserSession:
    """Session from a user JWT or from an environment API key"""
    if credentials is not None:
        return auth_service.get_session_from_token(credentials.credentials)
    api_key = _api_key_from_header(request)
    if api_key is None:
        raise _unauthorized()
    return AuthService(service_supabase).get_session_from_api_key(api_key, get_api_key_manager())


def require_environment_id(session: UserSession) -> str:
    if not session.environment_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No current environment selected for this session"
        )
    return session.environment_id
