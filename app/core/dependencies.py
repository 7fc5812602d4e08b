"""
Core dependencies for route protection and role checking

The role checks here are a convenience for callers (early, readable 403s).
The row-level policies in the backing store are the security boundary: every
gateway runs on a client that carries the caller's own token.
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.core.exceptions import AccessDeniedError
from app.core.roles import Role, can_access
from app.database.supabase_client import SupabaseClient
from app.modules.auth.service import AuthService
from app.modules.users.schemas import ProfileResponse
from app.modules.users.service import UserService
from supabase import AsyncClient
from typing import AsyncIterator, Dict, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def get_optional_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(optional_security)
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


async def get_user_supabase(token: Optional[str] = Depends(get_optional_token)) -> AsyncIterator[AsyncClient]:
    """Per-request client acting as the caller (anonymous when no token is sent)."""
    client = await SupabaseClient.create_user_client(token)
    try:
        yield client
    finally:
        await SupabaseClient.close_client(client)


def get_auth_service(supabase: AsyncClient = Depends(get_user_supabase)) -> AuthService:
    return AuthService(supabase)


async def get_current_user_id(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    return await auth_service.get_current_user(token)


async def get_current_profile(
    user_data: Dict = Depends(get_current_user_id),
    supabase: AsyncClient = Depends(get_user_supabase)
) -> ProfileResponse:
    """Resolve the caller's profile. A missing or unreadable profile denies access."""
    try:
        profile = await UserService(supabase).find_profile(user_data["id"])
    except Exception as e:
        logger.warning(f"Profile lookup failed for {user_data['id']}: {e}")
        profile = None
    if profile is None:
        raise AccessDeniedError("No profile for the current user")
    return profile


def require_role(required_role: Role):
    """Factory function to create a role check dependency"""
    async def check_role(
        profile: ProfileResponse = Depends(get_current_profile)
    ) -> ProfileResponse:
        """Dependency to check if the caller's role ranks at or above required_role"""
        if not can_access(profile, required_role):
            raise AccessDeniedError(
                f"Insufficient role. Required: {required_role.value}"
            )
        return profile
    return check_role
