import hashlib
import logging
import time
from supabase import AsyncClient
from app.core.exceptions import AccessDeniedError, AuthError, TransientFetchError
from app.core.roles import ADMIN_ROLES
from app.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from app.modules.users.service import UserService
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new identity. The profile row is provisioned by the backing store."""
        user_metadata = {}
        if register_data.full_name:
            user_metadata["full_name"] = register_data.full_name
        if register_data.phone:
            user_metadata["phone"] = register_data.phone
        try:
            auth_response = await self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {
                    "data": user_metadata
                }
            })
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise AuthError("User already exists")
            logger.error(f"Registration failed: {error_message}")
            raise TransientFetchError("Registration failed")

        if not auth_response.user:
            raise AuthError("Failed to register user")

        return RegisterResponse(
            user_id=auth_response.user.id,
            email=auth_response.user.email or register_data.email,
            message="User registered successfully"
        )

    async def login(self, login_data: LoginRequest, require_admin: bool = False) -> TokenResponse:
        """Authenticate with email/password.

        With require_admin the session is signed out again unless the
        profile carries an admin role.
        """
        try:
            auth_response = await self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise AuthError("Invalid email or password")
            logger.error(f"Login failed: {error_message}")
            raise TransientFetchError("Login failed")

        if not auth_response.user or not auth_response.session:
            raise AuthError("Invalid credentials")

        role = None
        try:
            profile = await UserService(self.supabase).find_profile(auth_response.user.id)
        except Exception as e:
            logger.warning(f"Profile lookup after login failed: {e}")
            profile = None
        if profile is not None:
            role = profile.role
        if require_admin and role not in ADMIN_ROLES:
            await self.logout()
            raise AccessDeniedError("Access denied. Admin privileges required.")

        return TokenResponse(
            access_token=auth_response.session.access_token,
            refresh_token=auth_response.session.refresh_token,
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or login_data.email,
            role=role,
        )

    async def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user_data, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _AUTH_USER_CACHE[cache_key]
        try:
            user_response = await self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise AuthError("Invalid or expired token")
            raise AuthError("Authentication failed")
        if not user_response or not user_response.user:
            raise AuthError("Invalid or expired token")
        user = user_response.user
        user_data = {
            "id": user.id,
            "email": user.email,
            "user_metadata": user.user_metadata or {},
            "created_at": user.created_at,
            "updated_at": user.updated_at
        }
        if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
        return user_data

    async def logout(self, token: Optional[str] = None) -> bool:
        """Revoke the refresh tokens of the given access token, or sign out this client's session.

        Supabase access tokens are stateless JWTs; they stay valid until they expire.
        """
        try:
            if token:
                await self.supabase.auth.admin.sign_out(token)
            else:
                await self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Sign out failed: {e}")
            return False
