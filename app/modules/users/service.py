import logging
from supabase import AsyncClient
from app.config import settings
from app.core.exceptions import AccessDeniedError, NotFoundError, translate_backing_store_error
from app.core.roles import Role
from app.database.rows import ensure_rows_written
from app.modules.users.schemas import ProfileUpdate, ProfileResponse
from typing import List, Optional

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, supabase: AsyncClient, table: Optional[str] = None):
        self.supabase = supabase
        self.table = table or settings.profiles_table

    async def find_profile(self, user_id: str) -> Optional[ProfileResponse]:
        """Profile for an identity id, or None when no row exists. Backing store errors propagate."""
        result = await self.supabase.table(self.table)\
            .select("*")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return ProfileResponse(**result.data[0])

    async def get_user_by_id(self, user_id: str) -> ProfileResponse:
        """Get user profile by ID"""
        try:
            profile = await self.find_profile(user_id)
        except Exception as e:
            raise translate_backing_store_error(e, "User", user_id)
        if profile is None:
            raise NotFoundError("User", user_id)
        return profile

    async def list_users(self) -> List[ProfileResponse]:
        """List every profile through the admin-only get_all_users RPC.

        There is deliberately no fallback to a direct table query: if the RPC
        is missing or refuses the caller, the listing fails.
        """
        try:
            result = await self.supabase.rpc("get_all_users", {}).execute()
        except Exception as e:
            message = str(getattr(e, "message", "") or e)
            if "access denied" in message.lower():
                raise AccessDeniedError("Only admins can list users")
            raise translate_backing_store_error(e, "Users")
        return [ProfileResponse(**row) for row in (result.data or [])]

    async def update_profile(self, user_id: str, user_data: ProfileUpdate) -> ProfileResponse:
        """Update the name fields of a profile (owner or admin)"""
        update_data = user_data.model_dump(exclude_none=True)
        if not update_data:
            return await self.get_user_by_id(user_id)
        return await self._write(user_id, update_data)

    async def set_role(self, user_id: str, role: Role) -> ProfileResponse:
        """Change a user's role (admin only, enforced by policy)"""
        logger.info(f"Setting role of user {user_id} to {role.value}")
        return await self._write(user_id, {"role": role.value})

    async def delete_user(self, user_id: str) -> None:
        """Delete a profile (admin only). The identity itself is removed by cascade from auth.users."""
        try:
            result = await self.supabase.table(self.table)\
                .delete()\
                .eq("id", user_id)\
                .execute()
            await ensure_rows_written(self.supabase, self.table, "User", user_id, result.data)
        except Exception as e:
            raise translate_backing_store_error(e, "User", user_id)

    async def _write(self, user_id: str, update_data: dict) -> ProfileResponse:
        try:
            result = await self.supabase.table(self.table)\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()
            row = await ensure_rows_written(self.supabase, self.table, "User", user_id, result.data)
        except Exception as e:
            raise translate_backing_store_error(e, "User", user_id)
        return ProfileResponse(**row)
