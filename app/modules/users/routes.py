from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.modules.users.schemas import ProfileUpdate, ProfileResponse, RoleUpdate
from app.modules.users.service import UserService
from app.core.dependencies import get_current_profile, get_user_supabase, require_role
from app.core.roles import Role
from supabase import AsyncClient
from typing import List

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: AsyncClient = Depends(get_user_supabase)) -> UserService:
    return UserService(supabase)


@router.get("", response_model=List[ProfileResponse])
async def list_users(
    profile: ProfileResponse = Depends(require_role(Role.SUPERADMIN)),
    service: UserService = Depends(get_user_service),
):
    """List all users (superadmin only)"""
    return await service.list_users()


@router.get("/me", response_model=ProfileResponse)
async def get_me(profile: ProfileResponse = Depends(get_current_profile)):
    """Get the caller's own profile"""
    return profile


@router.put("/me", response_model=ProfileResponse)
async def update_me(
    user_data_body: ProfileUpdate,
    profile: ProfileResponse = Depends(get_current_profile),
    service: UserService = Depends(get_user_service),
):
    """Update the caller's own name fields"""
    return await service.update_profile(profile.id, user_data_body)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_user(
    user_id: str,
    profile: ProfileResponse = Depends(require_role(Role.SUPERADMIN)),
    service: UserService = Depends(get_user_service),
):
    """Get user by ID (superadmin only)"""
    return await service.get_user_by_id(user_id)


@router.put("/{user_id}/role", response_model=ProfileResponse)
async def set_user_role(
    user_id: str,
    role_data: RoleUpdate,
    profile: ProfileResponse = Depends(require_role(Role.SUPERADMIN)),
    service: UserService = Depends(get_user_service),
):
    """Change a user's role (superadmin only)"""
    return await service.set_role(user_id, role_data.role)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    confirm: bool = Query(False, description="Must be true; deletion cannot be undone"),
    profile: ProfileResponse = Depends(require_role(Role.SUPERADMIN)),
    service: UserService = Depends(get_user_service),
):
    """Delete user (superadmin only, explicit confirmation required)"""
    if not confirm:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deletion must be confirmed with confirm=true")
    await service.delete_user(user_id)
    return None
