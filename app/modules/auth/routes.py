from fastapi import APIRouter, Depends
from app.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
)
from app.modules.auth.service import AuthService
from app.core.dependencies import get_auth_service, get_current_profile, get_current_token
from app.core.roles import ADMIN_ROLES
from app.modules.users.schemas import ProfileResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    return await service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return await service.login(login_data)


@router.post("/admin-login", response_model=TokenResponse)
async def admin_login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login to the back office; non-admin accounts are signed out and refused"""
    return await service.login(login_data, require_admin=True)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and revoke the session's refresh tokens"""
    await service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_current_user(
    profile: ProfileResponse = Depends(get_current_profile),
):
    """Get current authenticated profile (for frontend UI)."""
    return {**profile.model_dump(mode="json"), "is_admin": profile.role in ADMIN_ROLES}
