from pydantic import BaseModel, EmailStr
from typing import Optional

from app.core.roles import Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user_id: str
    email: str
    role: Optional[Role] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    phone: Optional[str] = None


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    message: str
