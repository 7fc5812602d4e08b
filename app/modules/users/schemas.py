from pydantic import BaseModel, ConfigDict, EmailStr
from typing import Optional
from datetime import datetime

from app.core.roles import Role


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Role


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    email: EmailStr
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = Role.USER
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPERADMIN)
