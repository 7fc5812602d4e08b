"""
Role ordering and the access guard.

Both schema variants are accepted: "user" (profiles table) and "customer"
(users table) are the same lowest rank. superadmin only exists in the
extended variant.
"""

from enum import Enum
from typing import Optional, Protocol


class Role(str, Enum):
    USER = "user"
    CUSTOMER = "customer"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


ROLE_RANK = {
    Role.USER: 0,
    Role.CUSTOMER: 0,
    Role.ADMIN: 1,
    Role.SUPERADMIN: 2,
}

ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


class HasRole(Protocol):
    role: Role


def can_access(profile: Optional[HasRole], required_role: Role) -> bool:
    """True iff there is a profile and its role ranks at or above required_role."""
    if profile is None:
        return False
    return ROLE_RANK[Role(profile.role)] >= ROLE_RANK[Role(required_role)]
