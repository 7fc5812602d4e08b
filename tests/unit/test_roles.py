"""Unit tests for role ranking and the access guard."""

from types import SimpleNamespace

import pytest

from app.core.roles import ADMIN_ROLES, Role, can_access


@pytest.mark.unit
class TestCanAccess:
    """Test suite for can_access."""

    def test_no_profile_is_denied(self) -> None:
        """Logged out (or unresolved) callers never pass, whatever the requirement."""
        assert can_access(None, Role.USER) is False
        assert can_access(None, Role.ADMIN) is False

    @pytest.mark.parametrize(
        "role,required,expected",
        [
            (Role.USER, Role.USER, True),
            (Role.CUSTOMER, Role.USER, True),
            (Role.USER, Role.CUSTOMER, True),
            (Role.CUSTOMER, Role.ADMIN, False),
            (Role.ADMIN, Role.ADMIN, True),
            (Role.ADMIN, Role.SUPERADMIN, False),
            (Role.SUPERADMIN, Role.ADMIN, True),
            (Role.SUPERADMIN, Role.SUPERADMIN, True),
        ],
    )
    def test_rank_comparison(self, role: Role, required: Role, expected: bool) -> None:
        """Access is granted iff the profile's rank is at least the required rank."""
        assert can_access(SimpleNamespace(role=role), required) is expected

    def test_accepts_raw_role_strings(self) -> None:
        """Rows fresh from the backing store carry plain strings."""
        assert can_access(SimpleNamespace(role="admin"), Role.ADMIN) is True
        assert can_access(SimpleNamespace(role="customer"), "admin") is False

    def test_admin_roles(self) -> None:
        assert ADMIN_ROLES == {Role.ADMIN, Role.SUPERADMIN}
