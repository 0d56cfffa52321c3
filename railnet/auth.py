"""Role checks."""

from railnet.exceptions import Forbidden
from railnet.models.user import User, UserRole


def require_role(user: User, role: UserRole) -> User:
    """
    Ensure the user holds a role. Admins pass every check.

    Raises:
        Forbidden: If the user lacks the role
    """
    if user.role == UserRole.ADMIN or user.role == role:
        return user
    raise Forbidden(f"{role.value} role required")
