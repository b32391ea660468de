"""Club role definitions and authorization."""
from enum import Enum
from functools import wraps
from typing import Callable, Any


class Role(str, Enum):
    """Club member roles."""
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def satisfies(self, required: "Role") -> bool:
        """True if this role is at least as privileged as ``required``."""
        return self.rank >= required.rank


_ROLE_RANKS = {
    Role.MEMBER: 0,
    Role.ADMIN: 1,
    Role.OWNER: 2,
}


def require_role(required_role: Role) -> Callable:
    """Decorator to require a minimum club role for an action.

    The wrapped coroutine method receives the caller's role as its first
    argument after ``self``; the role is consumed by the decorator.

    Args:
        required_role: The minimum role required.

    Returns:
        Decorator function.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self, user_role: str, *args: Any, **kwargs: Any) -> Any:
            try:
                role = Role(user_role)
            except ValueError:
                raise PermissionError(f"Unknown role: {user_role}")
            if not role.satisfies(required_role):
                raise PermissionError(f"Requires {required_role.value} role")
            return await func(self, *args, **kwargs)
        return wrapper
    return decorator
