"""Authorization module."""
from .roles import Role, require_role

__all__ = ["Role", "require_role"]
