"""Admin module for session ledger management."""
from .session_manager import SessionManager, validate_amount, validate_player_name

__all__ = [
    "SessionManager",
    "validate_amount",
    "validate_player_name",
]
