"""Errors raised at the ledger write boundary."""
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from cashgame.ledger.stage import StageGate


class LedgerError(Exception):
    """Base class for ledger errors."""
    pass


class ValidationError(LedgerError, ValueError):
    """Input rejected before it reaches the ledger."""
    pass


class SessionNotFoundError(LedgerError):
    """The requested session does not exist."""
    pass


class IdentityLinkError(LedgerError):
    """An identity could not be linked to a player."""
    pass


class StageError(LedgerError):
    """The session's current stage does not allow the operation."""

    def __init__(self, gate: "StageGate", action: Optional[str] = None):
        self.gate = gate
        self.action = action
        super().__init__(gate.reason or "Operation not allowed in the current stage")
