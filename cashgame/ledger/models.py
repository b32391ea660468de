"""Ledger data model: persisted rows and derived results."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from cashgame.ledger.money import BALANCE_TOLERANCE, to_money


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, Enum):
    """Types of money movements."""
    BUY_IN = "buyin"
    CASH_OUT = "cashout"


@dataclass
class Player:
    """A participant in one session."""
    id: str
    session_id: str
    name: str
    profile_id: Optional[str] = None  # Linked external identity
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "name": self.name,
            "profile_id": self.profile_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record) -> "Player":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            name=record["name"],
            profile_id=str(record["profile_id"]) if record["profile_id"] else None,
            created_at=record["created_at"],
        )


@dataclass
class Transaction:
    """A buy-in or cash-out for one player in one session."""
    id: str
    session_id: str
    player_id: str
    type: TransactionType
    amount: Decimal
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.type = TransactionType(self.type)
        self.amount = to_money(self.amount)

    @property
    def is_buyin(self) -> bool:
        return self.type == TransactionType.BUY_IN

    @property
    def is_cashout(self) -> bool:
        return self.type == TransactionType.CASH_OUT

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "player_id": self.player_id,
            "type": self.type.value,
            "amount": str(self.amount),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record) -> "Transaction":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            player_id=str(record["player_id"]),
            type=TransactionType(record["type"]),
            amount=record["amount"],
            created_at=record["created_at"],
        )


@dataclass
class Session:
    """A cash-game session, the aggregation root of the ledger."""
    id: str
    name: str = ""
    currency: str = "USD"
    club_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    chip_entry_started_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None

    @property
    def is_finalized(self) -> bool:
        return self.finalized_at is not None

    @property
    def chip_entry_started(self) -> bool:
        return self.chip_entry_started_at is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "currency": self.currency,
            "club_id": self.club_id,
            "created_at": self.created_at.isoformat(),
            "chip_entry_started_at": (
                self.chip_entry_started_at.isoformat() if self.chip_entry_started_at else None
            ),
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
        }

    @classmethod
    def from_record(cls, record) -> "Session":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            name=record["name"] or "",
            currency=record["currency"],
            club_id=str(record["club_id"]) if record["club_id"] else None,
            created_at=record["created_at"],
            chip_entry_started_at=record["chip_entry_started_at"],
            finalized_at=record["finalized_at"],
        )


@dataclass
class PlayerResult:
    """A player's money summary for a session. Derived, never stored."""
    player: Player
    total_buyins: Decimal
    total_cashouts: Decimal
    pl: Decimal

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "player_id": self.player.id,
            "player": self.player.name,
            "total_buyins": str(self.total_buyins),
            "total_cashouts": str(self.total_cashouts),
            "pl": str(self.pl),
        }


@dataclass
class SessionTotals:
    """Aggregate totals for a session."""
    total_buyins: Decimal
    total_cashouts: Decimal
    total_profit_loss: Decimal

    @property
    def is_balanced(self) -> bool:
        """Cash-outs match buy-ins within tolerance."""
        return abs(self.total_profit_loss) <= BALANCE_TOLERANCE

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_buyins": str(self.total_buyins),
            "total_cashouts": str(self.total_cashouts),
            "total_profit_loss": str(self.total_profit_loss),
            "is_balanced": self.is_balanced,
        }


@dataclass
class Transfer:
    """A payment from a debtor to a creditor."""
    debtor_id: str
    debtor_name: str
    creditor_id: str
    creditor_name: str
    amount: Decimal

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "debtor_id": self.debtor_id,
            "debtor": self.debtor_name,
            "creditor_id": self.creditor_id,
            "creditor": self.creditor_name,
            "amount": str(self.amount),
        }
