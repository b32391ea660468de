"""Read-only settlement summaries of finalized sessions."""
from dataclasses import dataclass, field
from typing import Optional

from cashgame.ledger.stage import SessionSnapshot
from cashgame.ledger.summary import format_settlement_summary
from cashgame.state.redis_client import redis_client
from cashgame.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SettlementSummary:
    """Frozen outcome of a finalized session."""
    session_id: str
    currency: str
    finalized_at: str
    results: list[dict] = field(default_factory=list)
    totals: dict = field(default_factory=dict)
    transfers: list[dict] = field(default_factory=list)
    text: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "session_id": self.session_id,
            "currency": self.currency,
            "finalized_at": self.finalized_at,
            "results": self.results,
            "totals": self.totals,
            "transfers": self.transfers,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SettlementSummary":
        """Create from dictionary."""
        return cls(
            session_id=data["session_id"],
            currency=data["currency"],
            finalized_at=data["finalized_at"],
            results=data.get("results", []),
            totals=data.get("totals", {}),
            transfers=data.get("transfers", []),
            text=data.get("text", ""),
        )

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SettlementSummary":
        """Compute the summary of a finalized snapshot in one pass.

        Raises:
            ValueError: If the snapshot's session is not finalized.
        """
        session = snapshot.session
        if not session.is_finalized:
            raise ValueError(f"Session {session.id} is not finalized")

        results = snapshot.results()
        totals = snapshot.totals()
        transfers = snapshot.transfers()
        return cls(
            session_id=session.id,
            currency=session.currency,
            finalized_at=session.finalized_at.isoformat(),
            results=[r.to_dict() for r in results],
            totals=totals.to_dict(),
            transfers=[t.to_dict() for t in transfers],
            text=format_settlement_summary(session, results, totals, transfers),
        )


class SummaryStore:
    """Stores settlement summaries in Redis.

    Summaries are only written for finalized sessions and never overwritten,
    so no expiry is set.
    """

    def _summary_key(self, session_id: str) -> str:
        """Get Redis key for a session's summary."""
        return f"session:{session_id}:summary"

    async def save_summary(self, summary: SettlementSummary) -> bool:
        """Save a summary unless one already exists.

        Args:
            summary: Summary to save.

        Returns:
            True if written, False if the session already had a summary.
        """
        key = self._summary_key(summary.session_id)
        written = await redis_client.set_json(key, summary.to_dict(), nx=True)
        if written:
            logger.info(f"Saved settlement summary for session {summary.session_id}")
        else:
            logger.debug(f"Summary for session {summary.session_id} already stored")
        return written

    async def get_summary(self, session_id: str) -> Optional[SettlementSummary]:
        """Get a session's stored summary.

        Args:
            session_id: Session ID.

        Returns:
            The summary if stored, None otherwise.
        """
        data = await redis_client.get_json(self._summary_key(session_id))
        if data is None:
            return None
        return SettlementSummary.from_dict(data)


summary_store = SummaryStore()
