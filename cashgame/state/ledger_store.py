"""Persistence for sessions, players and transactions.

The ledger core only works on snapshots; everything it needs from storage is
described by ``LedgerStore``. ``PostgresLedgerStore`` is the production
implementation. Concurrent writers are last-write-wins at the row level,
except for the two set-once updates (identity link, finalize) which are
conditional on the column still being NULL.
"""
from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

import asyncpg

from cashgame.db.connection import db
from cashgame.ledger.models import Player, Session, Transaction, TransactionType
from cashgame.utils.logger import get_logger

logger = get_logger(__name__)


class LedgerStore(Protocol):
    """Storage operations the ledger relies on."""

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Return the session, or None if it does not exist."""
        ...

    async def get_finalized_sessions(self, club_id: str) -> list[Session]:
        """Return a club's finalized sessions, most recently finalized first."""
        ...

    async def create_session(
        self, name: str, currency: str, club_id: Optional[str] = None
    ) -> Session:
        ...

    async def get_players(self, session_ids: list[str]) -> list[Player]:
        """Return players of the given sessions in creation order."""
        ...

    async def add_player(self, session_id: str, name: str) -> Player:
        ...

    async def add_player_with_buyin(
        self, session_id: str, name: str, amount: Decimal
    ) -> tuple[Player, Transaction]:
        """Add a player and its first buy-in atomically."""
        ...

    async def rename_player(self, session_id: str, player_id: str, name: str) -> None:
        ...

    async def link_player_identity(
        self, session_id: str, player_id: str, profile_id: str
    ) -> bool:
        """Set the player's identity if it has none.

        Returns False if the player is already linked or the identity is
        already linked to another player in the session.
        """
        ...

    async def delete_player(self, session_id: str, player_id: str) -> None:
        """Delete a player and, by cascade, its transactions."""
        ...

    async def get_transactions(self, session_ids: list[str]) -> list[Transaction]:
        """Return transactions of the given sessions in creation order."""
        ...

    async def add_transaction(
        self,
        session_id: str,
        player_id: str,
        transaction_type: TransactionType,
        amount: Decimal,
    ) -> Transaction:
        ...

    async def update_transaction_amount(
        self, session_id: str, transaction_id: str, amount: Decimal
    ) -> None:
        ...

    async def delete_transaction(self, session_id: str, transaction_id: str) -> None:
        ...

    async def set_chip_entry_started_at(
        self, session_id: str, started_at: Optional[datetime]
    ) -> None:
        ...

    async def set_finalized_at(self, session_id: str, finalized_at: datetime) -> bool:
        """Set ``finalized_at`` once. Returns False if it was already set."""
        ...


def _uuids(ids: list[str]) -> list[uuid.UUID]:
    return [uuid.UUID(i) for i in ids]


class PostgresLedgerStore:
    """LedgerStore backed by PostgreSQL."""

    async def get_session(self, session_id: str) -> Optional[Session]:
        record = await db.fetchrow(
            "SELECT * FROM sessions WHERE id = $1",
            uuid.UUID(session_id)
        )
        if record:
            return Session.from_record(record)
        return None

    async def get_finalized_sessions(self, club_id: str) -> list[Session]:
        records = await db.fetch(
            """
            SELECT * FROM sessions
            WHERE club_id = $1 AND finalized_at IS NOT NULL
            ORDER BY finalized_at DESC
            """,
            uuid.UUID(club_id)
        )
        return [Session.from_record(r) for r in records]

    async def create_session(
        self, name: str, currency: str, club_id: Optional[str] = None
    ) -> Session:
        record = await db.fetchrow(
            """
            INSERT INTO sessions (name, currency, club_id)
            VALUES ($1, $2, $3)
            RETURNING *
            """,
            name,
            currency,
            uuid.UUID(club_id) if club_id else None
        )
        session = Session.from_record(record)
        logger.info(f"Created session {session.id} ({currency})")
        return session

    async def get_players(self, session_ids: list[str]) -> list[Player]:
        if not session_ids:
            return []
        records = await db.fetch(
            """
            SELECT * FROM players
            WHERE session_id = ANY($1::uuid[])
            ORDER BY created_at, id
            """,
            _uuids(session_ids)
        )
        return [Player.from_record(r) for r in records]

    async def add_player(self, session_id: str, name: str) -> Player:
        record = await db.fetchrow(
            """
            INSERT INTO players (session_id, name)
            VALUES ($1, $2)
            RETURNING *
            """,
            uuid.UUID(session_id),
            name
        )
        player = Player.from_record(record)
        logger.info(f"Added player {name} to session {session_id}")
        return player

    async def add_player_with_buyin(
        self, session_id: str, name: str, amount: Decimal
    ) -> tuple[Player, Transaction]:
        async with db.pool.acquire() as conn:
            async with conn.transaction():
                player_record = await conn.fetchrow(
                    """
                    INSERT INTO players (session_id, name)
                    VALUES ($1, $2)
                    RETURNING *
                    """,
                    uuid.UUID(session_id),
                    name
                )
                transaction_record = await conn.fetchrow(
                    """
                    INSERT INTO transactions (session_id, player_id, type, amount)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    """,
                    uuid.UUID(session_id),
                    player_record["id"],
                    TransactionType.BUY_IN.value,
                    amount
                )
        player = Player.from_record(player_record)
        logger.info(f"Added player {name} to session {session_id} with a buy-in of {amount}")
        return player, Transaction.from_record(transaction_record)

    async def rename_player(self, session_id: str, player_id: str, name: str) -> None:
        await db.execute(
            "UPDATE players SET name = $1 WHERE id = $2 AND session_id = $3",
            name,
            uuid.UUID(player_id),
            uuid.UUID(session_id)
        )
        logger.info(f"Renamed player {player_id} to {name}")

    async def link_player_identity(
        self, session_id: str, player_id: str, profile_id: str
    ) -> bool:
        try:
            result = await db.execute(
                """
                UPDATE players SET profile_id = $1
                WHERE id = $2 AND session_id = $3 AND profile_id IS NULL
                """,
                uuid.UUID(profile_id),
                uuid.UUID(player_id),
                uuid.UUID(session_id)
            )
        except asyncpg.UniqueViolationError:
            # Profile already linked to another player in this session
            logger.warning(f"Profile {profile_id} is already linked in session {session_id}")
            return False
        linked = result != "UPDATE 0"
        if linked:
            logger.info(f"Linked player {player_id} to profile {profile_id}")
        return linked

    async def delete_player(self, session_id: str, player_id: str) -> None:
        await db.execute(
            "DELETE FROM players WHERE id = $1 AND session_id = $2",
            uuid.UUID(player_id),
            uuid.UUID(session_id)
        )
        logger.info(f"Removed player {player_id} from session {session_id}")

    async def get_transactions(self, session_ids: list[str]) -> list[Transaction]:
        if not session_ids:
            return []
        records = await db.fetch(
            """
            SELECT * FROM transactions
            WHERE session_id = ANY($1::uuid[])
            ORDER BY created_at, id
            """,
            _uuids(session_ids)
        )
        return [Transaction.from_record(r) for r in records]

    async def add_transaction(
        self,
        session_id: str,
        player_id: str,
        transaction_type: TransactionType,
        amount: Decimal,
    ) -> Transaction:
        record = await db.fetchrow(
            """
            INSERT INTO transactions (session_id, player_id, type, amount)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            uuid.UUID(session_id),
            uuid.UUID(player_id),
            transaction_type.value,
            amount
        )
        transaction = Transaction.from_record(record)
        logger.info(f"Recorded {transaction_type.value} of {amount} for player {player_id}")
        return transaction

    async def update_transaction_amount(
        self, session_id: str, transaction_id: str, amount: Decimal
    ) -> None:
        await db.execute(
            "UPDATE transactions SET amount = $1 WHERE id = $2 AND session_id = $3",
            amount,
            uuid.UUID(transaction_id),
            uuid.UUID(session_id)
        )
        logger.info(f"Corrected transaction {transaction_id} to {amount}")

    async def delete_transaction(self, session_id: str, transaction_id: str) -> None:
        await db.execute(
            "DELETE FROM transactions WHERE id = $1 AND session_id = $2",
            uuid.UUID(transaction_id),
            uuid.UUID(session_id)
        )
        logger.info(f"Deleted transaction {transaction_id}")

    async def set_chip_entry_started_at(
        self, session_id: str, started_at: Optional[datetime]
    ) -> None:
        await db.execute(
            """
            UPDATE sessions SET chip_entry_started_at = $1
            WHERE id = $2 AND finalized_at IS NULL
            """,
            started_at,
            uuid.UUID(session_id)
        )
        logger.info(
            f"Chip entry {'started' if started_at else 'cleared'} for session {session_id}"
        )

    async def set_finalized_at(self, session_id: str, finalized_at: datetime) -> bool:
        result = await db.execute(
            """
            UPDATE sessions SET finalized_at = $1
            WHERE id = $2 AND finalized_at IS NULL
            """,
            finalized_at,
            uuid.UUID(session_id)
        )
        finalized = result != "UPDATE 0"
        if finalized:
            logger.info(f"Finalized session {session_id}")
        return finalized
