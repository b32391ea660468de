"""Builders and a store double for ledger tests."""
import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from cashgame.ledger.models import Player, Session, Transaction, TransactionType

SESSION_ID = "session-1"
BASE_TIME = datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)


def make_player(player_id: str, name: Optional[str] = None, session_id: str = SESSION_ID, **kwargs) -> Player:
    """Create a test player."""
    return Player(id=player_id, session_id=session_id, name=name or player_id, **kwargs)


def buyin(player_id: str, amount, tx_id: Optional[str] = None, session_id: str = SESSION_ID) -> Transaction:
    """Create a buy-in transaction."""
    return Transaction(
        id=tx_id or f"b-{player_id}-{amount}",
        session_id=session_id,
        player_id=player_id,
        type=TransactionType.BUY_IN,
        amount=amount,
    )


def cashout(player_id: str, amount, tx_id: Optional[str] = None, session_id: str = SESSION_ID) -> Transaction:
    """Create a cash-out transaction."""
    return Transaction(
        id=tx_id or f"c-{player_id}-{amount}",
        session_id=session_id,
        player_id=player_id,
        type=TransactionType.CASH_OUT,
        amount=amount,
    )


def make_session(
    session_id: str = SESSION_ID,
    chip_entry: bool = False,
    finalized: bool = False,
    **kwargs,
) -> Session:
    """Create a test session."""
    return Session(
        id=session_id,
        name=kwargs.pop("name", "Friday game"),
        currency=kwargs.pop("currency", "USD"),
        created_at=kwargs.pop("created_at", BASE_TIME),
        chip_entry_started_at=BASE_TIME + timedelta(hours=3) if chip_entry else None,
        finalized_at=BASE_TIME + timedelta(hours=4) if finalized else None,
        **kwargs,
    )


class InMemoryLedgerStore:
    """LedgerStore double holding rows in lists."""

    def __init__(self):
        self.sessions: dict[str, Session] = {}
        self.players: list[Player] = []
        self.transactions: list[Transaction] = []
        self.writes = 0
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    async def get_session(self, session_id):
        session = self.sessions.get(session_id)
        return replace(session) if session else None

    async def get_finalized_sessions(self, club_id):
        sessions = [
            s for s in self.sessions.values()
            if s.club_id == club_id and s.finalized_at is not None
        ]
        return sorted(sessions, key=lambda s: s.finalized_at, reverse=True)

    async def create_session(self, name, currency, club_id=None):
        session = Session(id=self._next_id("s"), name=name, currency=currency, club_id=club_id)
        self.sessions[session.id] = session
        self.writes += 1
        return session

    async def get_players(self, session_ids):
        return [replace(p) for p in self.players if p.session_id in session_ids]

    async def add_player(self, session_id, name):
        player = Player(id=self._next_id("p"), session_id=session_id, name=name)
        self.players.append(player)
        self.writes += 1
        return player

    async def add_player_with_buyin(self, session_id, name, amount):
        player = Player(id=self._next_id("p"), session_id=session_id, name=name)
        transaction = Transaction(
            id=self._next_id("t"),
            session_id=session_id,
            player_id=player.id,
            type=TransactionType.BUY_IN,
            amount=amount,
        )
        self.players.append(player)
        self.transactions.append(transaction)
        self.writes += 1
        return player, transaction

    async def rename_player(self, session_id, player_id, name):
        for player in self.players:
            if player.id == player_id and player.session_id == session_id:
                player.name = name
        self.writes += 1

    async def link_player_identity(self, session_id, player_id, profile_id):
        self.writes += 1
        for player in self.players:
            if player.id == player_id and player.session_id == session_id and player.profile_id is None:
                player.profile_id = profile_id
                return True
        return False

    async def delete_player(self, session_id, player_id):
        self.players = [p for p in self.players if p.id != player_id]
        self.transactions = [t for t in self.transactions if t.player_id != player_id]
        self.writes += 1

    async def get_transactions(self, session_ids):
        return [replace(t) for t in self.transactions if t.session_id in session_ids]

    async def add_transaction(self, session_id, player_id, transaction_type, amount):
        transaction = Transaction(
            id=self._next_id("t"),
            session_id=session_id,
            player_id=player_id,
            type=transaction_type,
            amount=amount,
        )
        self.transactions.append(transaction)
        self.writes += 1
        return transaction

    async def update_transaction_amount(self, session_id, transaction_id, amount):
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                transaction.amount = Decimal(amount)
        self.writes += 1

    async def delete_transaction(self, session_id, transaction_id):
        self.transactions = [t for t in self.transactions if t.id != transaction_id]
        self.writes += 1

    async def set_chip_entry_started_at(self, session_id, started_at):
        self.sessions[session_id].chip_entry_started_at = started_at
        self.writes += 1

    async def set_finalized_at(self, session_id, finalized_at):
        self.writes += 1
        session = self.sessions[session_id]
        if session.finalized_at is not None:
            return False
        session.finalized_at = finalized_at
        return True
