"""Validated, stage-gated writes to a session ledger."""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from cashgame.auth.roles import Role, require_role
from cashgame.errors import (
    IdentityLinkError,
    SessionNotFoundError,
    StageError,
    ValidationError,
)
from cashgame.ledger.models import Player, Transaction, TransactionType
from cashgame.ledger.money import CENT, MAX_AMOUNT, Amount, to_money
from cashgame.ledger.stage import LedgerAction, SessionSnapshot, StageGate
from cashgame.state.ledger_store import LedgerStore
from cashgame.state.summary_store import SettlementSummary, SummaryStore
from cashgame.utils.logger import get_logger

logger = get_logger(__name__)

_EDIT_ACTIONS = {
    TransactionType.BUY_IN: LedgerAction.EDIT_BUYIN,
    TransactionType.CASH_OUT: LedgerAction.EDIT_CASHOUT,
}

_DELETE_ACTIONS = {
    TransactionType.BUY_IN: LedgerAction.DELETE_BUYIN,
    TransactionType.CASH_OUT: LedgerAction.DELETE_CASHOUT,
}


def _parse_amount(value: Amount) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f"Amount must be less than {MAX_AMOUNT:,}")
    if amount != amount.quantize(CENT):
        raise ValidationError("Amount cannot have more than two decimal places")
    return amount


def validate_amount(transaction_type: TransactionType, value: Amount) -> Decimal:
    """Validate an amount for a transaction type.

    Buy-ins must be positive; cash-outs may be zero (a player who lost
    everything) but not negative. Either way the amount must fit the
    ledger column: whole cents, below ``MAX_AMOUNT``.

    Raises:
        ValidationError: If the amount is not acceptable.
    """
    amount = _parse_amount(value)
    if transaction_type == TransactionType.BUY_IN and amount <= 0:
        raise ValidationError("Buy-in amount must be positive")
    if transaction_type == TransactionType.CASH_OUT and amount < 0:
        raise ValidationError("Cash-out amount cannot be negative")
    return amount


def validate_player_name(name: str) -> str:
    """Return the trimmed name, rejecting blank names."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Player name cannot be empty")
    return name


class SessionManager:
    """Applies ledger mutations for one session.

    Each mutation loads a fresh snapshot, validates the input, checks the
    stage gate, writes through the store and returns a re-fetched snapshot.
    A rejected mutation never reaches the store.
    """

    def __init__(
        self,
        session_id: str,
        store: LedgerStore,
        summaries: Optional[SummaryStore] = None,
    ):
        """Initialize session manager.

        Args:
            session_id: Session to manage.
            store: Ledger persistence.
            summaries: Where finalized summaries are kept, if anywhere.
        """
        self.session_id = session_id
        self.store = store
        self.summaries = summaries

    async def load_snapshot(self) -> SessionSnapshot:
        """Fetch the session with its players and transactions.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = await self.store.get_session(self.session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {self.session_id} not found")
        players = await self.store.get_players([self.session_id])
        transactions = await self.store.get_transactions([self.session_id])
        return SessionSnapshot(session=session, players=players, transactions=transactions)

    def _require(self, snapshot: SessionSnapshot, action: LedgerAction) -> StageGate:
        gate = snapshot.can(action)
        if not gate:
            logger.warning(
                f"Rejected {action.value} for session {self.session_id}: {gate.reason}"
            )
            raise StageError(gate, action.value)
        return gate

    def _require_player(self, snapshot: SessionSnapshot, player_id: str) -> Player:
        player = snapshot.get_player(player_id)
        if player is None:
            raise ValidationError(f"Player {player_id} is not in this session")
        return player

    def _require_transaction(self, snapshot: SessionSnapshot, transaction_id: str) -> Transaction:
        transaction = snapshot.get_transaction(transaction_id)
        if transaction is None:
            raise ValidationError(f"Transaction {transaction_id} is not in this session")
        return transaction

    @require_role(Role.ADMIN)
    async def add_player(
        self, name: str, buyin_amount: Optional[Amount] = None
    ) -> SessionSnapshot:
        """Add a player, optionally with an initial buy-in.

        Args:
            name: Display name.
            buyin_amount: Fixed buy-in to record for the new player.

        Returns:
            The refreshed snapshot.

        Raises:
            ValidationError: If the name or buy-in is invalid.
            StageError: If players can no longer be added.
        """
        name = validate_player_name(name)
        amount = None
        if buyin_amount is not None:
            amount = validate_amount(TransactionType.BUY_IN, buyin_amount)

        snapshot = await self.load_snapshot()
        self._require(snapshot, LedgerAction.ADD_PLAYER)

        if amount is None:
            await self.store.add_player(self.session_id, name)
        else:
            await self.store.add_player_with_buyin(self.session_id, name, amount)
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def rename_player(self, player_id: str, name: str) -> SessionSnapshot:
        """Change a player's display name."""
        name = validate_player_name(name)
        snapshot = await self.load_snapshot()
        self._require_player(snapshot, player_id)
        self._require(snapshot, LedgerAction.RENAME_PLAYER)

        await self.store.rename_player(self.session_id, player_id, name)
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def remove_player(self, player_id: str) -> SessionSnapshot:
        """Remove a player together with all of its transactions."""
        snapshot = await self.load_snapshot()
        player = self._require_player(snapshot, player_id)
        self._require(snapshot, LedgerAction.REMOVE_PLAYER)

        count = sum(1 for t in snapshot.transactions if t.player_id == player_id)
        await self.store.delete_player(self.session_id, player_id)
        logger.info(f"Removed {player.name} and {count} transaction(s)")
        return await self.load_snapshot()

    @require_role(Role.MEMBER)
    async def link_identity(self, player_id: str, profile_id: str) -> SessionSnapshot:
        """Link an external identity to a player ("this is me").

        The first link wins; an identity can be linked to at most one player
        per session.

        Raises:
            IdentityLinkError: If the player or identity is already linked.
            StageError: If the session is finalized.
        """
        snapshot = await self.load_snapshot()
        player = self._require_player(snapshot, player_id)
        self._require(snapshot, LedgerAction.LINK_IDENTITY)

        if player.profile_id:
            raise IdentityLinkError("This player is already linked to another account")
        for other in snapshot.players:
            if other.id != player_id and other.profile_id == profile_id:
                raise IdentityLinkError(
                    f'You are already linked to "{other.name}" in this session. '
                    f"You can only link to one player per session."
                )

        if not await self.store.link_player_identity(self.session_id, player_id, profile_id):
            raise IdentityLinkError("This player is already linked to another account")
        return await self.load_snapshot()

    async def _add_transaction(
        self, transaction_type: TransactionType, player_id: str, value: Amount
    ) -> SessionSnapshot:
        amount = validate_amount(transaction_type, value)
        action = (
            LedgerAction.ADD_BUYIN
            if transaction_type == TransactionType.BUY_IN
            else LedgerAction.ADD_CASHOUT
        )

        snapshot = await self.load_snapshot()
        self._require_player(snapshot, player_id)
        self._require(snapshot, action)

        await self.store.add_transaction(self.session_id, player_id, transaction_type, amount)
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def add_buyin(self, player_id: str, amount: Amount) -> SessionSnapshot:
        """Record a buy-in for a player."""
        return await self._add_transaction(TransactionType.BUY_IN, player_id, amount)

    @require_role(Role.ADMIN)
    async def add_cashout(self, player_id: str, amount: Amount) -> SessionSnapshot:
        """Record a player's final chip value."""
        return await self._add_transaction(TransactionType.CASH_OUT, player_id, amount)

    @require_role(Role.ADMIN)
    async def update_transaction_amount(
        self, transaction_id: str, amount: Amount
    ) -> SessionSnapshot:
        """Correct the amount of an existing transaction."""
        snapshot = await self.load_snapshot()
        transaction = self._require_transaction(snapshot, transaction_id)
        new_amount = validate_amount(transaction.type, amount)
        self._require(snapshot, _EDIT_ACTIONS[transaction.type])

        await self.store.update_transaction_amount(self.session_id, transaction_id, new_amount)
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def delete_transaction(self, transaction_id: str) -> SessionSnapshot:
        """Delete a transaction."""
        snapshot = await self.load_snapshot()
        transaction = self._require_transaction(snapshot, transaction_id)
        self._require(snapshot, _DELETE_ACTIONS[transaction.type])

        await self.store.delete_transaction(self.session_id, transaction_id)
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def start_chip_entry(self) -> SessionSnapshot:
        """Move from the active game to chip entry.

        Raises:
            StageError: If any player has no buy-in; the gate lists them.
        """
        snapshot = await self.load_snapshot()
        self._require(snapshot, LedgerAction.START_CHIP_ENTRY)

        await self.store.set_chip_entry_started_at(self.session_id, datetime.now(timezone.utc))
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def return_to_active_game(self) -> SessionSnapshot:
        """Undo "start chip entry" while no cash-outs exist."""
        snapshot = await self.load_snapshot()
        self._require(snapshot, LedgerAction.RETURN_TO_ACTIVE_GAME)

        await self.store.set_chip_entry_started_at(self.session_id, None)
        return await self.load_snapshot()

    @require_role(Role.ADMIN)
    async def finalize(self) -> SettlementSummary:
        """Lock the session and compute its settlement.

        Returns:
            The settlement summary of the final snapshot.

        Raises:
            StageError: If the session is not ready to finalize.
        """
        snapshot = await self.load_snapshot()
        self._require(snapshot, LedgerAction.FINALIZE)

        totals = snapshot.totals()
        if not totals.is_balanced:
            logger.warning(
                f"Finalizing session {self.session_id} with unbalanced totals "
                f"({totals.total_profit_loss})"
            )

        if not await self.store.set_finalized_at(self.session_id, datetime.now(timezone.utc)):
            raise StageError(StageGate(allowed=False, reason="Session is already finalized"),
                             LedgerAction.FINALIZE.value)

        summary = SettlementSummary.from_snapshot(await self.load_snapshot())
        if self.summaries is not None:
            await self.summaries.save_summary(summary)
        return summary

    async def get_summary(self) -> SettlementSummary:
        """Get the settlement summary of a finalized session.

        Raises:
            StageError: If the session is not finalized yet.
        """
        if self.summaries is not None:
            stored = await self.summaries.get_summary(self.session_id)
            if stored is not None:
                return stored

        snapshot = await self.load_snapshot()
        self._require(snapshot, LedgerAction.SHARE)
        summary = SettlementSummary.from_snapshot(snapshot)
        if self.summaries is not None:
            await self.summaries.save_summary(summary)
        return summary
