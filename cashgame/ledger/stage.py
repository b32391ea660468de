"""Session stage engine.

The stage is derived from four facts on every read: the players, the
transactions, ``chip_entry_started_at`` and ``finalized_at``. It is never
stored.

Stage flow::

    active_game -> chip_entry -> ready_to_finalize -> finalized
                <- (go back, only while no cash-outs exist)

Gates never raise. They return a ``StageGate`` with a human-readable reason
and leave it to the caller to report the block.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from cashgame.ledger.calculations import (
    IMBALANCE_WARNING,
    player_results,
    session_totals,
)
from cashgame.ledger.models import (
    Player,
    PlayerResult,
    Session,
    SessionTotals,
    Transaction,
    Transfer,
)
from cashgame.ledger.settlement import transfers_from_results


class SessionStage(str, Enum):
    """Lifecycle stages of a session."""
    ACTIVE_GAME = "active_game"  # also shown as player setup before anyone joins
    CHIP_ENTRY = "chip_entry"
    READY_TO_FINALIZE = "ready_to_finalize"
    FINALIZED = "finalized"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    SessionStage.ACTIVE_GAME: "Active Game",
    SessionStage.CHIP_ENTRY: "Chip Entry",
    SessionStage.READY_TO_FINALIZE: "Ready to Finalize",
    SessionStage.FINALIZED: "Finalized",
}


class LedgerAction(str, Enum):
    """Operations a caller may ask permission for."""
    ADD_PLAYER = "add_player"
    REMOVE_PLAYER = "remove_player"
    RENAME_PLAYER = "rename_player"
    LINK_IDENTITY = "link_identity"
    ADD_BUYIN = "add_buyin"
    EDIT_BUYIN = "edit_buyin"
    DELETE_BUYIN = "delete_buyin"
    ADD_CASHOUT = "add_cashout"
    EDIT_CASHOUT = "edit_cashout"
    DELETE_CASHOUT = "delete_cashout"
    START_CHIP_ENTRY = "start_chip_entry"
    RETURN_TO_ACTIVE_GAME = "return_to_active_game"
    FINALIZE = "finalize"
    SHARE = "share"


PERMITTED_ACTIONS: dict[SessionStage, frozenset[LedgerAction]] = {
    SessionStage.ACTIVE_GAME: frozenset({
        LedgerAction.ADD_PLAYER,
        LedgerAction.REMOVE_PLAYER,
        LedgerAction.RENAME_PLAYER,
        LedgerAction.LINK_IDENTITY,
        LedgerAction.ADD_BUYIN,
        LedgerAction.EDIT_BUYIN,
        LedgerAction.DELETE_BUYIN,
        LedgerAction.START_CHIP_ENTRY,
    }),
    SessionStage.CHIP_ENTRY: frozenset({
        LedgerAction.LINK_IDENTITY,
        LedgerAction.ADD_CASHOUT,
        LedgerAction.EDIT_CASHOUT,
        LedgerAction.RETURN_TO_ACTIVE_GAME,
    }),
    SessionStage.READY_TO_FINALIZE: frozenset({
        LedgerAction.LINK_IDENTITY,
        LedgerAction.ADD_BUYIN,
        LedgerAction.EDIT_BUYIN,
        LedgerAction.ADD_CASHOUT,
        LedgerAction.EDIT_CASHOUT,
        LedgerAction.DELETE_CASHOUT,
        LedgerAction.FINALIZE,
    }),
    SessionStage.FINALIZED: frozenset({
        LedgerAction.SHARE,
    }),
}

_PLAYER_ACTIONS = frozenset({
    LedgerAction.ADD_PLAYER,
    LedgerAction.REMOVE_PLAYER,
    LedgerAction.RENAME_PLAYER,
})

_BUYIN_ACTIONS = frozenset({
    LedgerAction.ADD_BUYIN,
    LedgerAction.EDIT_BUYIN,
    LedgerAction.DELETE_BUYIN,
})

_CASHOUT_ACTIONS = frozenset({
    LedgerAction.ADD_CASHOUT,
    LedgerAction.EDIT_CASHOUT,
    LedgerAction.DELETE_CASHOUT,
})


@dataclass(frozen=True)
class StageGate:
    """Whether an operation is allowed, and why not."""
    allowed: bool
    reason: Optional[str] = None
    player_ids: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "player_ids": list(self.player_ids),
        }


ALLOWED = StageGate(allowed=True)


def _blocked(reason: str, player_ids: tuple[str, ...] = ()) -> StageGate:
    return StageGate(allowed=False, reason=reason, player_ids=player_ids)


def has_cashouts(session_id: str, transactions: list[Transaction]) -> bool:
    """True once any cash-out has been recorded for the session."""
    return any(t.session_id == session_id and t.is_cashout for t in transactions)


def derive_stage(
    session: Optional[Session],
    players: list[Player],
    transactions: list[Transaction],
) -> SessionStage:
    """Derive the current stage.

    Rules, in order:
    1. ``finalized_at`` set -> finalized
    2. chip entry started and a cash-out exists -> ready_to_finalize
    3. chip entry started -> chip_entry
    4. otherwise -> active_game
    """
    if session is None:
        return SessionStage.ACTIVE_GAME
    if session.is_finalized:
        return SessionStage.FINALIZED
    if session.chip_entry_started:
        if has_cashouts(session.id, transactions):
            return SessionStage.READY_TO_FINALIZE
        return SessionStage.CHIP_ENTRY
    return SessionStage.ACTIVE_GAME


def missing_buyins_player_ids(
    players: list[Player],
    transactions: list[Transaction],
    session_id: Optional[str] = None,
) -> list[str]:
    """IDs of players with no buy-in transaction, in player order.

    Without ``session_id`` each player is matched against its own session.
    """
    missing = []
    for player in players:
        sid = session_id or player.session_id
        has_buyin = any(
            t.session_id == sid and t.player_id == player.id and t.is_buyin
            for t in transactions
        )
        if not has_buyin:
            missing.append(player.id)
    return missing


def _missing_buyins_reason(count: int) -> str:
    return f"{count} player{'s' if count > 1 else ''} missing buy-ins"


def chip_entry_gate(
    session: Optional[Session],
    players: list[Player],
    transactions: list[Transaction],
) -> StageGate:
    """Check whether "Start chip entry" is allowed.

    Every player must have at least one buy-in. When some don't, their IDs
    are returned on the gate so they can be highlighted.
    """
    if session is None:
        return _blocked("Session not loaded")
    if session.is_finalized:
        return _blocked("Session is finalized")
    if session.chip_entry_started:
        return _blocked("Chip entry already started")
    if not players:
        return _blocked("Add at least one player first")

    missing = missing_buyins_player_ids(players, transactions, session.id)
    if missing:
        return _blocked(_missing_buyins_reason(len(missing)), tuple(missing))

    return ALLOWED


def return_to_active_game_gate(
    session: Optional[Session],
    transactions: list[Transaction],
) -> StageGate:
    """Check whether chip entry can be undone."""
    if session is None:
        return _blocked("Session not loaded")
    if session.is_finalized:
        return _blocked("Session is finalized")
    if not session.chip_entry_started:
        return _blocked("Chip entry has not started")
    if has_cashouts(session.id, transactions):
        return _blocked("Cannot return to the active game after cash-outs have been recorded")
    return ALLOWED


def finalize_gate(
    session: Optional[Session],
    transactions: list[Transaction],
) -> StageGate:
    """Check whether the session can be finalized."""
    if session is None:
        return _blocked("Session not loaded")
    if session.is_finalized:
        return _blocked("Session is already finalized")
    if not session.chip_entry_started:
        return _blocked("Start chip entry before finalizing")
    if not has_cashouts(session.id, transactions):
        return _blocked("Record at least one cash-out before finalizing")
    return ALLOWED


def _stage_block_reason(stage: SessionStage, action: LedgerAction) -> str:
    if stage == SessionStage.FINALIZED:
        return "Session is finalized and cannot be modified"
    if action == LedgerAction.SHARE:
        return "Finalize the session before sharing results"
    if action in _PLAYER_ACTIONS:
        if stage == SessionStage.CHIP_ENTRY:
            return "Players cannot be changed during chip entry"
        return "Players cannot be changed after cash-outs have been recorded"
    if action in _BUYIN_ACTIONS:
        if stage == SessionStage.CHIP_ENTRY:
            return "Buy-ins are locked during chip entry"
        return "Buy-ins cannot be deleted after cash-outs have been recorded"
    if action in _CASHOUT_ACTIONS:
        if stage == SessionStage.ACTIVE_GAME:
            return "Start chip entry before recording cash-outs"
        return "No cash-outs to remove"
    return f"Not allowed during {stage.label.lower()}"


def action_gate(
    action: LedgerAction,
    session: Optional[Session],
    players: list[Player],
    transactions: list[Transaction],
) -> StageGate:
    """Check whether an action is allowed in the session's current stage."""
    if action == LedgerAction.START_CHIP_ENTRY:
        return chip_entry_gate(session, players, transactions)
    if action == LedgerAction.RETURN_TO_ACTIVE_GAME:
        return return_to_active_game_gate(session, transactions)
    if action == LedgerAction.FINALIZE:
        return finalize_gate(session, transactions)
    if session is None:
        return _blocked("Session not loaded")

    stage = derive_stage(session, players, transactions)
    if action in PERMITTED_ACTIONS[stage]:
        return ALLOWED
    return _blocked(_stage_block_reason(stage, action))


@dataclass(frozen=True)
class ChecklistItem:
    """One line of the pre-finalize checklist."""
    label: str
    ok: bool
    warning: bool = False
    optional: bool = False  # A warning on an optional item does not block finalizing


@dataclass(frozen=True)
class SessionSnapshot:
    """Players and transactions for a session as fetched from the store.

    Every method recomputes from the snapshot; refetch after each write
    instead of patching.
    """
    session: Session
    players: list[Player] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def session_id(self) -> str:
        return self.session.id

    def stage(self) -> SessionStage:
        return derive_stage(self.session, self.players, self.transactions)

    def results(self) -> list[PlayerResult]:
        return player_results(self.transactions, self.players, self.session_id)

    def totals(self) -> SessionTotals:
        return session_totals(self.transactions, self.players, self.session_id)

    def transfers(self) -> list[Transfer]:
        return transfers_from_results(self.results())

    def has_cashouts(self) -> bool:
        return has_cashouts(self.session_id, self.transactions)

    def missing_buyins_player_ids(self) -> list[str]:
        return missing_buyins_player_ids(self.players, self.transactions, self.session_id)

    def can(self, action: LedgerAction) -> StageGate:
        return action_gate(action, self.session, self.players, self.transactions)

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None


def finalization_checklist(snapshot: SessionSnapshot) -> list[ChecklistItem]:
    """Build the "Ready to finalize?" checklist for a snapshot."""
    missing = snapshot.missing_buyins_player_ids()
    totals = snapshot.totals()
    return [
        ChecklistItem(
            label="Every player has a buy-in",
            ok=bool(snapshot.players) and not missing,
        ),
        ChecklistItem(
            label="Cash-outs recorded",
            ok=snapshot.has_cashouts(),
        ),
        ChecklistItem(
            label="Totals balance" if totals.is_balanced else IMBALANCE_WARNING,
            ok=totals.is_balanced,
            warning=not totals.is_balanced,
            optional=True,
        ),
    ]
