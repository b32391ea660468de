"""Session ledger: per-player results, settlement and stage engine."""
from .models import Player, Transaction, TransactionType, Session, PlayerResult, SessionTotals, Transfer
from .money import BALANCE_TOLERANCE, to_money, format_money
from .calculations import (
    IMBALANCE_WARNING,
    player_results,
    session_totals,
    totals_dont_balance,
    filter_winners,
    filter_losers,
    filter_break_even,
    sum_winnings,
    sum_losses,
)
from .settlement import settlement_transfers
from .stage import (
    SessionStage,
    LedgerAction,
    StageGate,
    SessionSnapshot,
    derive_stage,
    missing_buyins_player_ids,
    chip_entry_gate,
    return_to_active_game_gate,
    finalize_gate,
    action_gate,
    finalization_checklist,
)
from .summary import format_settlement_summary, format_standings_table

__all__ = [
    "Player",
    "Transaction",
    "TransactionType",
    "Session",
    "PlayerResult",
    "SessionTotals",
    "Transfer",
    "BALANCE_TOLERANCE",
    "to_money",
    "format_money",
    "IMBALANCE_WARNING",
    "player_results",
    "session_totals",
    "totals_dont_balance",
    "filter_winners",
    "filter_losers",
    "filter_break_even",
    "sum_winnings",
    "sum_losses",
    "settlement_transfers",
    "SessionStage",
    "LedgerAction",
    "StageGate",
    "SessionSnapshot",
    "derive_stage",
    "missing_buyins_player_ids",
    "chip_entry_gate",
    "return_to_active_game_gate",
    "finalize_gate",
    "action_gate",
    "finalization_checklist",
    "format_settlement_summary",
    "format_standings_table",
]
