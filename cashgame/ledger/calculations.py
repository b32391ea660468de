"""Pure calculation functions for session ledgers.

Nothing in here touches the database or mutates its inputs. Every function is
total: bad data (a negative amount, a transaction for an unknown player) is
summed or ignored as given, never raised on.
"""
from decimal import Decimal
from typing import Iterable

from cashgame.ledger.models import (
    Player,
    PlayerResult,
    SessionTotals,
    Transaction,
    TransactionType,
)
from cashgame.ledger.money import BALANCE_TOLERANCE, is_zero

IMBALANCE_WARNING = "Totals may not balance, possibly due to rake."


def _filter_by_player(
    transactions: Iterable[Transaction],
    session_id: str,
    player_id: str,
    transaction_type: TransactionType,
) -> list[Transaction]:
    return [
        t for t in transactions
        if t.session_id == session_id
        and t.player_id == player_id
        and t.type == transaction_type
    ]


def filter_buyins_by_player(
    transactions: Iterable[Transaction], session_id: str, player_id: str
) -> list[Transaction]:
    """Buy-ins for one player in one session."""
    return _filter_by_player(transactions, session_id, player_id, TransactionType.BUY_IN)


def filter_cashouts_by_player(
    transactions: Iterable[Transaction], session_id: str, player_id: str
) -> list[Transaction]:
    """Cash-outs for one player in one session."""
    return _filter_by_player(transactions, session_id, player_id, TransactionType.CASH_OUT)


def _total(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), Decimal(0))


def player_results(
    transactions: list[Transaction], players: list[Player], session_id: str
) -> list[PlayerResult]:
    """Calculate buy-ins, cash-outs and P/L for each player.

    Args:
        transactions: Transactions to aggregate; rows for other sessions are ignored.
        players: Players in output order.
        session_id: Session to restrict the aggregation to.

    Returns:
        One result per player, in the order of ``players``.
    """
    results = []
    for player in players:
        total_buyins = _total(filter_buyins_by_player(transactions, session_id, player.id))
        total_cashouts = _total(filter_cashouts_by_player(transactions, session_id, player.id))
        results.append(PlayerResult(
            player=player,
            total_buyins=total_buyins,
            total_cashouts=total_cashouts,
            pl=total_cashouts - total_buyins,
        ))
    return results


def session_totals(
    transactions: list[Transaction], players: list[Player], session_id: str
) -> SessionTotals:
    """Calculate aggregate buy-ins, cash-outs and P/L for a session.

    A non-zero ``total_profit_loss`` is reported as-is; it usually means rake
    or a data-entry mistake and is left for the caller to surface.
    """
    results = player_results(transactions, players, session_id)
    return SessionTotals(
        total_buyins=sum((r.total_buyins for r in results), Decimal(0)),
        total_cashouts=sum((r.total_cashouts for r in results), Decimal(0)),
        total_profit_loss=sum((r.pl for r in results), Decimal(0)),
    )


def totals_dont_balance(totals: SessionTotals) -> bool:
    """True when cash-outs and buy-ins differ by more than the tolerance."""
    return not totals.is_balanced


def is_winner(result: PlayerResult) -> bool:
    return result.pl > BALANCE_TOLERANCE


def is_loser(result: PlayerResult) -> bool:
    return result.pl < -BALANCE_TOLERANCE


def is_break_even(result: PlayerResult) -> bool:
    return is_zero(result.pl)


def filter_winners(results: list[PlayerResult]) -> list[PlayerResult]:
    """Winners, biggest first."""
    return sorted((r for r in results if is_winner(r)), key=lambda r: r.pl, reverse=True)


def filter_losers(results: list[PlayerResult]) -> list[PlayerResult]:
    """Losers, biggest loser first."""
    return sorted((r for r in results if is_loser(r)), key=lambda r: r.pl)


def filter_break_even(results: list[PlayerResult]) -> list[PlayerResult]:
    """Players within tolerance of zero, in input order."""
    return [r for r in results if is_break_even(r)]


def sum_winnings(winners: list[PlayerResult]) -> Decimal:
    """Total won by the given winners."""
    return sum((w.pl for w in winners), Decimal(0))


def sum_losses(losers: list[PlayerResult]) -> Decimal:
    """Total lost by the given losers, as a positive number."""
    return abs(sum((r.pl for r in losers), Decimal(0)))
