"""Settlement: who pays whom at the end of a session."""
from dataclasses import dataclass
from decimal import Decimal

from cashgame.ledger.calculations import player_results
from cashgame.ledger.models import Player, PlayerResult, Transaction, Transfer
from cashgame.ledger.money import BALANCE_TOLERANCE


@dataclass
class _Balance:
    """Outstanding amount for one side of the settlement."""
    player_id: str
    player_name: str
    remaining: Decimal


def _creditors(results: list[PlayerResult]) -> list[_Balance]:
    balances = [
        _Balance(r.player.id, r.player.name, r.pl)
        for r in results if r.pl > BALANCE_TOLERANCE
    ]
    # sort() is stable, so equal amounts keep player order
    balances.sort(key=lambda b: b.remaining, reverse=True)
    return balances


def _debtors(results: list[PlayerResult]) -> list[_Balance]:
    balances = [
        _Balance(r.player.id, r.player.name, -r.pl)
        for r in results if r.pl < -BALANCE_TOLERANCE
    ]
    balances.sort(key=lambda b: b.remaining, reverse=True)
    return balances


def transfers_from_results(results: list[PlayerResult]) -> list[Transfer]:
    """Match debtors to creditors, largest against largest.

    Each step pays ``min(debtor, creditor)`` and moves past whichever side
    has dropped to within tolerance of zero. Stops when either side runs out,
    so an unbalanced session leaves the excess unmatched.
    """
    creditors = _creditors(results)
    debtors = _debtors(results)

    transfers = []
    i = 0
    j = 0
    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]
        pay = min(debtor.remaining, creditor.remaining)
        transfers.append(Transfer(
            debtor_id=debtor.player_id,
            debtor_name=debtor.player_name,
            creditor_id=creditor.player_id,
            creditor_name=creditor.player_name,
            amount=pay,
        ))
        debtor.remaining -= pay
        creditor.remaining -= pay
        if creditor.remaining <= BALANCE_TOLERANCE:
            j += 1
        if debtor.remaining <= BALANCE_TOLERANCE:
            i += 1

    return transfers


def settlement_transfers(
    transactions: list[Transaction], players: list[Player], session_id: str
) -> list[Transfer]:
    """Calculate the payments that settle a session.

    Args:
        transactions: Session transactions.
        players: Session players; their order breaks ties between equal amounts.
        session_id: Session to settle.

    Returns:
        Transfers in the order they were matched. Empty when nobody is
        outside tolerance of break-even.
    """
    return transfers_from_results(player_results(transactions, players, session_id))
