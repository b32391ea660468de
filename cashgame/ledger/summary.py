"""Plain-text rendering of session results."""
from datetime import datetime

from cashgame.ledger.calculations import filter_losers, filter_winners, is_winner
from cashgame.ledger.models import PlayerResult, Session, SessionTotals, Transfer
from cashgame.ledger.money import format_money

_CURRENCY_SYMBOLS = {
    "ILS": "₪",
    "EUR": "€",
}

SEPARATOR = "-----------------------------------"


def currency_symbol(currency: str) -> str:
    """Short display symbol for a currency code."""
    return _CURRENCY_SYMBOLS.get(currency, "$")


def _format_date(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def format_settlement_summary(
    session: Session,
    results: list[PlayerResult],
    totals: SessionTotals,
    transfers: list[Transfer],
) -> str:
    """Format the shareable results of a finalized session.

    Args:
        session: The session; must be finalized.
        results: Per-player results.
        totals: Session totals; the pot is the total buy-ins.
        transfers: Settlement transfers.

    Returns:
        Multi-line summary, or an empty string if the session is not finalized.
    """
    if not session.is_finalized:
        return ""

    currency = session.currency
    lines = [
        f"🃏 Poker Night Results - {_format_date(session.finalized_at or session.created_at)} 🃏",
        f"💰 Pot: {currency}{format_money(totals.total_buyins)} "
        f"(calculated by the total buy-ins in the game)",
        "",
        "📊 Final Standings:",
        SEPARATOR,
    ]

    ranked = sorted(
        filter_winners(results) + filter_losers(results),
        key=lambda r: abs(r.pl),
        reverse=True,
    )
    for index, result in enumerate(ranked, 1):
        emoji = "🏆" if is_winner(result) else "💸"
        lines.append(
            f"{index}. {result.player.name} {emoji} {currency}{format_money(abs(result.pl))}"
        )

    lines.extend(["", "💳 Who Pays Whom:", SEPARATOR])
    if not transfers:
        lines.append("No payments needed.")
    for transfer in transfers:
        lines.append(
            f"{transfer.debtor_name} → {transfer.creditor_name}: "
            f"{currency}{format_money(transfer.amount)}"
        )

    lines.extend(["", "🎲 Thanks for playing!"])
    return "\n".join(lines)


def format_standings_table(results: list[PlayerResult], currency: str = "USD") -> str:
    """Format per-player results as a text table.

    Args:
        results: Player results, rendered in the given order.
        currency: Currency code used for the header symbol.

    Returns:
        Formatted table string.
    """
    if not results:
        return "No players in this session."

    symbol = currency_symbol(currency)
    lines = [
        f"| Player     | Buy-ins ({symbol}) | Cash-outs ({symbol}) | Net (+/-) |",
        "|------------|-------------|---------------|-----------|",
    ]

    for r in results:
        net = format_money(r.pl)
        net_str = net if net.startswith("-") else f"+{net}"
        lines.append(
            f"| {r.player.name:<10} | {format_money(r.total_buyins):>11} | "
            f"{format_money(r.total_cashouts):>13} | {net_str:>9} |"
        )

    return "\n".join(lines)
