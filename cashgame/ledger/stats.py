"""Club statistics across finalized sessions."""
from dataclasses import dataclass
from decimal import Decimal

from cashgame.ledger.calculations import player_results
from cashgame.ledger.models import Player, Session, Transaction

UNKNOWN_PLAYER = "Unknown player"


@dataclass
class PlayerStat:
    """Lifetime figures for one linked identity."""
    profile_id: str
    name: str
    total_sessions: int
    total_buyins: Decimal
    total_cashouts: Decimal
    total_pl: Decimal
    avg_pl: Decimal
    biggest_win_session: Decimal

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "profile_id": self.profile_id,
            "name": self.name,
            "total_sessions": self.total_sessions,
            "total_buyins": str(self.total_buyins),
            "total_cashouts": str(self.total_cashouts),
            "total_pl": str(self.total_pl),
            "avg_pl": str(self.avg_pl),
            "biggest_win_session": str(self.biggest_win_session),
        }


@dataclass
class SessionHistoryEntry:
    """One session in an identity's history."""
    session_id: str
    date: str  # DD-MM-YYYY
    session_name: str
    pl: Decimal


@dataclass
class OverallStats:
    """Totals across every session."""
    total_sessions: int
    total_buyins: Decimal
    total_cashouts: Decimal
    total_pl: Decimal


def calculate_player_stats(
    sessions: list[Session],
    players: list[Player],
    transactions: list[Transaction],
    display_names: dict[str, str],
) -> list[PlayerStat]:
    """Aggregate results per linked identity.

    Players without a ``profile_id`` are skipped. Sorted by total P/L,
    biggest first.
    """
    # profile_id -> (buy-ins, cash-outs, per-session P/L list)
    by_profile: dict[str, tuple[Decimal, Decimal, list[Decimal]]] = {}

    for session in sessions:
        linked = [p for p in players if p.session_id == session.id and p.profile_id]
        for result in player_results(transactions, linked, session.id):
            key = result.player.profile_id
            buyins, cashouts, pls = by_profile.get(key, (Decimal(0), Decimal(0), []))
            by_profile[key] = (
                buyins + result.total_buyins,
                cashouts + result.total_cashouts,
                pls + [result.pl],
            )

    stats = []
    for profile_id, (buyins, cashouts, pls) in by_profile.items():
        total_pl = sum(pls, Decimal(0))
        stats.append(PlayerStat(
            profile_id=profile_id,
            name=display_names.get(profile_id, UNKNOWN_PLAYER),
            total_sessions=len(pls),
            total_buyins=buyins,
            total_cashouts=cashouts,
            total_pl=total_pl,
            avg_pl=total_pl / len(pls),
            biggest_win_session=max(pls),
        ))

    stats.sort(key=lambda s: s.total_pl, reverse=True)
    return stats


def session_history_for_profile(
    sessions: list[Session],
    players: list[Player],
    transactions: list[Transaction],
    profile_id: str,
) -> list[SessionHistoryEntry]:
    """Every session the identity played, most recent first."""
    sessions_by_id = {s.id: s for s in sessions}
    played = []

    for player in players:
        if player.profile_id != profile_id:
            continue
        session = sessions_by_id.get(player.session_id)
        if session is None:
            continue
        result = player_results(transactions, [player], session.id)[0]
        played.append((session, result.pl))

    played.sort(key=lambda item: item[0].created_at, reverse=True)
    return [
        SessionHistoryEntry(
            session_id=session.id,
            date=session.created_at.strftime("%d-%m-%Y"),
            session_name=session.name,
            pl=pl,
        )
        for session, pl in played
    ]


def calculate_overall_stats(
    sessions: list[Session], transactions: list[Transaction]
) -> OverallStats:
    """Totals across all transactions of the given sessions."""
    total_buyins = sum((t.amount for t in transactions if t.is_buyin), Decimal(0))
    total_cashouts = sum((t.amount for t in transactions if t.is_cashout), Decimal(0))
    return OverallStats(
        total_sessions=len(sessions),
        total_buyins=total_buyins,
        total_cashouts=total_cashouts,
        total_pl=total_cashouts - total_buyins,
    )


def display_names_from_players(players: list[Player]) -> dict[str, str]:
    """Map each linked identity to the name of its most recent player row."""
    names: dict[str, str] = {}
    for player in sorted(players, key=lambda p: p.created_at):
        if player.profile_id:
            names[player.profile_id] = player.name
    return names
