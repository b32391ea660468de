#!/usr/bin/env python3
"""CLI tool for session ledger administration."""
import asyncio
import sys
from typing import Optional

from cashgame.admin.session_manager import SessionManager
from cashgame.auth.roles import Role
from cashgame.config import config
from cashgame.db.connection import db
from cashgame.db.models import init_db
from cashgame.errors import LedgerError
from cashgame.ledger.calculations import IMBALANCE_WARNING
from cashgame.ledger.money import format_money
from cashgame.ledger.stage import LedgerAction, SessionStage, finalization_checklist
from cashgame.ledger.stats import (
    calculate_overall_stats,
    calculate_player_stats,
    display_names_from_players,
)
from cashgame.ledger.summary import format_standings_table
from cashgame.state.ledger_store import PostgresLedgerStore
from cashgame.state.redis_client import redis_client
from cashgame.state.summary_store import summary_store


def _manager(session_id: str) -> SessionManager:
    return SessionManager(session_id, PostgresLedgerStore(), summary_store)


async def create_schema():
    """Create the database schema."""
    await db.connect()
    try:
        await init_db()
        print("Success: schema created.")
    finally:
        await db.disconnect()


async def create_session(name: str, currency: str, club_id: Optional[str] = None):
    """Create a new session."""
    await db.connect()
    try:
        session = await PostgresLedgerStore().create_session(name, currency.upper(), club_id)
        print(f"Success: created session {session.id} ({session.currency}).")
    finally:
        await db.disconnect()


async def show_club_stats(club_id: str):
    """Print lifetime results of a club's linked players."""
    await db.connect()
    try:
        store = PostgresLedgerStore()
        sessions = await store.get_finalized_sessions(club_id)
        session_ids = [s.id for s in sessions]
        players = await store.get_players(session_ids)
        transactions = await store.get_transactions(session_ids)

        overall = calculate_overall_stats(sessions, transactions)
        print(f"\nFinalized sessions: {overall.total_sessions}")
        print(f"Total buy-ins:      {format_money(overall.total_buyins)}")
        print(f"Total cash-outs:    {format_money(overall.total_cashouts)}")

        stats = calculate_player_stats(
            sessions, players, transactions, display_names_from_players(players)
        )
        if not stats:
            print("\nNo linked players yet.")
            return
        print(f"\n{'Player':<20} {'Sessions':>8} {'Total':>10} {'Average':>10} {'Best':>10}")
        print("-" * 62)
        for s in stats:
            print(
                f"{s.name:<20} {s.total_sessions:>8} {format_money(s.total_pl):>10} "
                f"{format_money(s.avg_pl):>10} {format_money(s.biggest_win_session):>10}"
            )
    finally:
        await db.disconnect()


async def show_stage(session_id: str):
    """Show the session's stage and what blocks the next step."""
    await db.connect()
    try:
        snapshot = await _manager(session_id).load_snapshot()
        stage = snapshot.stage()
        print(f"\nSession: {session_id}")
        print(f"  Stage:   {stage.label}")
        print(f"  Players: {len(snapshot.players)}")

        if stage == SessionStage.ACTIVE_GAME:
            gate = snapshot.can(LedgerAction.START_CHIP_ENTRY)
            if not gate:
                print(f"  Chip entry blocked: {gate.reason}")
                for player_id in gate.player_ids:
                    print(f"    - {snapshot.get_player(player_id).name}")

        print("\nReady to finalize?")
        for item in finalization_checklist(snapshot):
            mark = "x" if item.ok else ("!" if item.warning else " ")
            print(f"  [{mark}] {item.label}")
    except LedgerError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await db.disconnect()


async def show_standings(session_id: str):
    """Print per-player buy-ins, cash-outs and net."""
    await db.connect()
    try:
        snapshot = await _manager(session_id).load_snapshot()
        totals = snapshot.totals()
        print(format_standings_table(snapshot.results(), snapshot.session.currency))
        print(f"\nTotal buy-ins:   {format_money(totals.total_buyins)}")
        print(f"Total cash-outs: {format_money(totals.total_cashouts)}")
        if not totals.is_balanced:
            print(f"Warning: {IMBALANCE_WARNING} (off by {format_money(totals.total_profit_loss)})")
    except LedgerError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await db.disconnect()


async def show_settlement(session_id: str):
    """Print who pays whom, without finalizing."""
    await db.connect()
    try:
        snapshot = await _manager(session_id).load_snapshot()
        transfers = snapshot.transfers()
        if not transfers:
            print("No payments needed.")
            return
        currency = snapshot.session.currency
        for t in transfers:
            print(f"{t.debtor_name} -> {t.creditor_name}: {currency}{format_money(t.amount)}")
    except LedgerError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await db.disconnect()


async def show_summary(session_id: str):
    """Print the shareable summary of a finalized session."""
    await db.connect()
    await redis_client.connect()
    try:
        summary = await _manager(session_id).get_summary()
        print(summary.text)
    except LedgerError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await redis_client.disconnect()
        await db.disconnect()


async def finalize_session(session_id: str):
    """Finalize a session and print its summary."""
    await db.connect()
    await redis_client.connect()
    try:
        summary = await _manager(session_id).finalize(Role.OWNER)
        print(summary.text)
    except LedgerError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await redis_client.disconnect()
        await db.disconnect()


def print_usage():
    """Print usage information."""
    print("""
Cash Game Ledger CLI

Usage:
  python -m cashgame.cli <command> [args]

Commands:
  init-db                   Create the database schema
  create <name> [currency] [club_id]
                            Create a session (currency defaults to DEFAULT_CURRENCY)
  stats <club_id>           Show lifetime results of a club's players
  stage <session_id>        Show the session stage and finalize checklist
  standings <session_id>    Show buy-ins, cash-outs and net per player
  settle <session_id>       Show who pays whom
  summary <session_id>      Show the shareable summary (finalized sessions)
  finalize <session_id>     Lock the session and settle it

Examples:
  python -m cashgame.cli init-db
  python -m cashgame.cli standings 6f1c...
""")


COMMANDS = {
    "stage": show_stage,
    "standings": show_standings,
    "settle": show_settlement,
    "summary": show_summary,
    "finalize": finalize_session,
}


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()

    if command == "init-db":
        asyncio.run(create_schema())

    elif command == "create":
        if len(sys.argv) < 3:
            print("Error: Session name required.")
            print("Usage: python -m cashgame.cli create <name> [currency] [club_id]")
            sys.exit(1)
        currency = sys.argv[3] if len(sys.argv) > 3 else config.default_currency
        club_id = sys.argv[4] if len(sys.argv) > 4 else None
        asyncio.run(create_session(sys.argv[2], currency, club_id))

    elif command == "stats":
        if len(sys.argv) < 3:
            print("Error: Club ID required.")
            print("Usage: python -m cashgame.cli stats <club_id>")
            sys.exit(1)
        asyncio.run(show_club_stats(sys.argv[2]))

    elif command in COMMANDS:
        if len(sys.argv) < 3:
            print("Error: Session ID required.")
            print(f"Usage: python -m cashgame.cli {command} <session_id>")
            sys.exit(1)
        asyncio.run(COMMANDS[command](sys.argv[2]))

    elif command in ("help", "-h", "--help"):
        print_usage()

    else:
        print(f"Unknown command: {command}")
        print_usage()
        sys.exit(1)


if __name__ == "__main__":
    main()
