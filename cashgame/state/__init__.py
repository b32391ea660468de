"""State management module."""
from .redis_client import RedisClient
from .ledger_store import LedgerStore, PostgresLedgerStore
from .summary_store import SummaryStore, SettlementSummary

__all__ = ["RedisClient", "LedgerStore", "PostgresLedgerStore", "SummaryStore", "SettlementSummary"]
