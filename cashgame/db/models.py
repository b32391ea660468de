"""Database schema and initialization."""
from cashgame.db.connection import db
from cashgame.utils.logger import get_logger

logger = get_logger(__name__)

# SQL schema for all tables
SCHEMA = """
-- Sessions (a poker night)
CREATE TABLE IF NOT EXISTS sessions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    club_id UUID,
    name VARCHAR(100),
    currency VARCHAR(3) NOT NULL DEFAULT 'USD',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    chip_entry_started_at TIMESTAMPTZ,
    finalized_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_sessions_club ON sessions(club_id);

-- Players (participants of one session)
CREATE TABLE IF NOT EXISTS players (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id UUID NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    name VARCHAR(100) NOT NULL CHECK (length(trim(name)) > 0),
    profile_id UUID,  -- linked external identity
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (session_id, profile_id)
);

CREATE INDEX IF NOT EXISTS idx_players_session ON players(session_id);

-- Transactions (buy-ins and cash-outs)
CREATE TABLE IF NOT EXISTS transactions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id UUID NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    player_id UUID NOT NULL REFERENCES players(id) ON DELETE CASCADE,
    type VARCHAR(10) NOT NULL CHECK (type IN ('buyin', 'cashout')),
    amount NUMERIC(12, 2) NOT NULL CHECK (amount >= 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_transactions_session ON transactions(session_id);
CREATE INDEX IF NOT EXISTS idx_transactions_player ON transactions(player_id);
"""


async def init_db() -> None:
    """Initialize database schema."""
    logger.info("Initializing database schema...")
    await db.execute(SCHEMA)
    logger.info("Database schema initialized")
