"""SQLite database schema definitions."""

SCHEMA_VERSION = 1

# Schema SQL for creating all tables
# This schema is idempotent - can be run multiple times safely
SCHEMA_SQL = """
-- portfolios: Named collections of positions, one owner each
CREATE TABLE IF NOT EXISTS portfolios (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    user_id TEXT NOT NULL,
    description TEXT,
    total_value TEXT NOT NULL DEFAULT '0',
    is_pinned INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    day_change TEXT,
    day_change_percent REAL,
    top_holdings TEXT,
    base_currency TEXT,
    risk_profile TEXT,
    target_allocations TEXT,
    initial_investment TEXT,
    is_public INTEGER NOT NULL DEFAULT 0,
    UNIQUE(user_id, name)
);

CREATE INDEX IF NOT EXISTS idx_portfolios_user ON portfolios(user_id);

-- At most one pinned portfolio per user
CREATE UNIQUE INDEX IF NOT EXISTS idx_portfolios_one_pin
    ON portfolios(user_id) WHERE is_pinned = 1;

-- positions: Full position documents (orders, thesis, journal) as JSON
CREATE TABLE IF NOT EXISTS positions (
    id TEXT PRIMARY KEY,
    portfolio TEXT NOT NULL,
    name TEXT NOT NULL,
    ticker TEXT NOT NULL,
    status TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_positions_portfolio ON positions(portfolio);

-- valuations: Append-mostly portfolio value series
CREATE TABLE IF NOT EXISTS valuations (
    id TEXT PRIMARY KEY,
    portfolio_id TEXT NOT NULL,
    value TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    date_status TEXT NOT NULL,
    is_retroactive INTEGER NOT NULL DEFAULT 0,
    notes TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(portfolio_id, timestamp)
);

CREATE INDEX IF NOT EXISTS idx_valuations_portfolio_time ON valuations(portfolio_id, timestamp);

-- Exactly one ACTIVE record per portfolio once any valuation exists
CREATE UNIQUE INDEX IF NOT EXISTS idx_valuations_one_active
    ON valuations(portfolio_id) WHERE date_status = 'ACTIVE';
"""
