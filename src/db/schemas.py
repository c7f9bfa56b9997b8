"""SQL schemas for the transaction store."""

# Transactions table - one row per extracted SMS transaction
TRANSACTIONS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL,
    target TEXT NOT NULL,
    amount REAL NOT NULL CHECK (amount > 0),
    date_of_transaction INTEGER NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('DEBIT', 'CREDIT')),
    mode TEXT NOT NULL CHECK (mode IN ('CARD', 'UPI')),
    category TEXT NOT NULL,
    other_info TEXT NOT NULL,
    original_message TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date_of_transaction DESC);
CREATE INDEX IF NOT EXISTS idx_transactions_category ON transactions(category, type);
"""

# Older builds stored salary credits under their own category
LEGACY_CATEGORY_MIGRATION = "UPDATE transactions SET category = 'OTHER' WHERE category = 'SALARY'"

SUMMARY_QUERY = """
SELECT
    COUNT(*) AS total_count,
    COALESCE(SUM(CASE WHEN type = 'DEBIT' THEN amount ELSE 0 END), 0) AS total_debits,
    COALESCE(SUM(CASE WHEN type = 'CREDIT' THEN amount ELSE 0 END), 0) AS total_credits,
    COUNT(DISTINCT category) AS distinct_category_count
FROM transactions
"""

SPEND_BY_CATEGORY_QUERY = """
SELECT category, SUM(amount) AS total
FROM transactions
WHERE type = 'DEBIT'
GROUP BY category
ORDER BY total DESC
"""


def create_all_tables(connection):
    """
    Execute all CREATE statements and pending data migrations.

    Args:
        connection: sqlite3 connection
    """
    connection.executescript(TRANSACTIONS_TABLE_SCHEMA)
    connection.execute(LEGACY_CATEGORY_MIGRATION)
    connection.commit()
