"""initial schema"""

from alembic import op

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute(
        """CREATE TABLE IF NOT EXISTS cards (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                type TEXT CHECK(type IN ('debit','credit')) NOT NULL,
                color TEXT NOT NULL DEFAULT 'bg-slate-800',
                cutoff_day INTEGER,
                grace_period INTEGER,
                interest_rate REAL
            )"""
    )
    op.execute(
        """CREATE TABLE IF NOT EXISTS balances (
                card_id TEXT PRIMARY KEY,
                amount REAL NOT NULL DEFAULT 0
            )"""
    )
    op.execute(
        """CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                amount REAL NOT NULL,
                currency TEXT NOT NULL DEFAULT 'MXN',
                payment_method TEXT NOT NULL DEFAULT 'Cash',
                card_id TEXT,
                installments INTEGER NOT NULL DEFAULT 0,
                date TEXT NOT NULL
            )"""
    )
    op.execute(
        """CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )"""
    )


def downgrade():
    op.execute("DROP TABLE IF EXISTS settings")
    op.execute("DROP TABLE IF EXISTS expenses")
    op.execute("DROP TABLE IF EXISTS balances")
    op.execute("DROP TABLE IF EXISTS cards")
