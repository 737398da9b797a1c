from __future__ import annotations

from alembic import op

revision = "0001_budgets"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Categories and transactions are written by other services; created here
    # only when missing so a fresh database is usable on its own.
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS categories (
            id SERIAL PRIMARY KEY,
            user_id UUID,
            name VARCHAR(50) NOT NULL,
            type VARCHAR(10) NOT NULL CHECK (type IN ('income', 'expense', 'both')),
            icon VARCHAR(50),
            color VARCHAR(7),
            is_active BOOLEAN NOT NULL DEFAULT TRUE
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL,
            category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE RESTRICT,
            type VARCHAR(10) NOT NULL CHECK (type IN ('income', 'expense')),
            amount NUMERIC(15, 2) NOT NULL CHECK (amount > 0),
            date DATE NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_transactions_user_category_date ON transactions (user_id, category_id, date);"
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS budgets (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL,
            category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE RESTRICT,
            monthly_limit NUMERIC(15, 2) NOT NULL,
            alert_threshold INTEGER NOT NULL DEFAULT 80,
            month INTEGER NOT NULL,
            year INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            description TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_budgets_monthly_limit_positive CHECK (monthly_limit > 0),
            CONSTRAINT ck_budgets_alert_threshold_range CHECK (alert_threshold BETWEEN 1 AND 100),
            CONSTRAINT ck_budgets_month_range CHECK (month BETWEEN 1 AND 12),
            CONSTRAINT ck_budgets_year_range CHECK (year BETWEEN 2020 AND 2100)
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_budgets_user_id ON budgets (user_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_budgets_month_year ON budgets (month, year);")
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_budgets_active_period
            ON budgets (user_id, category_id, month, year)
            WHERE is_active;
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS budgets;")
    op.execute("DROP TABLE IF EXISTS transactions;")
    op.execute("DROP TABLE IF EXISTS categories;")
