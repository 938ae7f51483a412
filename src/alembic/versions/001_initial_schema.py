"""Initial schema -- ledger tables, reward configuration, seeds, and triggers.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op

from garden.schema_sql import (
    indexes,
    seeds,
    tables_core,
    tables_rewards,
    triggers,
)

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _execute_all(statements: list[str]) -> None:
    """Execute a list of SQL statements sequentially."""
    for stmt in statements:
        op.execute(stmt)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    _execute_all(tables_core.ALL)
    _execute_all(tables_rewards.ALL)
    _execute_all(indexes.ALL)
    _execute_all(seeds.ALL)
    _execute_all(triggers.FUNCTIONS_ALL)
    _execute_all(triggers.TRIGGERS_ALL)


def downgrade() -> None:
    _drop_triggers()
    _drop_functions()
    _drop_tables()


def _drop_triggers() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_portfolio_touch ON nctr_portfolio;")
    op.execute(
        "DROP TRIGGER IF EXISTS trg_nctr_transactions_completed_immutable "
        "ON nctr_transactions;"
    )
    op.execute(
        "DROP TRIGGER IF EXISTS trg_processed_webhooks_immutable "
        "ON processed_webhooks;"
    )


def _drop_functions() -> None:
    op.execute("DROP FUNCTION IF EXISTS touch_portfolio_updated_at();")
    op.execute("DROP FUNCTION IF EXISTS protect_completed_transaction();")
    op.execute("DROP FUNCTION IF EXISTS raise_immutable_error();")


def _drop_tables() -> None:
    tables = [
        "daily_checkin_streaks",
        "affiliate_link_mappings",
        "brands",
        "earning_opportunities",
        "site_settings",
        "opportunity_status_levels",
        "processed_webhooks",
        "nctr_transactions",
        "nctr_locks",
        "nctr_portfolio",
        "users",
    ]
    for table in tables:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
