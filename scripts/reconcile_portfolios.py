#!/usr/bin/env python3
"""Nightly lock reconciliation script.

Compares each portfolio's ``lock_90_nctr`` and ``lock_360_nctr`` columns
against the sum of the member's active ``nctr_locks`` rows of that category
and reports any discrepancies.

Usage:
    DATABASE_URL=postgresql://... python scripts/reconcile_portfolios.py

Exit codes:
    0 -- all balances match
    1 -- one or more discrepancies found
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from datetime import datetime, timezone

import asyncpg  # type: ignore[import-untyped]

DEFAULT_DATABASE_URL = "postgresql://garden:devpassword@db:5432/garden"

RECONCILE_SQL = """
SELECT
    p.user_id,
    p.lock_90_nctr  AS stored_lock_90,
    p.lock_360_nctr AS stored_lock_360,
    COALESCE(SUM(l.nctr_amount) FILTER (WHERE l.lock_category = '90LOCK'), 0)  AS computed_lock_90,
    COALESCE(SUM(l.nctr_amount) FILTER (WHERE l.lock_category = '360LOCK'), 0) AS computed_lock_360
FROM nctr_portfolio p
LEFT JOIN nctr_locks l ON l.user_id = p.user_id AND l.status = 'active'
GROUP BY p.user_id, p.lock_90_nctr, p.lock_360_nctr
HAVING p.lock_90_nctr
           <> COALESCE(SUM(l.nctr_amount) FILTER (WHERE l.lock_category = '90LOCK'), 0)
    OR p.lock_360_nctr
           <> COALESCE(SUM(l.nctr_amount) FILTER (WHERE l.lock_category = '360LOCK'), 0)
ORDER BY p.user_id
"""


def _get_dsn() -> str:
    """Return a raw ``postgresql://`` DSN (strip any SQLAlchemy dialect prefix)."""
    url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    for prefix in ("postgresql+asyncpg://", "postgresql+psycopg2://"):
        if url.startswith(prefix):
            url = "postgresql://" + url[len(prefix):]
    return url


def build_discrepancy(row) -> dict:
    return {
        "user_id": str(row["user_id"]),
        "stored_lock_90": str(row["stored_lock_90"]),
        "computed_lock_90": str(row["computed_lock_90"]),
        "lock_90_difference": str(row["stored_lock_90"] - row["computed_lock_90"]),
        "stored_lock_360": str(row["stored_lock_360"]),
        "computed_lock_360": str(row["computed_lock_360"]),
        "lock_360_difference": str(row["stored_lock_360"] - row["computed_lock_360"]),
    }


async def reconcile(dsn: str) -> list[dict]:
    """Run the reconciliation and return a list of discrepancy dicts."""
    conn: asyncpg.Connection = await asyncpg.connect(dsn)
    try:
        rows = await conn.fetch(RECONCILE_SQL)
        return [build_discrepancy(row) for row in rows]
    finally:
        await conn.close()


async def main() -> int:
    dsn = _get_dsn()
    discrepancies = await reconcile(dsn)

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_discrepancies": len(discrepancies),
        "discrepancies": discrepancies,
    }

    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")

    return 1 if discrepancies else 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
