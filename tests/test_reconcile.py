"""Tests for the nightly lock reconciliation script."""

from __future__ import annotations

import uuid
from decimal import Decimal

from scripts.reconcile_portfolios import _get_dsn, build_discrepancy


def test_build_discrepancy_reports_differences():
    user_id = uuid.uuid4()
    row = {
        "user_id": user_id,
        "stored_lock_90": Decimal("100"),
        "computed_lock_90": Decimal("60"),
        "stored_lock_360": Decimal("500"),
        "computed_lock_360": Decimal("500"),
    }

    report = build_discrepancy(row)

    assert report["user_id"] == str(user_id)
    assert report["lock_90_difference"] == "40"
    assert report["lock_360_difference"] == "0"


def test_dsn_strips_sqlalchemy_dialect(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@host:5432/db")

    assert _get_dsn() == "postgresql://u:p@host:5432/db"
