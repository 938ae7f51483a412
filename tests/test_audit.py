"""Tests for structured audit logging of ledger events.

Run with:
    python -m pytest tests/test_audit.py -v
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from garden.services.audit_logger import AuditLogger


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FAKE_USER_A = uuid.UUID("00000000-0000-0000-0000-000000000001")
FAKE_ADMIN = uuid.UUID("00000000-0000-0000-0000-0000000000ad")
FAKE_LOCK_ID = uuid.UUID("00000000-0000-0000-0000-000000000077")
FAKE_OLD_LOCK_ID = uuid.UUID("00000000-0000-0000-0000-000000000076")
FAKE_TXN_ID = uuid.UUID("00000000-0000-0000-0000-000000000099")


# ---------------------------------------------------------------------------
# 1. test_log_nctr_award_structured
# ---------------------------------------------------------------------------

def test_log_nctr_award_structured():
    """Award logging includes all fields and the audit flag."""
    logger = AuditLogger()

    with patch("garden.services.audit_logger.log") as mock_log:
        logger.log_nctr_award(
            user_id=FAKE_USER_A,
            amount=Decimal("110.00000000"),
            earning_source="affiliate_purchase",
            multiplier=Decimal("1.10"),
            lock_category="90LOCK",
            external_transaction_id="ORD-1",
        )

        mock_log.info.assert_called_once()
        assert mock_log.info.call_args[0][0] == "audit_event"
        call_kwargs = mock_log.info.call_args[1]

        assert call_kwargs["event_type"] == "nctr_award"
        assert call_kwargs["audit"] is True
        assert call_kwargs["user_id"] == str(FAKE_USER_A)
        assert call_kwargs["amount"] == "110.00000000"
        assert call_kwargs["multiplier"] == "1.10"
        assert call_kwargs["lock_category"] == "90LOCK"
        assert call_kwargs["external_transaction_id"] == "ORD-1"
        assert "timestamp" in call_kwargs


# ---------------------------------------------------------------------------
# 2. test_log_lock_upgrade
# ---------------------------------------------------------------------------

def test_log_lock_upgrade():
    logger = AuditLogger()

    with patch("garden.services.audit_logger.log") as mock_log:
        logger.log_lock_event(
            user_id=FAKE_USER_A,
            lock_id=FAKE_LOCK_ID,
            action="upgrade",
            amount=Decimal("300"),
            lock_category="360LOCK",
            source_lock_id=FAKE_OLD_LOCK_ID,
        )

        call_kwargs = mock_log.info.call_args[1]
        assert call_kwargs["event_type"] == "lock"
        assert call_kwargs["lock_id"] == str(FAKE_LOCK_ID)
        assert call_kwargs["source_lock_id"] == str(FAKE_OLD_LOCK_ID)
        assert call_kwargs["action"] == "upgrade"


def test_log_lock_create_has_no_source():
    logger = AuditLogger()

    with patch("garden.services.audit_logger.log") as mock_log:
        logger.log_lock_event(
            user_id=FAKE_USER_A,
            lock_id=FAKE_LOCK_ID,
            action="create",
            amount=Decimal("5"),
            lock_category="90LOCK",
        )

        assert mock_log.info.call_args[1]["source_lock_id"] is None


# ---------------------------------------------------------------------------
# 3. test_log_portfolio_sync
# ---------------------------------------------------------------------------

def test_log_portfolio_sync_stringifies_balances():
    logger = AuditLogger()

    with patch("garden.services.audit_logger.log") as mock_log:
        logger.log_portfolio_sync(
            user_id=FAKE_USER_A,
            source="nctr_live",
            balances={"total": Decimal("900"), "available": Decimal("100")},
        )

        call_kwargs = mock_log.info.call_args[1]
        assert call_kwargs["event_type"] == "portfolio_sync"
        assert call_kwargs["balances"] == {"total": "900", "available": "100"}


# ---------------------------------------------------------------------------
# 4. test_log_admin_action
# ---------------------------------------------------------------------------

def test_log_admin_action_details():
    logger = AuditLogger()

    with patch("garden.services.audit_logger.log") as mock_log:
        logger.log_admin_action(
            admin_id=FAKE_ADMIN,
            action="manual_credit",
            target_user_id=FAKE_USER_A,
            transaction_id=FAKE_TXN_ID,
            amount=Decimal("2000"),
            notes=None,
        )

        call_kwargs = mock_log.info.call_args[1]
        assert call_kwargs["event_type"] == "admin_action"
        assert call_kwargs["admin_id"] == str(FAKE_ADMIN)
        assert call_kwargs["target_user_id"] == str(FAKE_USER_A)
        assert call_kwargs["details"] == {
            "transaction_id": str(FAKE_TXN_ID),
            "amount": "2000",
            "notes": None,
        }


# ---------------------------------------------------------------------------
# 5. test_lock_creation_emits_audit_event
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_lock_creation_emits_audit_event():
    """Creating a lock goes through the shared audit logger."""
    from unittest.mock import AsyncMock, MagicMock

    from garden.services.lock_service import create_lock

    insert_result = MagicMock()
    insert_result.fetchone.return_value = (FAKE_LOCK_ID,)
    mock_db = AsyncMock()
    mock_db.execute.side_effect = [insert_result, MagicMock()]

    with patch("garden.services.audit_logger.log") as mock_log:
        await create_lock(mock_db, FAKE_USER_A, Decimal("42"), "360LOCK")

    call_kwargs = mock_log.info.call_args[1]
    assert call_kwargs["event_type"] == "lock"
    assert call_kwargs["action"] == "create"
    assert call_kwargs["amount"] == "42"
