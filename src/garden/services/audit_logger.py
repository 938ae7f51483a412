"""Structured audit logger for NCTR ledger mutations.

Emits structured log entries via structlog for awards, lock changes, portfolio
syncs, and admin actions.  Every entry carries an ``audit: true`` flag so
production log pipelines can filter on it easily.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


class AuditLogger:
    """Structured audit logger for ledger events.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Awards
    # ------------------------------------------------------------------

    def log_nctr_award(
        self,
        user_id,
        amount,
        earning_source: str,
        multiplier=None,
        lock_category: str | None = None,
        external_transaction_id: str | None = None,
    ) -> None:
        """Log NCTR credited to a member (earned, bonus, purchase)."""
        log.info(
            "audit_event",
            event_type="nctr_award",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            amount=str(amount),
            earning_source=earning_source,
            multiplier=_str_or_none(multiplier),
            lock_category=lock_category,
            external_transaction_id=external_transaction_id,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def log_lock_event(
        self,
        user_id,
        lock_id,
        action: str,
        amount,
        lock_category: str,
        source_lock_id=None,
    ) -> None:
        """Record a lock creation, upgrade, or commitment."""
        log.info(
            "audit_event",
            event_type="lock",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            lock_id=str(lock_id),
            action=action,
            amount=str(amount),
            lock_category=lock_category,
            source_lock_id=_str_or_none(source_lock_id),
            audit=True,
        )

    # ------------------------------------------------------------------
    # External syncs
    # ------------------------------------------------------------------

    def log_portfolio_sync(self, user_id, source: str, balances: dict) -> None:
        """Log a mirror update pushed by an external balance source."""
        log.info(
            "audit_event",
            event_type="portfolio_sync",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            source=source,
            balances={k: str(v) for k, v in balances.items()},
            audit=True,
        )

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def log_admin_action(self, admin_id, action: str, target_user_id=None, **details) -> None:
        log.info(
            "audit_event",
            event_type="admin_action",
            timestamp=datetime.now(timezone.utc).isoformat(),
            admin_id=str(admin_id),
            action=action,
            target_user_id=_str_or_none(target_user_id),
            details={k: _str_or_none(v) for k, v in details.items()},
            audit=True,
        )


audit = AuditLogger()
