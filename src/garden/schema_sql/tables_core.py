"""CREATE TABLE statements for users and the NCTR ledger."""

USERS = """
CREATE TABLE users (
    user_id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email              VARCHAR(320) NOT NULL UNIQUE,
    username           VARCHAR(40) UNIQUE,
    full_name          VARCHAR(200),
    wallet_address     VARCHAR(64),
    nctr_live_verified BOOLEAN NOT NULL DEFAULT FALSE,
    nctr_live_user_id  VARCHAR(255),
    nctr_live_email    VARCHAR(320),
    is_admin           BOOLEAN NOT NULL DEFAULT FALSE,
    is_active          BOOLEAN NOT NULL DEFAULT TRUE,
    created_at         TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

NCTR_PORTFOLIO = """
CREATE TABLE nctr_portfolio (
    user_id             UUID PRIMARY KEY REFERENCES users(user_id),
    available_nctr      NUMERIC(20, 8) NOT NULL DEFAULT 0
                        CONSTRAINT ck_portfolio_available_nonneg CHECK (available_nctr >= 0),
    pending_nctr        NUMERIC(20, 8) NOT NULL DEFAULT 0,
    lock_90_nctr        NUMERIC(20, 8) NOT NULL DEFAULT 0
                        CONSTRAINT ck_portfolio_lock90_nonneg CHECK (lock_90_nctr >= 0),
    lock_360_nctr       NUMERIC(20, 8) NOT NULL DEFAULT 0
                        CONSTRAINT ck_portfolio_lock360_nonneg CHECK (lock_360_nctr >= 0),
    total_earned        NUMERIC(20, 8) NOT NULL DEFAULT 0,
    nctr_live_available NUMERIC(20, 8),
    nctr_live_lock_360  NUMERIC(20, 8),
    nctr_live_total     NUMERIC(20, 8),
    last_sync_at        TIMESTAMPTZ,
    last_sync_error     TEXT,
    updated_at          TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

NCTR_LOCKS = """
CREATE TABLE nctr_locks (
    lock_id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id               UUID NOT NULL REFERENCES users(user_id),
    nctr_amount           NUMERIC(20, 8) NOT NULL
                          CONSTRAINT ck_lock_amount_nonneg CHECK (nctr_amount >= 0),
    lock_type             VARCHAR(10) NOT NULL,
    lock_category         VARCHAR(10) NOT NULL
                          CONSTRAINT ck_lock_category
                          CHECK (lock_category IN ('90LOCK', '360LOCK')),
    commitment_days       INTEGER NOT NULL,
    lock_date             TIMESTAMPTZ NOT NULL DEFAULT now(),
    unlock_date           TIMESTAMPTZ NOT NULL,
    can_upgrade           BOOLEAN NOT NULL DEFAULT FALSE,
    original_lock_type    VARCHAR(10),
    upgraded_from_lock_id UUID REFERENCES nctr_locks(lock_id),
    status                VARCHAR(20) NOT NULL DEFAULT 'active'
                          CONSTRAINT ck_lock_status
                          CHECK (status IN ('active', 'upgraded', 'unlocked'))
);
"""

NCTR_TRANSACTIONS = """
CREATE TABLE nctr_transactions (
    transaction_id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id                 UUID NOT NULL REFERENCES users(user_id),
    transaction_type        VARCHAR(20) NOT NULL
                            CONSTRAINT ck_nctr_txn_type
                            CHECK (transaction_type IN ('earned', 'sync', 'locked', 'adjustment')),
    nctr_amount             NUMERIC(20, 8) NOT NULL,
    earning_source          VARCHAR(40),
    auto_lock_type          VARCHAR(10),
    external_transaction_id VARCHAR(255) UNIQUE,
    partner_name            VARCHAR(200),
    purchase_amount         NUMERIC(12, 2),
    description             TEXT,
    status                  VARCHAR(20) NOT NULL
                            CONSTRAINT ck_nctr_txn_status
                            CHECK (status IN ('pending', 'completed', 'failed', 'reversed')),
    metadata                JSONB,
    created_at              TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

PROCESSED_WEBHOOKS = """
CREATE TABLE processed_webhooks (
    event_id     VARCHAR(255) PRIMARY KEY,
    processed_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

ALL = [
    USERS,
    NCTR_PORTFOLIO,
    NCTR_LOCKS,
    NCTR_TRANSACTIONS,
    PROCESSED_WEBHOOKS,
]
