"""Secondary indexes."""

ALL = [
    "CREATE INDEX ix_nctr_locks_user_status ON nctr_locks (user_id, status);",
    "CREATE INDEX ix_nctr_locks_upgradeable ON nctr_locks (user_id) "
    "WHERE lock_category = '90LOCK' AND can_upgrade AND status = 'active';",
    "CREATE INDEX ix_nctr_txn_user_created ON nctr_transactions (user_id, created_at DESC);",
    "CREATE INDEX ix_nctr_txn_source ON nctr_transactions (earning_source);",
    "CREATE INDEX ix_users_wallet_email ON users (wallet_address, email);",
    "CREATE INDEX ix_brands_name_lower ON brands (lower(name));",
    "CREATE INDEX ix_earning_opportunities_type ON earning_opportunities "
    "(opportunity_type) WHERE is_active;",
]
