"""Trigger functions and trigger DDL for the ledger tables."""

# ---- Trigger functions ----

FN_RAISE_IMMUTABLE = """
CREATE OR REPLACE FUNCTION raise_immutable_error()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'Rows in table % are immutable', TG_TABLE_NAME;
END;
$$ LANGUAGE plpgsql;
"""

FN_PROTECT_COMPLETED_TXN = """
CREATE OR REPLACE FUNCTION protect_completed_transaction()
RETURNS TRIGGER AS $$
BEGIN
    IF OLD.status = 'completed' THEN
        RAISE EXCEPTION 'Completed NCTR transaction % is immutable', OLD.transaction_id;
    END IF;
    IF TG_OP = 'DELETE' THEN
        RETURN OLD;
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

FN_TOUCH_PORTFOLIO = """
CREATE OR REPLACE FUNCTION touch_portfolio_updated_at()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = now();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

FUNCTIONS_ALL = [
    FN_RAISE_IMMUTABLE,
    FN_PROTECT_COMPLETED_TXN,
    FN_TOUCH_PORTFOLIO,
]

# ---- Triggers ----

TRIGGERS_ALL = [
    "CREATE TRIGGER trg_processed_webhooks_immutable "
    "BEFORE UPDATE OR DELETE ON processed_webhooks "
    "FOR EACH ROW EXECUTE FUNCTION raise_immutable_error();",

    "CREATE TRIGGER trg_nctr_transactions_completed_immutable "
    "BEFORE UPDATE OR DELETE ON nctr_transactions "
    "FOR EACH ROW EXECUTE FUNCTION protect_completed_transaction();",

    "CREATE TRIGGER trg_portfolio_touch "
    "BEFORE UPDATE ON nctr_portfolio "
    "FOR EACH ROW EXECUTE FUNCTION touch_portfolio_updated_at();",
]
