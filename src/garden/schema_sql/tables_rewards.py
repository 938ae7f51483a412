"""CREATE TABLE statements for reward configuration and engagement tracking."""

OPPORTUNITY_STATUS_LEVELS = """
CREATE TABLE opportunity_status_levels (
    level_id          SERIAL PRIMARY KEY,
    status_name       VARCHAR(20) NOT NULL UNIQUE,
    min_locked_nctr   NUMERIC(20, 8) NOT NULL,
    min_lock_duration INTEGER NOT NULL DEFAULT 360,
    reward_multiplier NUMERIC(6, 3) NOT NULL
                      CONSTRAINT ck_status_multiplier_positive CHECK (reward_multiplier > 0),
    description       TEXT,
    benefits          TEXT[]
);
"""

SITE_SETTINGS = """
CREATE TABLE site_settings (
    setting_key   VARCHAR(100) PRIMARY KEY,
    setting_value JSONB NOT NULL,
    description   TEXT,
    updated_at    TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

EARNING_OPPORTUNITIES = """
CREATE TABLE earning_opportunities (
    opportunity_id       UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    opportunity_type     VARCHAR(40) NOT NULL,
    title                VARCHAR(200) NOT NULL,
    partner_name         VARCHAR(200),
    nctr_reward          NUMERIC(20, 8),
    lock_90_nctr_reward  NUMERIC(20, 8),
    lock_360_nctr_reward NUMERIC(20, 8),
    is_active            BOOLEAN NOT NULL DEFAULT TRUE
);
"""

BRANDS = """
CREATE TABLE brands (
    brand_id        UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name            VARCHAR(200) NOT NULL,
    loyalize_id     VARCHAR(50) UNIQUE,
    nctr_per_dollar NUMERIC(12, 4),
    is_active       BOOLEAN NOT NULL DEFAULT TRUE
);
"""

AFFILIATE_LINK_MAPPINGS = """
CREATE TABLE affiliate_link_mappings (
    tracking_id VARCHAR(255) PRIMARY KEY,
    user_id     UUID NOT NULL REFERENCES users(user_id),
    brand_id    UUID REFERENCES brands(brand_id),
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

DAILY_CHECKIN_STREAKS = """
CREATE TABLE daily_checkin_streaks (
    user_id               UUID PRIMARY KEY REFERENCES users(user_id),
    current_streak        INTEGER NOT NULL DEFAULT 0,
    longest_streak        INTEGER NOT NULL DEFAULT 0,
    total_checkins        INTEGER NOT NULL DEFAULT 0,
    streak_bonuses_earned INTEGER NOT NULL DEFAULT 0,
    last_checkin_date     DATE
);
"""

ALL = [
    OPPORTUNITY_STATUS_LEVELS,
    SITE_SETTINGS,
    EARNING_OPPORTUNITIES,
    BRANDS,
    AFFILIATE_LINK_MAPPINGS,
    DAILY_CHECKIN_STREAKS,
]
