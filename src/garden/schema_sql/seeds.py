"""Seed data INSERT statements."""

STATUS_LEVELS = """
INSERT INTO opportunity_status_levels
    (status_name, min_locked_nctr, min_lock_duration, reward_multiplier, description)
VALUES
    ('starter',  0,     0,   1.000, 'No committed NCTR yet'),
    ('bronze',   0.00000001, 360, 1.000, 'Entry status'),
    ('silver',   1000,  360, 1.050, '5% bonus NCTR on purchases'),
    ('gold',     2500,  360, 1.100, '10% bonus NCTR on purchases'),
    ('platinum', 10000, 360, 1.150, '15% bonus NCTR on purchases'),
    ('diamond',  50000, 360, 1.200, '20% bonus NCTR on purchases');
"""

SITE_SETTINGS = """
INSERT INTO site_settings (setting_key, setting_value, description)
VALUES
    ('daily_checkin_streak_config',
     '{"enabled": true, "streak_requirement": 7, "bonus_nctr_amount": 100,
       "bonus_lock_type": "360LOCK",
       "streak_bonus_description": "Check in 7 days in a row for a 360LOCK bonus"}'::jsonb,
     'Daily check-in streak bonus rules'),
    ('nctr_distribution_rate',
     '{"tokens_per_second": 50, "current_total": 2500000}'::jsonb,
     'Ticker animation settings'),
    ('site_stats', '{"brand_partners": "5K+"}'::jsonb, 'Marketing counters');
"""

EARNING_OPPORTUNITIES = """
INSERT INTO earning_opportunities
    (opportunity_type, title, nctr_reward, lock_360_nctr_reward, is_active)
VALUES
    ('invite',        'Invite a friend',  NULL, 500, TRUE),
    ('daily_checkin', 'Daily check-in',   10,   NULL, TRUE);
"""

ALL = [STATUS_LEVELS, SITE_SETTINGS, EARNING_OPPORTUNITIES]
