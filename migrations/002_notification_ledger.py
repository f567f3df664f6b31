"""
Notification ledger and scheduler leases.

The ledger's primary key is the at-most-once guarantee for every writer
(schedulers, manual scripts, UI actions). Leases keep a second scheduler
process from ticking against the same database.
"""

SCHEMA_SQL = """
-- 1. NOTIFICATION LEDGER
-- ============================================
CREATE TABLE IF NOT EXISTS notification_ledger (
    agent_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    subject TEXT NOT NULL,  -- break type, or task:<id>
    event_kind TEXT NOT NULL,  -- available_soon, available_now, reminder_due, ending_soon, missed, task_due_soon, task_overdue
    day DATE NOT NULL,  -- shift day (Asia/Manila)
    slot INTEGER NOT NULL DEFAULT 0,  -- reminder number, 0 for one-shot events
    notification_id INTEGER REFERENCES notifications(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (agent_id, subject, event_kind, day, slot)
);

CREATE INDEX IF NOT EXISTS idx_ledger_day ON notification_ledger(day);

-- 2. SCHEDULER LEASES
-- ============================================
CREATE TABLE IF NOT EXISTS scheduler_leases (
    name TEXT PRIMARY KEY,
    holder TEXT NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL,
    acquired_at TIMESTAMPTZ DEFAULT NOW()
);

-- Acquire or renew; TRUE when the caller holds the lease afterwards
CREATE OR REPLACE FUNCTION acquire_scheduler_lease(p_name TEXT, p_holder TEXT, p_ttl_seconds INTEGER)
RETURNS BOOLEAN
LANGUAGE plpgsql
AS $$
DECLARE
    acquired BOOLEAN;
BEGIN
    INSERT INTO scheduler_leases (name, holder, expires_at, acquired_at)
    VALUES (p_name, p_holder, NOW() + make_interval(secs => p_ttl_seconds), NOW())
    ON CONFLICT (name) DO UPDATE SET
        holder = EXCLUDED.holder,
        expires_at = EXCLUDED.expires_at,
        acquired_at = CASE
            WHEN scheduler_leases.holder = EXCLUDED.holder THEN scheduler_leases.acquired_at
            ELSE NOW()
        END
    WHERE scheduler_leases.holder = EXCLUDED.holder
       OR scheduler_leases.expires_at < NOW()
    RETURNING TRUE INTO acquired;

    RETURN COALESCE(acquired, FALSE);
END;
$$;

CREATE OR REPLACE FUNCTION release_scheduler_lease(p_name TEXT, p_holder TEXT)
RETURNS VOID
LANGUAGE sql
AS $$
    DELETE FROM scheduler_leases WHERE name = p_name AND holder = p_holder;
$$;
"""
