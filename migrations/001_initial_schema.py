"""
Break Notifier Database Schema - Supabase/PostgreSQL Migration

Agents, shifts, break sessions, tasks and notifications.
Apply with `workforce-migrate`, or paste into the Supabase SQL Editor / psql.
"""

SCHEMA_SQL = """
-- ============================================
-- BREAK NOTIFIER SCHEMA v1
-- ============================================

-- 1. USERS & SHIFTS
-- ============================================
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    first_name TEXT,
    last_name TEXT,
    user_type TEXT NOT NULL DEFAULT 'Agent',  -- Agent, Client, Internal
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS job_info (
    id SERIAL PRIMARY KEY,
    agent_user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    shift_period TEXT,  -- Day Shift, Night Shift
    shift_schedule TEXT,  -- Monday-Friday, ...
    shift_time TEXT,  -- "6:00 AM - 3:00 PM", edited by admins
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- Read model used by the schedulers
CREATE OR REPLACE VIEW agent_shifts AS
SELECT
    u.id,
    NULLIF(TRIM(CONCAT_WS(' ', u.first_name, u.last_name)), '') AS name,
    ji.shift_time,
    ji.shift_period,
    u.is_active
FROM users u
LEFT JOIN job_info ji ON ji.agent_user_id = u.id
WHERE u.user_type = 'Agent';

-- 2. BREAK SESSIONS (owned by the break-taking workflow)
-- ============================================
DO $$
BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'break_type_enum') THEN
        CREATE TYPE break_type_enum AS ENUM (
            'Morning', 'Lunch', 'Afternoon', 'NightFirst', 'NightMeal', 'NightSecond'
        );
    END IF;
END$$;

CREATE TABLE IF NOT EXISTS break_sessions (
    id SERIAL PRIMARY KEY,
    agent_user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    break_type break_type_enum NOT NULL,
    start_time TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    end_time TIMESTAMPTZ,
    pause_time TIMESTAMPTZ,
    resume_time TIMESTAMPTZ,
    pause_used BOOLEAN NOT NULL DEFAULT FALSE,
    duration_minutes INTEGER,
    break_date DATE NOT NULL DEFAULT (NOW() AT TIME ZONE 'Asia/Manila')::DATE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_break_sessions_agent_start ON break_sessions(agent_user_id, start_time DESC);

-- Duration on close, paused time excluded
CREATE OR REPLACE FUNCTION calculate_break_duration()
RETURNS TRIGGER AS $$
BEGIN
    IF NEW.end_time IS NOT NULL AND (OLD.end_time IS NULL OR NEW.end_time <> OLD.end_time) THEN
        NEW.duration_minutes := GREATEST(0, FLOOR(EXTRACT(EPOCH FROM (
            NEW.end_time - NEW.start_time
            - COALESCE(NEW.resume_time - NEW.pause_time, INTERVAL '0')
        )) / 60))::INTEGER;
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS break_sessions_duration ON break_sessions;
CREATE TRIGGER break_sessions_duration
    BEFORE UPDATE ON break_sessions
    FOR EACH ROW
    EXECUTE FUNCTION calculate_break_duration();

-- 3. TASKS (due-date notifications)
-- ============================================
CREATE TABLE IF NOT EXISTS tasks (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',  -- active, completed, archived
    due_date TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(due_date) WHERE status = 'active';

-- 4. NOTIFICATIONS (soft-cleared, never deleted)
-- ============================================
CREATE TABLE IF NOT EXISTS notifications (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    category TEXT NOT NULL,  -- break, task, event, ...
    type TEXT NOT NULL,  -- info, success, warning
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    payload JSONB NOT NULL DEFAULT '{}',  -- must carry action_url
    is_read BOOLEAN NOT NULL DEFAULT FALSE,
    clear BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at DESC) WHERE clear = FALSE;

-- Real-time fan-out: the socket layer LISTENs on 'notifications'
CREATE OR REPLACE FUNCTION notify_notification_insert()
RETURNS TRIGGER AS $$
BEGIN
    PERFORM pg_notify('notifications', json_build_object(
        'id', NEW.id,
        'user_id', NEW.user_id,
        'category', NEW.category,
        'type', NEW.type,
        'title', NEW.title,
        'message', NEW.message,
        'payload', NEW.payload,
        'created_at', NEW.created_at
    )::TEXT);
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS notifications_notify ON notifications;
CREATE TRIGGER notifications_notify
    AFTER INSERT ON notifications
    FOR EACH ROW
    EXECUTE FUNCTION notify_notification_insert();

-- ============================================
-- FUNCTIONS & TRIGGERS
-- ============================================

CREATE OR REPLACE FUNCTION update_updated_at()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS users_updated_at ON users;
CREATE TRIGGER users_updated_at
    BEFORE UPDATE ON users
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();

DROP TRIGGER IF EXISTS job_info_updated_at ON job_info;
CREATE TRIGGER job_info_updated_at
    BEFORE UPDATE ON job_info
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();

DROP TRIGGER IF EXISTS tasks_updated_at ON tasks;
CREATE TRIGGER tasks_updated_at
    BEFORE UPDATE ON tasks
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();
"""
