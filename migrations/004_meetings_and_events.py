"""
Meetings and company events.

Meetings belong to one agent and are started by the meeting scheduler at
their start time. Events are company-wide; their date and times are local
(Asia/Manila) wall-clock values.
"""

SCHEMA_SQL = """
-- 1. MEETINGS
-- ============================================
CREATE TABLE IF NOT EXISTS meetings (
    id SERIAL PRIMARY KEY,
    agent_user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    start_time TIMESTAMPTZ NOT NULL,
    end_time TIMESTAMPTZ,
    duration_minutes INTEGER NOT NULL DEFAULT 30,
    meeting_type TEXT DEFAULT 'video',  -- video, audio, in-person
    status TEXT NOT NULL DEFAULT 'scheduled',  -- scheduled, in-progress, completed, cancelled
    is_in_meeting BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_meetings_scheduled ON meetings(start_time) WHERE status = 'scheduled';

DROP TRIGGER IF EXISTS meetings_updated_at ON meetings;
CREATE TRIGGER meetings_updated_at
    BEFORE UPDATE ON meetings
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();

-- 2. EVENTS
-- ============================================
CREATE TABLE IF NOT EXISTS events (
    id SERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    event_date DATE NOT NULL,
    start_time TIME NOT NULL,
    end_time TIME NOT NULL,
    location TEXT,
    event_type TEXT NOT NULL DEFAULT 'event',  -- event, activity
    status TEXT NOT NULL DEFAULT 'upcoming',  -- upcoming, today, ended, cancelled
    created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_events_date ON events(event_date);

DROP TRIGGER IF EXISTS events_updated_at ON events;
CREATE TRIGGER events_updated_at
    BEFORE UPDATE ON events
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();
"""
