"""
Atomic ledger claim plus notification insert.

Both rows are written inside one function call, so a crash or timeout either
leaves both or neither. Every writer that needs at-most-once delivery goes
through this function.
"""

SCHEMA_SQL = """
-- Returns the inserted notification as JSONB, or NULL if the key was taken
-- ============================================
CREATE OR REPLACE FUNCTION send_notification_once(p_key JSONB, p_notification JSONB)
RETURNS JSONB
LANGUAGE plpgsql
AS $$
DECLARE
    claimed INTEGER;
    inserted notifications%ROWTYPE;
BEGIN
    INSERT INTO notification_ledger (agent_id, subject, event_kind, day, slot)
    VALUES (
        (p_key->>'agent_id')::INTEGER,
        p_key->>'subject',
        p_key->>'event_kind',
        (p_key->>'day')::DATE,
        COALESCE((p_key->>'slot')::INTEGER, 0)
    )
    ON CONFLICT DO NOTHING;

    GET DIAGNOSTICS claimed = ROW_COUNT;
    IF claimed = 0 THEN
        RETURN NULL;
    END IF;

    INSERT INTO notifications (user_id, category, type, title, message, payload, is_read, clear)
    VALUES (
        (p_notification->>'user_id')::INTEGER,
        p_notification->>'category',
        p_notification->>'type',
        p_notification->>'title',
        p_notification->>'message',
        COALESCE(p_notification->'payload', '{}'::JSONB),
        COALESCE((p_notification->>'is_read')::BOOLEAN, FALSE),
        COALESCE((p_notification->>'clear')::BOOLEAN, FALSE)
    )
    RETURNING * INTO inserted;

    UPDATE notification_ledger
    SET notification_id = inserted.id
    WHERE agent_id = (p_key->>'agent_id')::INTEGER
      AND subject = p_key->>'subject'
      AND event_kind = p_key->>'event_kind'
      AND day = (p_key->>'day')::DATE
      AND slot = COALESCE((p_key->>'slot')::INTEGER, 0);

    RETURN to_jsonb(inserted);
END;
$$;
"""
