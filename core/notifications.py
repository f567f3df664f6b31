"""
Notification Sink

Persists notification rows and hands them to in-process subscribers.
Connected clients are reached through the notifications_notify trigger
(pg_notify on insert), which the real-time layer forwards.
"""

import logging
from typing import Optional, List, Dict, Any, Callable

from core.ledger import DeduplicationLedger, LedgerKey
from core.models import BreakType, EventKind, Notification

logger = logging.getLogger(__name__)

BREAKS_URL = "/status/breaks"
TASKS_URL = "/productivity/task-activity"
MEETINGS_URL = "/status/meetings"
EVENTS_URL = "/status/events"

# kind -> (notification type, title template, message template)
BREAK_TEMPLATES = {
    EventKind.AVAILABLE_SOON: (
        "info",
        "{name} available soon",
        "Your {name} will be available in {lead} minutes",
    ),
    EventKind.AVAILABLE_NOW: (
        "success",
        "{name} is now available",
        "Your {name} is now available! You can take it now.",
    ),
    EventKind.REMINDER_DUE: (
        "info",
        "Reminder: {name} not taken yet",
        "Your {name} has been available for {elapsed} minutes. Please take your break soon.",
    ),
    EventKind.ENDING_SOON: (
        "warning",
        "{name} ending soon",
        "Your {name} window ends in {remaining} minutes",
    ),
    EventKind.MISSED: (
        "warning",
        "You missed your {name}",
        "Your {name} window has ended and no break was recorded.",
    ),
}

Subscriber = Callable[[Dict[str, Any]], None]


class NotificationSink:
    def __init__(self, db, ledger: DeduplicationLedger = None):
        self.db = db
        self.ledger = ledger or DeduplicationLedger(db)
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber):
        self._subscribers.append(callback)

    def _publish(self, row: Dict[str, Any]):
        for callback in self._subscribers:
            try:
                callback(row)
            except Exception:
                # Row is already persisted; the trigger still delivers it
                logger.exception("Notification subscriber failed for notification %s", row.get("id"))

    def create_notification(
        self,
        user_id: int,
        category: str,
        type: str,
        title: str,
        message: str,
        payload: Dict[str, Any],
        key: Optional[LedgerKey] = None
    ) -> Optional[int]:
        """Persist a notification and publish it. Returns the new id.

        With a ledger `key` the notification is written at most once:
        None is returned, and nothing stored, when the key is already
        claimed. A failed write leaves no claim behind, so a later tick
        can retry.
        """
        if not payload or not payload.get("action_url"):
            raise ValueError("notification payload requires an action_url")
        data = {
            "user_id": user_id,
            "category": category,
            "type": type,
            "title": title,
            "message": message,
            "payload": payload,
            "is_read": False,
            "clear": False,
        }
        if key is None:
            row = self.db.insert_notification(data)
        else:
            if self.ledger.was_sent(key):
                return None
            row = self.ledger.mark_sent(key, data)
            if row is None:
                return None
        self._publish(row)
        return row.get("id")

    def create_break_reminder_notification(
        self,
        agent_id: int,
        kind: EventKind,
        break_type: BreakType,
        extra: Dict[str, Any] = None,
        key: Optional[LedgerKey] = None,
        **template_values
    ) -> Optional[int]:
        if kind not in BREAK_TEMPLATES:
            raise ValueError(f"{kind.value} is not a break reminder")
        notif_type, title, message = BREAK_TEMPLATES[kind]
        values = {"name": break_type.display_name, "lead": 15, "elapsed": 30, "remaining": 15}
        values.update(template_values)
        title = title.format(**values)
        payload = {
            "reminder_type": kind.value,
            "break_type": break_type.value,
            "action_url": BREAKS_URL,
        }
        payload.update(extra or {})
        return self.create_notification(
            user_id=agent_id,
            category="break",
            type=notif_type,
            title=title,
            message=message.format(**values),
            payload=payload,
            key=key
        )
    # ==========================================
    # READ / CLEAR (notification center)
    # ==========================================

    def list_for_user(self, user_id: int, category: str = None, include_cleared: bool = False, limit: int = 50) -> List[Notification]:
        return self.db.get_notifications(user_id, category=category, include_cleared=include_cleared, limit=limit)

    def mark_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        return self.db.update_notification(notification_id, user_id, is_read=True)

    def clear(self, notification_id: int, user_id: int) -> Optional[Notification]:
        """Soft-delete; rows are never removed"""
        return self.db.update_notification(notification_id, user_id, clear=True)

