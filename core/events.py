"""
Event job: once a company event (or activity) has started, every active
user gets one "please join" notification for it.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List

from core.ledger import LedgerKey
from core.models import Event, EventKind
from core.notifications import EVENTS_URL, NotificationSink
from core.shifts import resolve_timezone

logger = logging.getLogger(__name__)


class EventReminderJob:
    name = "event-reminders"

    def __init__(self, db, tz="Asia/Manila", sink: NotificationSink = None):
        self.db = db
        self.tz = resolve_timezone(tz)
        self.sink = sink or NotificationSink(db)

    def __call__(self) -> int:
        return self.run()

    def run(self, now: Optional[datetime] = None) -> int:
        now = (now or datetime.now(timezone.utc)).astimezone(self.tz)
        started = [
            event for event in self.db.get_events_on(now.date())
            if event.start_time <= now.time() < event.end_time
        ]
        if not started:
            return 0

        user_ids = self.db.get_active_user_ids()
        sent = 0
        for event in started:
            sent += self.notify_started(event, user_ids)
        return sent

    def notify_started(self, event: Event, user_ids: List[int]) -> int:
        label = "Activity" if event.event_type == "activity" else "Event"
        starts_at = event.start_time.strftime("%I:%M %p")
        message = f'{label} "{event.title}" has started at {starts_at}'
        if event.location:
            message += f" ({event.location})"
        payload = {
            "event_id": event.id,
            "event_title": event.title,
            "event_date": event.event_date.isoformat(),
            "start_time": event.start_time.isoformat(),
            "end_time": event.end_time.isoformat(),
            "location": event.location,
            "event_type": event.event_type,
            "notification_type": EventKind.EVENT_STARTED.value,
            "action_url": f"{EVENTS_URL}?tab=today&eventId={event.id}",
        }

        sent = 0
        for user_id in user_ids:
            key = LedgerKey.for_subject(user_id, "event", event.id, EventKind.EVENT_STARTED, event.event_date)
            try:
                notification_id = self.sink.create_notification(
                    user_id=user_id,
                    category="event",
                    type="info",
                    title=f"{label} Started - Please Join",
                    message=message,
                    payload=payload,
                    key=key
                )
            except Exception:
                logger.exception("Event notification failed for event %s, user %s", event.id, user_id)
                continue
            if notification_id is not None:
                sent += 1
        return sent
