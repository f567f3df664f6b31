"""
Meeting job: reminds agents before a scheduled meeting and starts the
meeting at its start time.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.ledger import LedgerKey
from core.models import EventKind, Meeting
from core.notifications import MEETINGS_URL, NotificationSink
from core.shifts import resolve_timezone

logger = logging.getLogger(__name__)


class MeetingJob:
    name = "meetings"

    def __init__(
        self,
        db,
        tz="Asia/Manila",
        reminder_lead_minutes: int = 60,
        sink: NotificationSink = None
    ):
        self.db = db
        self.tz = resolve_timezone(tz)
        self.reminder_lead = timedelta(minutes=reminder_lead_minutes)
        self.sink = sink or NotificationSink(db)

    def __call__(self) -> int:
        return self.run()

    def run(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        sent = 0
        for meeting in self.db.get_scheduled_meetings_before(now + self.reminder_lead):
            try:
                sent += self.check_meeting(meeting, now)
            except Exception:
                logger.exception("Meeting check failed for meeting %s", meeting.id)
        return sent

    def check_meeting(self, meeting: Meeting, now: datetime) -> int:
        if now < meeting.start_time:
            return 1 if self._remind(meeting, now) is not None else 0
        if now >= meeting.end_time:
            # Never started; leave it for whoever scheduled it
            return 0
        # Notify first; a started meeting is no longer fetched
        notification_id = self._notify_started(meeting)
        if self.db.start_meeting(meeting.id):
            logger.info("Started meeting %s for agent %s", meeting.id, meeting.agent_id)
        return 1 if notification_id is not None else 0

    def _key(self, meeting: Meeting, kind: EventKind) -> LedgerKey:
        day = meeting.start_time.astimezone(self.tz).date()
        return LedgerKey.for_subject(meeting.agent_id, "meeting", meeting.id, kind, day)

    def _payload(self, meeting: Meeting, kind: EventKind):
        return {
            "meeting_id": meeting.id,
            "notification_type": kind.value,
            "start_time": meeting.start_time.isoformat(),
            "action_url": MEETINGS_URL,
        }

    def _remind(self, meeting: Meeting, now: datetime) -> Optional[int]:
        minutes = max(1, round((meeting.start_time - now).total_seconds() / 60))
        starts_at = meeting.start_time.astimezone(self.tz).strftime("%I:%M %p")
        return self.sink.create_notification(
            user_id=meeting.agent_id,
            category="meeting",
            type="info",
            title="Meeting Reminder",
            message=f'"{meeting.title}" starts in {minutes} minutes ({starts_at})',
            payload=self._payload(meeting, EventKind.MEETING_REMINDER),
            key=self._key(meeting, EventKind.MEETING_REMINDER)
        )

    def _notify_started(self, meeting: Meeting) -> Optional[int]:
        return self.sink.create_notification(
            user_id=meeting.agent_id,
            category="meeting",
            type="success",
            title="Meeting Started",
            message=f'"{meeting.title}" has started automatically',
            payload=self._payload(meeting, EventKind.MEETING_STARTED),
            key=self._key(meeting, EventKind.MEETING_STARTED)
        )
