"""
Task due-date notifications: "due soon" within the next 24 hours and
"overdue" once the due date has passed. One of each per task per day.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.ledger import LedgerKey
from core.models import EventKind, Task
from core.notifications import TASKS_URL, NotificationSink
from core.shifts import resolve_timezone

logger = logging.getLogger(__name__)

DUE_SOON_HORIZON = timedelta(hours=24)


class TaskNotificationJob:
    name = "task-notifications"

    def __init__(
        self,
        db,
        tz="Asia/Manila",
        sink: NotificationSink = None
    ):
        self.db = db
        self.tz = resolve_timezone(tz)
        self.sink = sink or NotificationSink(db)

    def __call__(self) -> int:
        return self.run()

    def run(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(self.tz).date()
        sent = 0
        for task in self.db.get_active_tasks_due_before(now + DUE_SOON_HORIZON):
            if task.due_date is None:
                continue
            kind = EventKind.TASK_OVERDUE if task.due_date < now else EventKind.TASK_DUE_SOON
            key = LedgerKey.for_task(task.user_id, task.id, kind, today)
            try:
                if self._send(task, kind, now, key) is not None:
                    sent += 1
            except Exception:
                logger.exception("Task notification failed for task %s", task.id)
        return sent

    def _format_due(self, task: Task) -> str:
        return task.due_date.astimezone(self.tz).strftime("%b %d, %Y %H:%M")

    def _send(self, task: Task, kind: EventKind, now: datetime, key: LedgerKey) -> Optional[int]:
        hours = abs((task.due_date - now).total_seconds()) / 3600
        payload = {
            "task_id": task.id,
            "notification_type": kind.value,
            "due_date": task.due_date.isoformat(),
            "action_url": TASKS_URL,
        }
        if kind is EventKind.TASK_OVERDUE:
            title = "Task overdue"
            message = f'"{task.title}" was due on {self._format_due(task)}'
            notif_type = "warning"
            payload["hours_overdue"] = round(hours, 1)
        else:
            title = "Task due soon"
            message = f'"{task.title}" is due on {self._format_due(task)}'
            notif_type = "info"
            payload["hours_until_due"] = round(hours, 1)
        return self.sink.create_notification(
            user_id=task.user_id,
            category="task",
            type=notif_type,
            title=title,
            message=message,
            payload=payload,
            key=key
        )
