"""
Break reminder job, run once per scheduler tick.

For every active agent: derive the break windows of the shifts around
`now`, evaluate the due predicates and send each due notification once.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, time, timedelta, timezone
from typing import Optional, List, Dict

from core.evaluator import DueEvent, NotificationEvaluator
from core.ledger import LedgerKey
from core.models import Agent, BreakSession, EventKind
from core.notifications import NotificationSink
from core.shifts import windows_around

logger = logging.getLogger(__name__)


class BreakReminderJob:
    name = "break-reminders"

    def __init__(
        self,
        db,
        evaluator: NotificationEvaluator,
        sink: NotificationSink = None
    ):
        self.db = db
        self.evaluator = evaluator
        self.sink = sink or NotificationSink(db)

    def __call__(self) -> int:
        return self.run()

    def run(self, now: Optional[datetime] = None) -> int:
        """Check every active agent; returns the number of notifications sent"""
        now = now or datetime.now(timezone.utc)
        agents = self.db.get_active_agents()
        sessions = self._sessions_by_agent(now)

        sent = 0
        for agent in agents:
            try:
                sent += self.check_agent(agent, now, sessions.get(agent.id, []))
            except Exception:
                logger.exception("Break reminder check failed for agent %s", agent.id)
        return sent

    def sessions_since(self, now: datetime) -> datetime:
        # Yesterday's shift may still be running (night shifts)
        local_day = now.astimezone(self.evaluator.tz).date()
        return datetime.combine(local_day - timedelta(days=1), time(0, 0), tzinfo=self.evaluator.tz)

    def _sessions_by_agent(self, now: datetime) -> Dict[int, List[BreakSession]]:
        grouped = defaultdict(list)
        for session in self.db.get_break_sessions(self.sessions_since(now)):
            grouped[session.agent_id].append(session)
        return grouped

    def due_events(self, agent: Agent, now: datetime, sessions: List[BreakSession]) -> List[DueEvent]:
        events = []
        for window in windows_around(agent, now, self.evaluator.tz):
            events.extend(self.evaluator.due_events(window, now, sessions))
        return events

    def check_agent(self, agent: Agent, now: datetime, sessions: List[BreakSession]) -> int:
        sent = 0
        for event in self.due_events(agent, now, sessions):
            key = LedgerKey.for_break(agent.id, event.window.break_type, event.kind, event.window.day, event.slot)
            notification_id = self._send(agent, event, now, key)
            if notification_id is not None:
                logger.debug("Sent %s for agent %s (%s)", event.kind.value, agent.id, event.window.break_type.value)
                sent += 1
        return sent

    def _send(self, agent: Agent, event: DueEvent, now: datetime, key: LedgerKey) -> Optional[int]:
        rules = self.evaluator.rules
        remaining = math.ceil((event.window.end_time - now).total_seconds() / 60)
        extra = {"shift_day": event.window.day.isoformat()}
        if event.kind is EventKind.REMINDER_DUE:
            extra["reminder_number"] = event.slot
        return self.sink.create_break_reminder_notification(
            agent.id,
            event.kind,
            event.window.break_type,
            extra=extra,
            key=key,
            lead=rules.available_soon_lead,
            elapsed=event.slot * rules.reminder_interval,
            remaining=max(remaining, 0),
        )
