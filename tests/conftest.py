"""pytest configuration: in-memory stand-in for WorkforceDB"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from config.settings import BreakRulesConfig
from core.evaluator import NotificationEvaluator
from core.models import Agent, BreakSession, Event, Meeting, Notification, Task

MANILA = ZoneInfo("Asia/Manila")


def manila(year, month, day, hour, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=MANILA)


class FakeWorkforceDB:
    """Implements the WorkforceDB methods the notifier uses.

    The ledger enforces the same composite primary key as the
    notification_ledger table.
    """

    LEDGER_KEY = ("agent_id", "subject", "event_kind", "day", "slot")

    def __init__(self):
        self.agents = {}
        self.sessions = []
        self.notifications = []
        self.ledger = {}
        self.tasks = []
        self.leases = {}
        self.meetings = {}
        self.events = []
        self.user_ids = []
        # Frozen clock for lease expiry; None means wall-clock time
        self.now = None
        self.fail_agents = set()
        self.fail_inserts = 0
        self._next_id = 1

    # test helpers
    def add_agent(self, agent_id, shift_time, shift_period=None, is_active=True):
        self.agents[agent_id] = Agent(id=agent_id, shift_time=shift_time, shift_period=shift_period, is_active=is_active)
        return self.agents[agent_id]

    def add_session(self, agent_id, break_type, start_time, end_time=None):
        self.sessions.append(BreakSession(agent_id=agent_id, break_type=break_type, start_time=start_time, end_time=end_time))

    def add_task(self, task_id, user_id, title, due_date, status="active"):
        self.tasks.append(Task(id=task_id, user_id=user_id, title=title, due_date=due_date, status=status))

    def add_meeting(self, meeting_id, agent_id, title, start_time, duration_minutes=30):
        self.meetings[meeting_id] = Meeting(id=meeting_id, agent_id=agent_id, title=title, start_time=start_time, duration_minutes=duration_minutes)
        return self.meetings[meeting_id]

    def add_event(self, event_id, title, event_date, start_time, end_time, location=None, event_type="event"):
        self.events.append(Event(
            id=event_id, title=title, event_date=event_date, start_time=start_time,
            end_time=end_time, location=location, event_type=event_type
        ))

    def notifications_for(self, user_id):
        return [n for n in self.notifications if n["user_id"] == user_id]

    # agents
    def get_active_agents(self):
        return [a for a in self.agents.values() if a.is_active]

    def get_agent(self, agent_id):
        return self.agents.get(agent_id)

    # sessions
    def get_break_sessions(self, since, agent_id=None):
        if agent_id in self.fail_agents:
            raise RuntimeError("session query failed")
        return [
            s for s in self.sessions
            if s.start_time >= since and (agent_id is None or s.agent_id == agent_id)
        ]

    # notifications
    def insert_notification(self, data):
        if data["user_id"] in self.fail_agents:
            raise RuntimeError("insert failed")
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise RuntimeError("connection reset")
        row = dict(data, id=self._next_id, created_at=datetime.now(timezone.utc).isoformat())
        self._next_id += 1
        self.notifications.append(row)
        return row

    def get_notification(self, notification_id):
        for row in self.notifications:
            if row["id"] == notification_id:
                return Notification.from_row(row)
        return None

    def get_notifications(self, user_id, category=None, include_cleared=False, limit=50):
        rows = [
            r for r in self.notifications
            if r["user_id"] == user_id
            and (category is None or r["category"] == category)
            and (include_cleared or not r.get("clear"))
        ]
        rows.sort(key=lambda r: r["id"], reverse=True)
        return [Notification.from_row(r) for r in rows[:limit]]

    def update_notification(self, notification_id, user_id, **updates):
        for row in self.notifications:
            if row["id"] == notification_id and row["user_id"] == user_id:
                row.update(updates)
                return Notification.from_row(row)
        return None

    # ledger
    def _ledger_key(self, row):
        return tuple(row[c] for c in self.LEDGER_KEY)

    def ledger_exists(self, key):
        return self._ledger_key(key) in self.ledger

    def insert_notification_once(self, key, data):
        # Same all-or-nothing behaviour as send_notification_once
        ledger_key = self._ledger_key(key)
        if ledger_key in self.ledger:
            return None
        row = self.insert_notification(data)
        self.ledger[ledger_key] = dict(key, notification_id=row["id"])
        return row

    # tasks
    def get_active_tasks_due_before(self, before):
        return [
            t for t in self.tasks
            if t.status == "active" and t.due_date is not None and t.due_date <= before
        ]

    # meetings and events
    def get_scheduled_meetings_before(self, before):
        return sorted(
            (m for m in self.meetings.values() if m.status == "scheduled" and m.start_time <= before),
            key=lambda m: m.start_time
        )

    def start_meeting(self, meeting_id):
        meeting = self.meetings.get(meeting_id)
        if meeting is None or meeting.status != "scheduled":
            return False
        meeting.status = "in-progress"
        return True

    def get_events_on(self, day):
        return [e for e in self.events if e.event_date == day and e.status != "cancelled"]

    def get_active_user_ids(self):
        return list(self.user_ids)

    # leases, with expiry like acquire_scheduler_lease
    def _now(self):
        return self.now or datetime.now(timezone.utc)

    def acquire_lease(self, name, holder, ttl_seconds):
        now = self._now()
        current = self.leases.get(name)
        if current is None or current[0] == holder or current[1] < now:
            self.leases[name] = (holder, now + timedelta(seconds=ttl_seconds))
            return True
        return False

    def release_lease(self, name, holder):
        current = self.leases.get(name)
        if current is not None and current[0] == holder:
            del self.leases[name]

    def ping(self):
        return True


@pytest.fixture
def db():
    return FakeWorkforceDB()


@pytest.fixture
def rules():
    return BreakRulesConfig()


@pytest.fixture
def evaluator(rules):
    return NotificationEvaluator(rules)
