"""
Notification-Due Evaluator

Pure predicates deciding which break notification is due for a window at a
given moment. Every comparison is done in the operating timezone; the
tolerance bands exist because a fixed-interval poller never lands exactly
on a boundary minute. Repeated hits inside a band are absorbed by the
ledger, not by narrowing the band.
"""

from datetime import datetime, timedelta
from typing import Optional, List, Iterable
from dataclasses import dataclass

from config.settings import BreakRulesConfig
from core.models import BreakSession, BreakWindow, EventKind
from core.shifts import resolve_timezone


@dataclass(frozen=True)
class DueEvent:
    kind: EventKind
    window: BreakWindow
    slot: int = 0


class NotificationEvaluator:
    """Evaluates the five break predicates against plain data"""

    def __init__(self, rules: BreakRulesConfig = None):
        self.rules = rules or BreakRulesConfig()
        self.rules.validate()
        self.tz = resolve_timezone(self.rules.timezone)

    def _local(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return now.astimezone(self.tz)

    @staticmethod
    def break_taken(window: BreakWindow, sessions: Iterable[BreakSession]) -> bool:
        for session in sessions:
            if session.break_type is window.break_type and window.shift.contains(session.start_time):
                return True
        return False

    # ==========================================
    # PREDICATES
    # ==========================================

    def is_available_soon(self, window: BreakWindow, now: datetime) -> bool:
        now = self._local(now)
        lead = timedelta(minutes=self.rules.available_soon_lead)
        return window.start_time - lead <= now < window.start_time

    def is_available_now(self, window: BreakWindow, now: datetime, sessions: Iterable[BreakSession] = ()) -> bool:
        now = self._local(now)
        if not window.start_time <= now < window.end_time:
            return False
        return not self.break_taken(window, sessions)

    def reminder_slot(self, window: BreakWindow, now: datetime) -> Optional[int]:
        """Which 30-minute reminder (1, 2, ...) `now` falls on, if any"""
        now = self._local(now)
        if now >= window.end_time:
            return None
        interval = self.rules.reminder_interval * 60
        tolerance = self.rules.reminder_tolerance * 60
        elapsed = (now - window.start_time).total_seconds()
        slot = round(elapsed / interval)
        if slot < 1:
            return None
        # A slot that lands on the window end is not a reminder
        if slot * interval >= (window.end_time - window.start_time).total_seconds():
            return None
        if abs(elapsed - slot * interval) > tolerance:
            return None
        return slot

    def is_reminder_due(self, window: BreakWindow, now: datetime, sessions: Iterable[BreakSession] = ()) -> bool:
        if self.reminder_slot(window, now) is None:
            return False
        return not self.break_taken(window, sessions)

    def is_ending_soon(self, window: BreakWindow, now: datetime, sessions: Iterable[BreakSession] = ()) -> bool:
        now = self._local(now)
        remaining = window.end_time - now
        low = timedelta(minutes=self.rules.ending_soon_min)
        high = timedelta(minutes=self.rules.ending_soon_max)
        if not low <= remaining <= high:
            return False
        return not self.break_taken(window, sessions)

    def is_missed(self, window: BreakWindow, now: datetime, sessions: Iterable[BreakSession] = ()) -> bool:
        now = self._local(now)
        cutoff = window.shift.end + timedelta(minutes=self.rules.missed_grace)
        if not window.end_time <= now <= cutoff:
            return False
        return not self.break_taken(window, sessions)

    # ==========================================
    # AGGREGATE
    # ==========================================

    def due_events(
        self,
        window: BreakWindow,
        now: datetime,
        sessions: Iterable[BreakSession] = ()
    ) -> List[DueEvent]:
        sessions = list(sessions)
        events = []
        if self.is_available_soon(window, now):
            events.append(DueEvent(EventKind.AVAILABLE_SOON, window))
        if self.is_available_now(window, now, sessions):
            events.append(DueEvent(EventKind.AVAILABLE_NOW, window))
        if not self.break_taken(window, sessions):
            slot = self.reminder_slot(window, now)
            if slot is not None:
                events.append(DueEvent(EventKind.REMINDER_DUE, window, slot))
        if self.is_ending_soon(window, now, sessions):
            events.append(DueEvent(EventKind.ENDING_SOON, window))
        if self.is_missed(window, now, sessions):
            events.append(DueEvent(EventKind.MISSED, window))
        return events
