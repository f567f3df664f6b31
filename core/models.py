"""
Break Notifier Models

Plain data passed between the shift calculator, the evaluator and the
database client. Rows coming back from Supabase are converted here.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


class BreakType(Enum):
    MORNING = "Morning"
    LUNCH = "Lunch"
    AFTERNOON = "Afternoon"
    NIGHT_FIRST = "NightFirst"
    NIGHT_MEAL = "NightMeal"
    NIGHT_SECOND = "NightSecond"

    @property
    def is_night(self) -> bool:
        return self in NIGHT_BREAKS

    @property
    def display_name(self) -> str:
        return BREAK_DISPLAY_NAMES[self]


DAY_BREAKS = (BreakType.MORNING, BreakType.LUNCH, BreakType.AFTERNOON)
NIGHT_BREAKS = (BreakType.NIGHT_FIRST, BreakType.NIGHT_MEAL, BreakType.NIGHT_SECOND)

BREAK_DISPLAY_NAMES = {
    BreakType.MORNING: "Morning break",
    BreakType.LUNCH: "Lunch break",
    BreakType.AFTERNOON: "Afternoon break",
    BreakType.NIGHT_FIRST: "First night break",
    BreakType.NIGHT_MEAL: "Night meal break",
    BreakType.NIGHT_SECOND: "Second night break",
}


class EventKind(Enum):
    AVAILABLE_SOON = "available_soon"
    AVAILABLE_NOW = "available_now"
    REMINDER_DUE = "reminder_due"
    ENDING_SOON = "ending_soon"
    MISSED = "missed"
    # Task, meeting and event notifications share the ledger
    TASK_DUE_SOON = "task_due_soon"
    TASK_OVERDUE = "task_overdue"
    MEETING_REMINDER = "meeting_reminder"
    MEETING_STARTED = "meeting_started"
    EVENT_STARTED = "event_started"


BREAK_EVENT_KINDS = (
    EventKind.AVAILABLE_SOON,
    EventKind.AVAILABLE_NOW,
    EventKind.REMINDER_DUE,
    EventKind.ENDING_SOON,
    EventKind.MISSED,
)


class ShiftClass(Enum):
    DAY = "day"
    NIGHT = "night"


def _parse_ts(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # Supabase returns ISO strings, sometimes with a trailing Z
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Agent:
    id: int
    shift_time: Optional[str] = None
    shift_period: Optional[str] = None
    name: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Agent':
        return cls(
            id=row["id"],
            shift_time=row.get("shift_time"),
            shift_period=row.get("shift_period"),
            name=row.get("name"),
            is_active=row.get("is_active", True),
        )


@dataclass
class BreakSession:
    agent_id: int
    break_type: BreakType
    start_time: datetime
    end_time: Optional[datetime] = None
    pause_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    pause_used: bool = False
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'BreakSession':
        return cls(
            id=row.get("id"),
            agent_id=row["agent_user_id"],
            break_type=BreakType(row["break_type"]),
            start_time=_parse_ts(row["start_time"]),
            end_time=_parse_ts(row.get("end_time")),
            pause_time=_parse_ts(row.get("pause_time")),
            duration_minutes=row.get("duration_minutes"),
            pause_used=bool(row.get("pause_used", False)),
        )


@dataclass(frozen=True)
class ShiftInstance:
    """One concrete occurrence of an agent's shift"""
    shift_day: date
    start: datetime
    end: datetime
    shift_class: ShiftClass

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class BreakWindow:
    break_type: BreakType
    start_time: datetime
    end_time: datetime
    shift: ShiftInstance

    @property
    def day(self) -> date:
        return self.shift.shift_day

    def as_dict(self) -> Dict[str, Any]:
        return {
            "break_type": self.break_type.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "shift_day": self.day.isoformat(),
        }


@dataclass
class Notification:
    user_id: int
    category: str
    type: str
    title: str
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    is_read: bool = False
    clear: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Notification':
        return cls(
            id=row.get("id"),
            user_id=row["user_id"],
            category=row["category"],
            type=row["type"],
            title=row["title"],
            message=row["message"],
            payload=row.get("payload") or {},
            created_at=_parse_ts(row.get("created_at")),
            is_read=bool(row.get("is_read", False)),
            clear=bool(row.get("clear", False)),
        )


@dataclass
class Task:
    id: int
    user_id: int
    title: str
    due_date: Optional[datetime] = None
    status: str = "active"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Task':
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            due_date=_parse_ts(row.get("due_date")),
            status=row.get("status", "active"),
        )


@dataclass
class Meeting:
    id: int
    agent_id: int
    title: str
    start_time: datetime
    duration_minutes: int = 30
    status: str = "scheduled"
    meeting_type: Optional[str] = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Meeting':
        return cls(
            id=row["id"],
            agent_id=row["agent_user_id"],
            title=row["title"],
            start_time=_parse_ts(row["start_time"]),
            duration_minutes=row.get("duration_minutes") or 30,
            status=row.get("status", "scheduled"),
            meeting_type=row.get("meeting_type"),
        )


@dataclass
class Event:
    """Company-wide event; date and times are local to the operating timezone"""
    id: int
    title: str
    event_date: date
    start_time: time
    end_time: time
    location: Optional[str] = None
    event_type: str = "event"
    status: str = "upcoming"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Event':
        def _date(value):
            return value if isinstance(value, date) else date.fromisoformat(str(value)[:10])

        def _time(value):
            return value if isinstance(value, time) else time.fromisoformat(str(value))

        return cls(
            id=row["id"],
            title=row["title"],
            event_date=_date(row["event_date"]),
            start_time=_time(row["start_time"]),
            end_time=_time(row["end_time"]),
            location=row.get("location"),
            event_type=row.get("event_type") or "event",
            status=row.get("status", "upcoming"),
        )
