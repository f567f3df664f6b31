"""
Shift Window Calculator

Turns an agent's free-text shift ("6:00 AM - 3:00 PM") into concrete,
timezone-aware break windows. Windows are offsets from the shift start
taken from BREAK_POLICY, so a night shift that crosses midnight rolls its
later windows into the next calendar day on its own.
"""

import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, List, Tuple, Sequence
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from core.models import (
    Agent,
    BreakType,
    BreakWindow,
    ShiftClass,
    ShiftInstance,
)

logger = logging.getLogger(__name__)

_SHIFT_RE = re.compile(
    r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*[-–]\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$"
)


@dataclass(frozen=True)
class BreakPolicy:
    day_type: BreakType
    night_type: BreakType
    start_offset: timedelta
    end_offset: timedelta

    def break_type_for(self, shift_class: ShiftClass) -> BreakType:
        return self.night_type if shift_class is ShiftClass.NIGHT else self.day_type


BREAK_POLICY: Tuple[BreakPolicy, ...] = (
    BreakPolicy(BreakType.MORNING, BreakType.NIGHT_FIRST,
                timedelta(hours=2), timedelta(hours=3)),
    BreakPolicy(BreakType.LUNCH, BreakType.NIGHT_MEAL,
                timedelta(hours=4), timedelta(hours=7)),
    BreakPolicy(BreakType.AFTERNOON, BreakType.NIGHT_SECOND,
                timedelta(hours=7, minutes=45), timedelta(hours=8, minutes=45)),
)


def validate_policy(policy: Sequence[BreakPolicy]):
    """Raise ValueError unless the rows are ordered and non-overlapping"""
    previous_end = None
    for row in policy:
        if row.end_offset <= row.start_offset:
            raise ValueError(f"{row.day_type.value} window ends before it starts")
        if previous_end is not None and row.start_offset < previous_end:
            raise ValueError(f"{row.day_type.value} window overlaps the previous break")
        previous_end = row.end_offset


validate_policy(BREAK_POLICY)


def _to_24h(hour: int, minute: int, meridiem: str) -> Optional[time]:
    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        return None
    meridiem = meridiem.upper()
    if hour == 12:
        hour = 0 if meridiem == "AM" else 12
    elif meridiem == "PM":
        hour += 12
    return time(hour, minute)


def parse_shift_time(shift_time: Optional[str]) -> Optional[Tuple[time, time]]:
    """Parse "H:MM AM - H:MM PM" into (start, end) clock times.

    Returns None for anything that does not match, so callers can skip the
    agent instead of failing the whole poll.
    """
    if not shift_time:
        return None
    match = _SHIFT_RE.match(shift_time)
    if not match:
        return None
    sh, sm, smer, eh, em, emer = match.groups()
    start = _to_24h(int(sh), int(sm), smer)
    end = _to_24h(int(eh), int(em), emer)
    if start is None or end is None:
        return None
    return start, end


def classify_shift(shift_time: Optional[str], shift_period: Optional[str] = None) -> Optional[ShiftClass]:
    parsed = parse_shift_time(shift_time)
    if parsed is None:
        return None
    start, end = parsed
    if end <= start or (shift_period and "night" in shift_period.lower()):
        return ShiftClass.NIGHT
    return ShiftClass.DAY


def resolve_timezone(tz) -> tzinfo:
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def shift_instance(agent: Agent, shift_day: date, tz) -> Optional[ShiftInstance]:
    """The occurrence of the agent's shift that starts on shift_day"""
    parsed = parse_shift_time(agent.shift_time)
    if parsed is None:
        return None
    tz = resolve_timezone(tz)
    start_clock, end_clock = parsed
    start = datetime.combine(shift_day, start_clock, tzinfo=tz)
    end = datetime.combine(shift_day, end_clock, tzinfo=tz)
    if end <= start:
        end += timedelta(days=1)
    return ShiftInstance(
        shift_day=shift_day,
        start=start,
        end=end,
        shift_class=classify_shift(agent.shift_time, agent.shift_period),
    )


def shift_instances_around(agent: Agent, now: datetime, tz) -> List[ShiftInstance]:
    """Shifts that started yesterday and today in local time.

    A night shift evaluated at 01:00 still belongs to the previous day's
    instance, so both are considered.
    """
    tz = resolve_timezone(tz)
    local_day = now.astimezone(tz).date()
    instances = []
    for shift_day in (local_day - timedelta(days=1), local_day):
        instance = shift_instance(agent, shift_day, tz)
        if instance is not None:
            instances.append(instance)
    return instances


def windows_for_shift(
    shift: ShiftInstance,
    policy: Sequence[BreakPolicy] = BREAK_POLICY
) -> List[BreakWindow]:
    windows = []
    for row in policy:
        start = shift.start + row.start_offset
        end = shift.start + row.end_offset
        # Shift too short for this break
        if end > shift.end:
            continue
        windows.append(BreakWindow(
            break_type=row.break_type_for(shift.shift_class),
            start_time=start,
            end_time=end,
            shift=shift,
        ))
    windows.sort(key=lambda w: w.start_time)
    return windows


def calculate_break_windows(
    agent: Agent,
    shift_day: date,
    tz="Asia/Manila",
    policy: Sequence[BreakPolicy] = BREAK_POLICY
) -> List[BreakWindow]:
    """Break windows for the agent's shift starting on shift_day.

    Malformed or missing shift strings give an empty list.
    """
    shift = shift_instance(agent, shift_day, tz)
    if shift is None:
        logger.debug("Agent %s has no usable shift time: %r", agent.id, agent.shift_time)
        return []
    return windows_for_shift(shift, policy)


def windows_around(
    agent: Agent,
    now: datetime,
    tz="Asia/Manila",
    policy: Sequence[BreakPolicy] = BREAK_POLICY
) -> List[BreakWindow]:
    windows = []
    for shift in shift_instances_around(agent, now, tz):
        windows.extend(windows_for_shift(shift, policy))
    return windows
