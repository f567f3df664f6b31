"""Notification-due predicates"""

from datetime import date, datetime, timezone

import pytest

from conftest import MANILA, manila
from config.settings import BreakRulesConfig
from core.evaluator import NotificationEvaluator
from core.models import Agent, BreakSession, BreakType, BreakWindow, EventKind, ShiftClass, ShiftInstance
from core.shifts import calculate_break_windows

DAY = date(2025, 3, 10)


def make_window(break_type, start, end, shift_start=None, shift_end=None):
    shift = ShiftInstance(
        shift_day=DAY,
        start=shift_start or manila(2025, 3, 10, 6),
        end=shift_end or manila(2025, 3, 10, 15),
        shift_class=ShiftClass.NIGHT if break_type.is_night else ShiftClass.DAY,
    )
    return BreakWindow(break_type, start, end, shift)


@pytest.fixture
def day_windows():
    windows = calculate_break_windows(Agent(id=1, shift_time="6:00 AM - 3:00 PM"), DAY, MANILA)
    return {w.break_type: w for w in windows}


class TestAvailability:

    def test_morning_available_soon_at_0745(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        assert evaluator.is_available_soon(morning, manila(2025, 3, 10, 7, 45))
        assert not evaluator.is_available_now(morning, manila(2025, 3, 10, 7, 45))

    def test_morning_available_now_at_0800(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        assert evaluator.is_available_now(morning, manila(2025, 3, 10, 8))
        assert not evaluator.is_available_soon(morning, manila(2025, 3, 10, 8))

    def test_available_soon_outside_lead(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        assert not evaluator.is_available_soon(morning, manila(2025, 3, 10, 7, 44))

    def test_available_now_ends_with_window(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        assert evaluator.is_available_now(morning, manila(2025, 3, 10, 8, 59))
        assert not evaluator.is_available_now(morning, manila(2025, 3, 10, 9))

    def test_available_now_false_once_break_taken(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        sessions = [BreakSession(1, BreakType.MORNING, manila(2025, 3, 10, 8, 5))]
        assert not evaluator.is_available_now(morning, manila(2025, 3, 10, 8, 20), sessions)

    def test_session_of_other_type_does_not_count(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        sessions = [BreakSession(1, BreakType.LUNCH, manila(2025, 3, 10, 8, 5))]
        assert evaluator.is_available_now(morning, manila(2025, 3, 10, 8, 20), sessions)

    def test_utc_now_gives_same_answer(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        now_utc = manila(2025, 3, 10, 7, 45).astimezone(timezone.utc)
        assert evaluator.is_available_soon(morning, now_utc)

    def test_naive_now_rejected(self, evaluator, day_windows):
        with pytest.raises(ValueError):
            evaluator.is_available_soon(day_windows[BreakType.MORNING], datetime(2025, 3, 10, 7, 45))

    def test_night_window_across_midnight(self, evaluator):
        window = make_window(
            BreakType.NIGHT_FIRST,
            manila(2025, 3, 10, 23), manila(2025, 3, 11, 0),
            shift_start=manila(2025, 3, 10, 21), shift_end=manila(2025, 3, 11, 6),
        )
        assert evaluator.is_available_now(window, manila(2025, 3, 10, 23, 30))
        assert evaluator.is_available_soon(window, manila(2025, 3, 10, 22, 50))
        assert not evaluator.is_available_now(window, manila(2025, 3, 11, 0, 1))


class TestReminderDue:

    @pytest.fixture
    def lunch(self):
        return make_window(BreakType.LUNCH, manila(2025, 3, 10, 10, 30), manila(2025, 3, 10, 13))

    @pytest.mark.parametrize("hour,minute,slot", [
        (11, 0, 1),
        (11, 30, 2),
        (12, 0, 3),
        (12, 30, 4),
        (11, 2, 1),
        (10, 58, 1),
    ])
    def test_due_on_half_hours(self, evaluator, lunch, hour, minute, slot):
        now = manila(2025, 3, 10, hour, minute)
        assert evaluator.is_reminder_due(lunch, now)
        assert evaluator.reminder_slot(lunch, now) == slot

    @pytest.mark.parametrize("hour,minute", [
        (10, 30),
        (10, 45),
        (11, 15),
        (11, 3),
        (12, 45),
        (12, 58),
        (12, 59),
        (13, 0),
        (13, 30),
    ])
    def test_not_due_between_slots_or_outside_window(self, evaluator, lunch, hour, minute):
        assert not evaluator.is_reminder_due(lunch, manila(2025, 3, 10, hour, minute))

    def test_not_due_after_break_taken(self, evaluator, lunch):
        sessions = [BreakSession(1, BreakType.LUNCH, manila(2025, 3, 10, 10, 40), manila(2025, 3, 10, 11, 40))]
        assert not evaluator.is_reminder_due(lunch, manila(2025, 3, 10, 12), sessions)

    def test_no_reminder_just_before_window_end(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        assert evaluator.reminder_slot(morning, manila(2025, 3, 10, 8, 58)) is None
        assert evaluator.reminder_slot(morning, manila(2025, 3, 10, 8, 30)) == 1

    def test_wider_tolerance(self, lunch):
        evaluator = NotificationEvaluator(BreakRulesConfig(reminder_tolerance=3))
        assert evaluator.is_reminder_due(lunch, manila(2025, 3, 10, 11, 3))


class TestEndingSoon:

    @pytest.fixture
    def afternoon(self):
        return make_window(BreakType.AFTERNOON, manila(2025, 3, 10, 13, 45), manila(2025, 3, 10, 14, 45))

    @pytest.mark.parametrize("hour,minute,expected", [
        (14, 30, True),
        (14, 33, True),
        (14, 27, True),
        (14, 15, False),
        (14, 26, False),
        (14, 34, False),
        (14, 45, False),
    ])
    def test_band(self, evaluator, afternoon, hour, minute, expected):
        assert evaluator.is_ending_soon(afternoon, manila(2025, 3, 10, hour, minute)) is expected

    def test_suppressed_when_break_taken(self, evaluator, afternoon):
        sessions = [BreakSession(1, BreakType.AFTERNOON, manila(2025, 3, 10, 13, 50))]
        assert not evaluator.is_ending_soon(afternoon, manila(2025, 3, 10, 14, 30), sessions)


class TestMissed:

    def test_missed_after_window_without_session(self, evaluator, day_windows):
        morning = day_windows[BreakType.MORNING]
        assert evaluator.is_missed(morning, manila(2025, 3, 10, 9))
        assert evaluator.is_missed(morning, manila(2025, 3, 10, 12))

    def test_not_missed_during_window(self, evaluator, day_windows):
        assert not evaluator.is_missed(day_windows[BreakType.MORNING], manila(2025, 3, 10, 8, 59))

    def test_not_missed_when_taken(self, evaluator, day_windows):
        sessions = [BreakSession(1, BreakType.MORNING, manila(2025, 3, 10, 8, 30), manila(2025, 3, 10, 8, 45))]
        assert not evaluator.is_missed(day_windows[BreakType.MORNING], manila(2025, 3, 10, 9, 30), sessions)

    def test_session_from_previous_day_does_not_count(self, evaluator, day_windows):
        sessions = [BreakSession(1, BreakType.MORNING, manila(2025, 3, 9, 8, 30))]
        assert evaluator.is_missed(day_windows[BreakType.MORNING], manila(2025, 3, 10, 9, 30), sessions)

    def test_not_missed_long_after_shift(self, evaluator, day_windows):
        # Shift ends 15:00, grace is 60 minutes
        assert evaluator.is_missed(day_windows[BreakType.AFTERNOON], manila(2025, 3, 10, 16))
        assert not evaluator.is_missed(day_windows[BreakType.AFTERNOON], manila(2025, 3, 10, 16, 1))


class TestDueEvents:

    def test_only_available_now_at_window_start(self, evaluator, day_windows):
        events = evaluator.due_events(day_windows[BreakType.MORNING], manila(2025, 3, 10, 8))
        assert [e.kind for e in events] == [EventKind.AVAILABLE_NOW]

    def test_reminder_carries_slot(self, evaluator, day_windows):
        events = evaluator.due_events(day_windows[BreakType.LUNCH], manila(2025, 3, 10, 11))
        kinds = {e.kind: e for e in events}
        assert kinds[EventKind.REMINDER_DUE].slot == 2
        assert EventKind.AVAILABLE_NOW in kinds

    def test_nothing_due_before_lead(self, evaluator, day_windows):
        assert evaluator.due_events(day_windows[BreakType.MORNING], manila(2025, 3, 10, 7)) == []


class TestRulesValidation:

    def test_inverted_ending_band_rejected(self):
        with pytest.raises(ValueError):
            NotificationEvaluator(BreakRulesConfig(ending_soon_min=20, ending_soon_max=10))

    def test_tolerance_too_wide_rejected(self):
        with pytest.raises(ValueError):
            NotificationEvaluator(BreakRulesConfig(reminder_tolerance=15))
