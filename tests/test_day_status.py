"""Tests for cycle day status resolution and duplicate workout selection."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from cyclecoach.models.enums import DayStatus, WorkoutStatus
from cyclecoach.services.day_status import recency_key, resolve_day_status, select_day_workouts

BASE = datetime(2026, 1, 5, 8, 0, 0)


def make_workout(id, status, created=0, started=None, completed=None):
    return SimpleNamespace(
        id=id,
        status=status,
        created_at=BASE + timedelta(minutes=created),
        started_at=BASE + timedelta(minutes=started) if started is not None else None,
        completed_at=BASE + timedelta(minutes=completed) if completed is not None else None,
    )


def status_for(day, current=2, completed=False, pre_generated=False, in_progress=False, rest=False):
    return resolve_day_status(
        day,
        current,
        has_completed=completed,
        has_pre_generated=pre_generated,
        has_in_progress=in_progress,
        is_rest_day=rest,
    )


class TestResolveDayStatus:
    """Rules are evaluated in order; the first match wins."""

    def test_current_day_in_progress_beats_completed(self):
        assert status_for(2, completed=True, in_progress=True) == DayStatus.IN_PROGRESS

    def test_current_day_completed(self):
        assert status_for(2, completed=True) == DayStatus.COMPLETED

    def test_current_day_without_workouts(self):
        assert status_for(2) == DayStatus.CURRENT

    def test_current_rest_day_is_still_current(self):
        assert status_for(2, rest=True) == DayStatus.CURRENT

    def test_past_day_without_workout_is_completed(self):
        assert status_for(1) == DayStatus.COMPLETED

    def test_past_rest_day_is_completed(self):
        assert status_for(1, rest=True) == DayStatus.COMPLETED

    def test_future_day_with_completed_workout(self):
        assert status_for(4, completed=True, pre_generated=True) == DayStatus.COMPLETED

    def test_future_rest_day(self):
        assert status_for(3, rest=True, pre_generated=True) == DayStatus.REST

    def test_future_pre_generated(self):
        assert status_for(4, pre_generated=True) == DayStatus.PRE_GENERATED

    def test_future_in_progress_off_current_day_is_upcoming(self):
        assert status_for(4, in_progress=True) == DayStatus.UPCOMING

    def test_future_upcoming(self):
        assert status_for(4) == DayStatus.UPCOMING

    @pytest.mark.parametrize("day", [1, 2, 3, 4])
    def test_deterministic(self, day):
        assert status_for(day, pre_generated=True) == status_for(day, pre_generated=True)


class TestSelectDayWorkouts:
    """Newest record per status class, authoritative = highest class present."""

    def test_newest_completed_by_completed_at(self):
        older = make_workout(1, WorkoutStatus.COMPLETED, created=50, completed=60)
        newer = make_workout(2, WorkoutStatus.COMPLETED, created=0, completed=90)

        selection = select_day_workouts([older, newer])

        assert selection.completed is newer

    def test_newest_in_progress_by_started_at(self):
        first = make_workout(1, WorkoutStatus.IN_PROGRESS, created=10, started=20)
        second = make_workout(2, WorkoutStatus.IN_PROGRESS, created=5, started=40)

        assert select_day_workouts([first, second]).in_progress is second

    def test_draft_and_ready_share_a_class(self):
        draft = make_workout(1, WorkoutStatus.DRAFT, created=10)
        ready = make_workout(2, WorkoutStatus.READY, created=5)

        assert select_day_workouts([draft, ready]).pre_generated is draft

    def test_ties_broken_by_created_at_then_id(self):
        a = make_workout(1, WorkoutStatus.COMPLETED, created=0, completed=30)
        b = make_workout(2, WorkoutStatus.COMPLETED, created=5, completed=30)
        c = make_workout(3, WorkoutStatus.COMPLETED, created=5, completed=30)

        assert select_day_workouts([c, a, b]).completed is c
        assert recency_key(b) < recency_key(c)

    def test_missing_timestamp_ranks_lowest(self):
        unstarted = make_workout(1, WorkoutStatus.IN_PROGRESS, created=90)
        started = make_workout(2, WorkoutStatus.IN_PROGRESS, created=0, started=1)

        assert select_day_workouts([unstarted, started]).in_progress is started

    def test_authoritative_priority(self):
        completed = make_workout(1, WorkoutStatus.COMPLETED, completed=10)
        in_progress = make_workout(2, WorkoutStatus.IN_PROGRESS, started=5)
        draft = make_workout(3, WorkoutStatus.DRAFT, created=100)

        assert select_day_workouts([completed, in_progress, draft]).authoritative is in_progress
        assert select_day_workouts([completed, draft]).authoritative is completed
        assert select_day_workouts([draft]).authoritative is draft

    def test_order_independent(self):
        records = [
            make_workout(1, WorkoutStatus.DRAFT, created=1),
            make_workout(2, WorkoutStatus.DRAFT, created=3),
            make_workout(3, WorkoutStatus.DRAFT, created=2),
        ]

        assert select_day_workouts(records).pre_generated.id == 2
        assert select_day_workouts(list(reversed(records))).pre_generated.id == 2

    def test_empty(self):
        assert select_day_workouts([]).authoritative is None
