"""
Shared builders for weekly planner tests.

Default week: 2026-W12, Monday 2026-03-16 (third Monday of March).
"""

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from weekly_planner.models import (
    Employee,
    RosterShift,
    WeekdaySetting,
    WeekSnapshot,
    Workplace,
)

YEAR, WEEK = 2026, 12
MONDAY = date(2026, 3, 16)


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def week_day():
    """week_day(3) → Wednesday of the default week."""
    return lambda weekday: MONDAY + timedelta(days=weekday - 1)


@pytest.fixture
def snapshot_factory():
    """
    Build a WeekSnapshot for 2026-W12.

    Defaults: one workplace "OP 1" open Monday..Friday, no employees, and a
    single unassigned duty shift on Monday so the duty-coverage rule holds.
    """
    def _make(
        workplaces=None,
        employees=None,
        weekday_settings=None,
        weekdays=(1, 2, 3, 4, 5),
        **kwargs,
    ) -> WeekSnapshot:
        workplaces = workplaces if workplaces is not None else [Workplace(id=1, name="OP 1")]
        if weekday_settings is None:
            weekday_settings = [
                WeekdaySetting(workplace_id=w.id, weekday=d) for w in workplaces for d in weekdays
            ]
        kwargs.setdefault("roster_shifts", [RosterShift(date=MONDAY, service_type="gyn")])
        return WeekSnapshot(
            year=kwargs.pop("year", YEAR),
            week=kwargs.pop("week", WEEK),
            workplaces=workplaces,
            weekday_settings=weekday_settings,
            employees=employees or [],
            **kwargs,
        )
    return _make


@pytest.fixture
def doctors():
    return [
        Employee(id=1, name="Clara Anderson", first_name="Clara", last_name="Anderson", role="Facharzt"),
        Employee(id=2, name="Ben Baker", first_name="Ben", last_name="Baker", role="Assistenzarzt"),
    ]
