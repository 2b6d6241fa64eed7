"""
slots.py — Slot Enumerator for one ISO week

A slot is one (day, workplace) pair that needs a decision. For every day of
the ISO week (Monday first):

  1. Days in the plan's locked weekdays are skipped entirely.
  2. Each active weekly-plan workplace needs a weekday setting whose
     recurrence matches the day's month occurrence (1st Monday, 2nd ...).
  3. Closed settings drop the slot when the room-closed rule is on.
  4. A slot that already holds an employee is filled and skipped, even
     when a block row sits beside the employee row.
  5. A slot holding only a block without employee is LOCKED_EMPTY.

Weekday settings are validated once at the boundary
(validate_weekday_settings); the enumerator assumes at most one setting can
match a given day.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from weekly_planner.models import (
    Recurrence,
    SlotKey,
    WeekdaySetting,
    WeeklyPlanAssignment,
    WeekSnapshot,
    Workplace,
)
from weekly_planner.rule_profile import RuleProfile

logger = logging.getLogger(__name__)

# Month occurrences (1st..5th weekday of the month) each recurrence covers.
RECURRENCE_OCCURRENCES: Dict[Recurrence, Set[int]] = {
    Recurrence.WEEKLY:          {1, 2, 3, 4, 5},
    Recurrence.FIRST_AND_THIRD: {1, 3},
    Recurrence.FIRST_ONLY:      {1},
}


class ConfigurationError(ValueError):
    """Workplace configuration the engine cannot resolve unambiguously."""


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def week_bounds(year: int, week: int) -> Tuple[date, date]:
    """Monday and Sunday of ISO week `week` in ISO year `year`."""
    monday = date.fromisocalendar(year, week, 1)
    return monday, monday + timedelta(days=6)


def get_week_dates(year: int, week: int) -> List[date]:
    monday, _ = week_bounds(year, week)
    return [monday + timedelta(days=i) for i in range(7)]


def weekday_occurrence(d: date) -> int:
    """1 for the first such weekday in the month, 2 for the second, ..."""
    return (d.day - 1) // 7 + 1


def matches_recurrence(recurrence: Optional[Recurrence], d: date) -> bool:
    if recurrence is None:
        return True
    return weekday_occurrence(d) in RECURRENCE_OCCURRENCES[recurrence]


# ---------------------------------------------------------------------------
# Boundary validation
# ---------------------------------------------------------------------------

def validate_weekday_settings(settings: Iterable[WeekdaySetting]) -> None:
    """
    Raise ConfigurationError for weekdays outside 1..7 or for two settings of
    the same workplace and weekday whose recurrences can hit the same day.
    """
    by_key: Dict[SlotKey, List[WeekdaySetting]] = defaultdict(list)
    for setting in settings:
        if not 1 <= setting.weekday <= 7:
            raise ConfigurationError(
                f"Workplace {setting.workplace_id}: weekday {setting.weekday} is not in 1..7"
            )
        key = (setting.weekday, setting.workplace_id)
        for other in by_key[key]:
            shared = RECURRENCE_OCCURRENCES[other.recurrence] & RECURRENCE_OCCURRENCES[setting.recurrence]
            if shared:
                raise ConfigurationError(
                    f"Workplace {setting.workplace_id}: overlapping settings for weekday "
                    f"{setting.weekday} ({other.recurrence.value} / {setting.recurrence.value})"
                )
        by_key[key].append(setting)


def find_setting(settings: Iterable[WeekdaySetting], d: date) -> Optional[WeekdaySetting]:
    """The setting for d's ISO weekday whose recurrence matches d, if any."""
    weekday = d.isoweekday()
    for setting in settings:
        if setting.weekday == weekday and matches_recurrence(setting.recurrence, d):
            return setting
    return None


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------

@dataclass
class Slot:
    date: date
    workplace: Workplace
    setting: WeekdaySetting

    @property
    def weekday(self) -> int:
        return self.date.isoweekday()

    @property
    def key(self) -> SlotKey:
        return (self.weekday, self.workplace.id)

    @property
    def slot_id(self) -> str:
        return f"{self.date.isoformat()}:{self.workplace.id}"


@dataclass
class SlotEnumeration:
    open_slots: List[Slot] = field(default_factory=list)
    locked_empty: List[Slot] = field(default_factory=list)
    filled: List[Slot] = field(default_factory=list)
    closed: List[Slot] = field(default_factory=list)


def index_existing(assignments: Iterable[WeeklyPlanAssignment]) -> Dict[SlotKey, List[WeeklyPlanAssignment]]:
    index: Dict[SlotKey, List[WeeklyPlanAssignment]] = defaultdict(list)
    for a in assignments:
        index[a.slot_key].append(a)
    return index


def covered_slot_keys(assignments: Iterable[WeeklyPlanAssignment]) -> Set[SlotKey]:
    """Slots that may not receive a generated assignment: any employee or any block."""
    return {
        a.slot_key for a in assignments
        if a.employee_id is not None or a.is_blocked
    }


def planning_workplaces(workplaces: Iterable[Workplace]) -> List[Workplace]:
    eligible = [w for w in workplaces if w.is_active and w.use_in_weekly_plan]
    return sorted(eligible, key=lambda w: (w.sort_order, w.id))


def enumerate_slots(snapshot: WeekSnapshot, profile: RuleProfile) -> SlotEnumeration:
    """Ordered open slots (by day, then workplace sort order) plus the skipped ones."""
    result = SlotEnumeration()
    locked = set(snapshot.locked_weekdays)
    existing = index_existing(snapshot.existing_assignments)
    workplaces = planning_workplaces(snapshot.workplaces)
    settings_by_workplace: Dict[int, List[WeekdaySetting]] = defaultdict(list)
    for s in snapshot.weekday_settings:
        settings_by_workplace[s.workplace_id].append(s)

    for day in get_week_dates(snapshot.year, snapshot.week):
        if day.isoweekday() in locked:
            logger.debug(f"{day}: weekday {day.isoweekday()} locked, skipping")
            continue

        for wp in workplaces:
            setting = find_setting(settings_by_workplace.get(wp.id, []), day)
            if setting is None:
                continue
            slot = Slot(date=day, workplace=wp, setting=setting)

            if setting.is_closed and profile.room_closed_block:
                logger.debug(f"{slot.slot_id}: closed ({setting.closed_reason or 'no reason'})")
                result.closed.append(slot)
                continue

            rows = existing.get(slot.key, [])
            # employee rows win over a block row in the same slot
            if any(a.employee_id is not None for a in rows):
                result.filled.append(slot)
                continue
            if any(a.is_block_without_employee for a in rows):
                result.locked_empty.append(slot)
                continue

            result.open_slots.append(slot)

    logger.info(
        f"Week {snapshot.year}-W{snapshot.week:02d}: {len(result.open_slots)} open slots, "
        f"{len(result.filled)} filled, {len(result.locked_empty)} locked empty, "
        f"{len(result.closed)} closed"
    )
    return result
