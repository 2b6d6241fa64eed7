"""
constraints.py — Candidate Evaluator for weekly workplace slots

Hard exclusions (all applicable codes are collected, not first-match):
  - FORBIDDEN_AREA:             workplace on the employee's forbidden list
  - ALREADY_ASSIGNED_SAME_TIME: employee already holds something that weekday
                                (stored rows or generated earlier in this run)
  - ABSENCE_BLOCKED:            non-rejected planned absence covers the date
  - LONG_TERM_ABSENCE_BLOCKED:  approved long-term absence covers the date
  - AFTER_DUTY_BLOCKED:         non-overduty roster shift on the previous day
  - MISSING_REQUIRED_ROLE:      role keys fail the required/alternative labels
  - MISSING_REQUIRED_SKILL:     AND / OR competency requirement not met
  - EMPLOYEE_INACTIVE:          date inside the legacy inactive window

Absence and after-duty checks only apply when the matching hard rule of the
RuleProfile is on.

Severity enum and ConstraintViolation dataclass are shared with the
diagnostics aggregator.

Usage:
  evaluator = CandidateEvaluator(snapshot, profile)
  reasons = evaluator.evaluate(slot, employee)   # empty set → eligible
  evaluator.book(employee.id, slot.weekday)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from weekly_planner import reasons as rc
from weekly_planner.models import (
    Employee,
    LongTermAbsenceStatus,
    PlannedAbsenceStatus,
    RequiredCompetency,
    WeekSnapshot,
)
from weekly_planner.rule_profile import RuleProfile
from weekly_planner.skills import is_clerical, matches_competencies, matches_role_requirements
from weekly_planner.slots import Slot

logger = logging.getLogger(__name__)


class ConstraintSeverity(Enum):
    HARD = "hard"
    SOFT = "soft"


@dataclass
class ConstraintViolation:
    severity: ConstraintSeverity
    code: str
    message: str
    date: Optional[str] = None
    workplace_id: Optional[int] = None
    employee_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def hard(self) -> bool:
        return self.severity is ConstraintSeverity.HARD

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "hard": self.hard, "message": self.message}
        if self.date:
            out["date"] = self.date
        if self.workplace_id is not None:
            out["workplaceId"] = self.workplace_id
        if self.employee_id is not None:
            out["employeeId"] = self.employee_id
        return out

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.code}"]
        if self.date:
            parts.append(f"date={self.date}")
        if self.workplace_id is not None:
            parts.append(f"workplace={self.workplace_id}")
        if self.employee_id is not None:
            parts.append(f"employee={self.employee_id}")
        parts.append(f"→ {self.message}")
        return " | ".join(parts)


class CandidateEvaluator:
    """
    Evaluates (slot, employee) pairs against the hard rules of one run.

    Holds the run's booking ledger: which weekdays each employee already
    occupies. It starts from the stored assignments and grows through book().
    """

    def __init__(self, snapshot: WeekSnapshot, profile: RuleProfile):
        self.profile = profile

        self._planned: Dict[int, List] = defaultdict(list)
        for a in snapshot.planned_absences:
            if a.status is not PlannedAbsenceStatus.REJECTED:
                self._planned[a.employee_id].append(a)

        self._long_term: Dict[int, List] = defaultdict(list)
        for a in snapshot.long_term_absences:
            if a.status is LongTermAbsenceStatus.APPROVED:
                self._long_term[a.employee_id].append(a)

        self._duty_dates: Dict[int, Set[date]] = defaultdict(set)
        for shift in snapshot.roster_shifts:
            if shift.employee_id is not None and not shift.is_overduty:
                self._duty_dates[shift.employee_id].add(shift.date)

        self._competencies: Dict[int, List[RequiredCompetency]] = defaultdict(list)
        for req in snapshot.required_competencies:
            self._competencies[req.workplace_id].append(req)

        self._booked: Dict[int, Set[int]] = defaultdict(set)
        for a in snapshot.existing_assignments:
            if a.employee_id is not None:
                self._booked[a.employee_id].add(a.weekday)

        self.candidates: List[Employee] = [
            e for e in snapshot.employees if e.is_active and not is_clerical(e)
        ]

    # -----------------------------------------------------------------------
    # Ledger
    # -----------------------------------------------------------------------

    def book(self, employee_id: int, weekday: int) -> None:
        self._booked[employee_id].add(weekday)

    # -----------------------------------------------------------------------
    # Individual checks (True = blocked)
    # -----------------------------------------------------------------------

    def check_forbidden_area(self, slot: Slot, employee: Employee) -> bool:
        rule = self.profile.rule_for(employee.id)
        return bool(rule and slot.workplace.id in rule.forbidden_area_ids)

    def check_same_time(self, slot: Slot, employee: Employee) -> bool:
        return slot.weekday in self._booked.get(employee.id, set())

    def check_absence(self, slot: Slot, employee: Employee) -> bool:
        if not self.profile.absence_block:
            return False
        return any(a.covers(slot.date) for a in self._planned.get(employee.id, []))

    def check_long_term_absence(self, slot: Slot, employee: Employee) -> bool:
        if not self.profile.long_term_absence_block:
            return False
        return any(a.covers(slot.date) for a in self._long_term.get(employee.id, []))

    def check_after_duty(self, slot: Slot, employee: Employee) -> bool:
        if not self.profile.after_duty_block:
            return False
        return (slot.date - timedelta(days=1)) in self._duty_dates.get(employee.id, set())

    def check_role(self, slot: Slot, employee: Employee) -> bool:
        wp = slot.workplace
        return not matches_role_requirements(
            employee, wp.required_role_labels, wp.alternative_role_labels
        )

    def check_skill(self, slot: Slot, employee: Employee) -> bool:
        return not matches_competencies(employee, self._competencies.get(slot.workplace.id, []))

    def check_inactive(self, slot: Slot, employee: Employee) -> bool:
        start, end = employee.inactive_from, employee.inactive_until
        if start is None and end is None:
            return False
        if start is not None and start > slot.date:
            return False
        if end is not None and end < slot.date:
            return False
        return True

    # -----------------------------------------------------------------------
    # Combined
    # -----------------------------------------------------------------------

    def evaluate(self, slot: Slot, employee: Employee) -> Set[str]:
        """Every exclusion code that applies; an empty set means eligible."""
        checks = (
            (rc.FORBIDDEN_AREA,             self.check_forbidden_area),
            (rc.ALREADY_ASSIGNED_SAME_TIME, self.check_same_time),
            (rc.ABSENCE_BLOCKED,            self.check_absence),
            (rc.LONG_TERM_ABSENCE_BLOCKED,  self.check_long_term_absence),
            (rc.AFTER_DUTY_BLOCKED,         self.check_after_duty),
            (rc.MISSING_REQUIRED_ROLE,      self.check_role),
            (rc.MISSING_REQUIRED_SKILL,     self.check_skill),
            (rc.EMPLOYEE_INACTIVE,          self.check_inactive),
        )
        return {code for code, check in checks if check(slot, employee)}
