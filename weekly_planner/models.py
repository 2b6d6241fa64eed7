"""
models.py — Entities for the weekly workplace-assignment engine

Read-only snapshot types (workplaces, weekday settings, employees, absences,
roster shifts) plus the two stored entities the engine writes to:
WeeklyPlan and WeeklyPlanAssignment.

Weekdays are ISO numbers throughout: 1 = Monday ... 7 = Sunday.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

SlotKey = Tuple[int, int]   # (weekday, workplace_id)


class PlanStatus(Enum):
    DRAFT = "draft"
    PREVIEW = "preview"
    RELEASED = "released"


class Recurrence(Enum):
    WEEKLY = "weekly"
    FIRST_AND_THIRD = "monthly_first_third"
    FIRST_ONLY = "monthly_once"


class CompetencyRelation(Enum):
    AND = "AND"
    OR = "OR"


class AssignmentType(Enum):
    PLAN = "Plan"
    TIME_OFF_IN_LIEU = "Zeitausgleich"
    TRAINING = "Fortbildung"


class PlannedAbsenceStatus(Enum):
    PLANNED = "planned"
    APPROVED = "approved"
    REJECTED = "rejected"


class LongTermAbsenceStatus(Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


OVERDUTY_SERVICE_TYPE = "overduty"


# ---------------------------------------------------------------------------
# Workplaces
# ---------------------------------------------------------------------------

@dataclass
class WeekdaySetting:
    workplace_id: int
    weekday: int
    recurrence: Recurrence = Recurrence.WEEKLY
    is_closed: bool = False
    closed_reason: Optional[str] = None
    usage_label: Optional[str] = None
    time_from: Optional[str] = None
    time_to: Optional[str] = None


@dataclass
class RequiredCompetency:
    workplace_id: int
    competency_id: int
    relation: CompetencyRelation = CompetencyRelation.AND
    code: Optional[str] = None
    name: Optional[str] = None


@dataclass
class Workplace:
    id: int
    name: str
    use_in_weekly_plan: bool = True
    is_active: bool = True
    sort_order: int = 0
    required_role_labels: List[str] = field(default_factory=list)
    alternative_role_labels: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------

@dataclass
class Employee:
    id: int
    name: str
    role: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    competencies: List[str] = field(default_factory=list)
    is_active: bool = True
    inactive_from: Optional[date] = None
    inactive_until: Optional[date] = None
    # Replaces the role-derived keys used for required/alternative role labels.
    role_keys_override: Optional[List[str]] = None

    @property
    def sort_last_name(self) -> str:
        if self.last_name:
            return self.last_name
        parts = self.name.split()
        return parts[-1] if parts else ""

    @property
    def sort_first_name(self) -> str:
        if self.first_name:
            return self.first_name
        parts = self.name.split()
        return " ".join(parts[:-1]) if len(parts) > 1 else ""

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.name


@dataclass
class PlannedAbsence:
    employee_id: int
    start_date: date
    end_date: date
    status: PlannedAbsenceStatus = PlannedAbsenceStatus.PLANNED
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass
class LongTermAbsence:
    employee_id: int
    start_date: date
    end_date: date
    status: LongTermAbsenceStatus = LongTermAbsenceStatus.DRAFT
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass
class RosterShift:
    date: date
    service_type: str
    employee_id: Optional[int] = None

    @property
    def is_overduty(self) -> bool:
        return self.service_type.strip().lower() == OVERDUTY_SERVICE_TYPE


# ---------------------------------------------------------------------------
# Stored weekly plan
# ---------------------------------------------------------------------------

@dataclass
class WeeklyPlanAssignment:
    weekly_plan_id: int
    workplace_id: int
    weekday: int
    employee_id: Optional[int] = None
    role_label: Optional[str] = None
    note: Optional[str] = None
    is_blocked: bool = False
    assignment_type: AssignmentType = AssignmentType.PLAN
    id: Optional[int] = None

    @property
    def slot_key(self) -> SlotKey:
        return (self.weekday, self.workplace_id)

    @property
    def is_block_without_employee(self) -> bool:
        return self.is_blocked and self.employee_id is None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "weeklyPlanId": self.weekly_plan_id,
            "workplaceId": self.workplace_id,
            "weekday": self.weekday,
            "employeeId": self.employee_id,
            "roleLabel": self.role_label,
            "note": self.note,
            "isBlocked": self.is_blocked,
            "assignmentType": self.assignment_type.value,
        }


@dataclass
class WeeklyPlan:
    id: int
    year: int
    week_number: int
    status: PlanStatus = PlanStatus.DRAFT
    locked_weekdays: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "year": self.year,
            "weekNumber": self.week_number,
            "status": self.status.value,
            "lockedWeekdays": list(self.locked_weekdays),
        }


# ---------------------------------------------------------------------------
# Snapshot handed to the engine
# ---------------------------------------------------------------------------

@dataclass
class WeekSnapshot:
    """
    Everything the engine reads for one ISO week, loaded in one batch.

    roster_shifts must cover the week plus the day before Monday so the
    after-duty rule can see a Sunday duty of the previous week.
    """
    year: int
    week: int
    workplaces: List[Workplace] = field(default_factory=list)
    weekday_settings: List[WeekdaySetting] = field(default_factory=list)
    required_competencies: List[RequiredCompetency] = field(default_factory=list)
    employees: List[Employee] = field(default_factory=list)
    planned_absences: List[PlannedAbsence] = field(default_factory=list)
    long_term_absences: List[LongTermAbsence] = field(default_factory=list)
    roster_shifts: List[RosterShift] = field(default_factory=list)
    existing_assignments: List[WeeklyPlanAssignment] = field(default_factory=list)
    locked_weekdays: List[int] = field(default_factory=list)
