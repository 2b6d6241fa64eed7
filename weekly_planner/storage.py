"""
storage.py — Weekly plan store

Holds WeeklyPlan and WeeklyPlanAssignment records, optionally persisted to a
JSON file (config/weekly_plans.json by default).

Guarantees used by the apply step:
  - plan_lock(plan_id) serializes apply runs for one plan
  - insert_generated() is all-or-nothing and refuses any row whose
    (plan, weekday, workplace) slot already holds an employee or a block
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from weekly_planner.models import (
    AssignmentType,
    PlanStatus,
    WeeklyPlan,
    WeeklyPlanAssignment,
)
from weekly_planner.slots import covered_slot_keys

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Referenced plan, assignment, workplace or employee does not exist."""


class SlotConflictError(ValueError):
    """A generated row would land in a slot that is already covered."""


_EDITABLE_FIELDS = ("workplace_id", "weekday", "employee_id", "role_label", "note", "is_blocked", "assignment_type")


class PlanStore:

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._plans: Dict[int, WeeklyPlan] = {}
        self._assignments: Dict[int, WeeklyPlanAssignment] = {}
        self._next_plan_id = 1
        self._next_assignment_id = 1
        self._mutex = threading.RLock()
        self._plan_locks: Dict[int, threading.Lock] = {}
        if self.path and self.path.exists():
            self._load()

    # -----------------------------------------------------------------------
    # Plans
    # -----------------------------------------------------------------------

    def get_plan(self, plan_id: int) -> WeeklyPlan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise NotFoundError(f"Weekly plan {plan_id} not found")
        return plan

    def find_plan(self, year: int, week: int) -> Optional[WeeklyPlan]:
        for plan in self._plans.values():
            if plan.year == year and plan.week_number == week:
                return plan
        return None

    def get_or_create_plan(self, year: int, week: int) -> Tuple[WeeklyPlan, bool]:
        with self._mutex:
            plan = self.find_plan(year, week)
            if plan is not None:
                return plan, False
            plan = WeeklyPlan(id=self._next_plan_id, year=year, week_number=week)
            self._next_plan_id += 1
            self._plans[plan.id] = plan
            self._persist()
            logger.info(f"Created weekly plan {plan.id} for {year}-W{week:02d}")
            return plan, True

    def save_plan(self, plan: WeeklyPlan) -> WeeklyPlan:
        with self._mutex:
            self.get_plan(plan.id)
            self._plans[plan.id] = plan
            self._persist()
            return plan

    @contextmanager
    def plan_lock(self, plan_id: int) -> Iterator[None]:
        with self._mutex:
            lock = self._plan_locks.setdefault(plan_id, threading.Lock())
        with lock:
            yield

    # -----------------------------------------------------------------------
    # Assignments
    # -----------------------------------------------------------------------

    def list_assignments(self, plan_id: int) -> List[WeeklyPlanAssignment]:
        return sorted(
            (a for a in self._assignments.values() if a.weekly_plan_id == plan_id),
            key=lambda a: a.id,
        )

    def get_assignment(self, assignment_id: int) -> WeeklyPlanAssignment:
        assignment = self._assignments.get(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        return assignment

    def _insert(self, assignment: WeeklyPlanAssignment) -> WeeklyPlanAssignment:
        assignment.id = self._next_assignment_id
        self._next_assignment_id += 1
        self._assignments[assignment.id] = assignment
        return assignment

    def add_assignment(self, assignment: WeeklyPlanAssignment) -> WeeklyPlanAssignment:
        """Manual edit path; several rows may share a slot (e.g. block + person)."""
        with self._mutex:
            self.get_plan(assignment.weekly_plan_id)
            self._insert(assignment)
            self._persist()
            return assignment

    def update_assignment(self, assignment_id: int, **changes: Any) -> WeeklyPlanAssignment:
        with self._mutex:
            assignment = self.get_assignment(assignment_id)
            unknown = set(changes) - set(_EDITABLE_FIELDS)
            if unknown:
                raise ValueError(f"Cannot update assignment fields: {sorted(unknown)}")
            for name, value in changes.items():
                setattr(assignment, name, value)
            self._persist()
            return assignment

    def delete_assignment(self, assignment_id: int) -> None:
        with self._mutex:
            self.get_assignment(assignment_id)
            del self._assignments[assignment_id]
            self._persist()

    def insert_generated(
        self,
        plan_id: int,
        rows: List[WeeklyPlanAssignment],
    ) -> List[WeeklyPlanAssignment]:
        """
        Insert engine output as one batch. Every row is checked before any is
        written; a single conflict rejects the whole batch.
        """
        with self._mutex:
            self.get_plan(plan_id)
            taken = covered_slot_keys(self.list_assignments(plan_id))
            for row in rows:
                if row.weekly_plan_id != plan_id:
                    raise ValueError(f"Row for plan {row.weekly_plan_id} in batch for plan {plan_id}")
                if row.employee_id is None or row.is_blocked or row.note:
                    raise ValueError(f"Generated rows must carry an employee and no block/note: {row}")
                if row.slot_key in taken:
                    raise SlotConflictError(
                        f"Plan {plan_id}: slot weekday={row.weekday} workplace={row.workplace_id} "
                        f"is already covered"
                    )
                taken.add(row.slot_key)
            for row in rows:
                self._insert(row)
            self._persist()
            return rows

    # -----------------------------------------------------------------------
    # JSON persistence
    # -----------------------------------------------------------------------

    def _persist(self) -> None:
        if not self.path:
            return
        data = {
            "plans": [p.to_dict() for p in sorted(self._plans.values(), key=lambda p: p.id)],
            "assignments": [a.to_dict() for a in sorted(self._assignments.values(), key=lambda a: a.id)],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def _load(self) -> None:
        with open(self.path) as f:
            data = json.load(f)
        for raw in data.get("plans", []):
            plan = WeeklyPlan(
                id=int(raw["id"]),
                year=int(raw["year"]),
                week_number=int(raw["weekNumber"]),
                status=PlanStatus(raw.get("status", PlanStatus.DRAFT.value)),
                locked_weekdays=[int(d) for d in raw.get("lockedWeekdays", [])],
            )
            self._plans[plan.id] = plan
        for raw in data.get("assignments", []):
            assignment = WeeklyPlanAssignment(
                id=int(raw["id"]),
                weekly_plan_id=int(raw["weeklyPlanId"]),
                workplace_id=int(raw["workplaceId"]),
                weekday=int(raw["weekday"]),
                employee_id=raw.get("employeeId"),
                role_label=raw.get("roleLabel"),
                note=raw.get("note"),
                is_blocked=bool(raw.get("isBlocked", False)),
                assignment_type=AssignmentType(raw.get("assignmentType", AssignmentType.PLAN.value)),
            )
            self._assignments[assignment.id] = assignment
        self._next_plan_id = max(self._plans, default=0) + 1
        self._next_assignment_id = max(self._assignments, default=0) + 1
        logger.info(
            f"Loaded {len(self._plans)} weekly plans, {len(self._assignments)} assignments from {self.path}"
        )
