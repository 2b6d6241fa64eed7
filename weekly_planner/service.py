"""
service.py — Weekly plan operations

  preview(year, week, rule_profile=None) → PlanningResult       (pure)
  apply(year, week, rule_profile=None)   → ApplyOutcome          (persists)

plus the plan-management calls used by editors: get_or_create_plan,
set_status, set_locked_weekdays and manual assignment CRUD.

Inputs come from a snapshot source, any object with
    load_snapshot(year, week) -> WeekSnapshot
(config.CsvSnapshotSource, api_client.ApiSnapshotSource). The service adds
the stored assignments and locked weekdays of the plan before planning.

The default rule profile is passed in by the caller; the service keeps no
process-wide profile.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from weekly_planner.engine import PlanningResult, plan_week
from weekly_planner.models import (
    AssignmentType,
    WeeklyPlan,
    WeeklyPlanAssignment,
    WeekSnapshot,
)
from weekly_planner.plan_state import (
    ValidationError,
    ensure_apply_allowed,
    normalize_locked_weekdays,
    parse_status,
    transition,
)
from weekly_planner.rule_profile import RuleProfile, resolve_rule_profile
from weekly_planner.slots import covered_slot_keys, validate_weekday_settings, week_bounds
from weekly_planner.storage import NotFoundError, PlanStore

logger = logging.getLogger(__name__)


def _check_iso_week(year: int, week: int) -> None:
    try:
        week_bounds(year, week)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid ISO week {year}-W{week}: {e}") from e


@dataclass
class ApplyOutcome:
    plan: WeeklyPlan
    result: PlanningResult
    applied_count: int
    inserted: List[WeeklyPlanAssignment]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "result": self.result.to_dict(),
            "appliedCount": self.applied_count,
        }


class WeeklyPlanService:

    def __init__(
        self,
        store: PlanStore,
        snapshot_source: Any,
        default_profile: Optional[RuleProfile] = None,
    ):
        self.store = store
        self.snapshot_source = snapshot_source
        self.default_profile = default_profile or RuleProfile()

    # -----------------------------------------------------------------------
    # Snapshot
    # -----------------------------------------------------------------------

    def build_snapshot(self, year: int, week: int) -> WeekSnapshot:
        snapshot = self.snapshot_source.load_snapshot(year, week)
        validate_weekday_settings(snapshot.weekday_settings)
        plan = self.store.find_plan(year, week)
        if plan is not None:
            snapshot.existing_assignments = self.store.list_assignments(plan.id)
            snapshot.locked_weekdays = list(plan.locked_weekdays)
        else:
            snapshot.existing_assignments = []
            snapshot.locked_weekdays = []
        return snapshot

    def resolve_profile(self, rule_profile: Any = None) -> RuleProfile:
        return resolve_rule_profile(rule_profile, self.default_profile)

    # -----------------------------------------------------------------------
    # Preview / apply
    # -----------------------------------------------------------------------

    def preview(self, year: int, week: int, rule_profile: Any = None) -> PlanningResult:
        """Plan the week against current stored state; writes nothing."""
        _check_iso_week(year, week)
        profile = self.resolve_profile(rule_profile)
        return plan_week(self.build_snapshot(year, week), profile)

    def apply(self, year: int, week: int, rule_profile: Any = None) -> ApplyOutcome:
        """
        Plan the week and persist the generated assignments.

        Refuses Released plans, both before and after taking the plan's lock.
        Status changes take the same lock, so a plan released mid-run is
        either seen as released here or released after the insert. Generated
        rows for slots that became covered since the snapshot are dropped,
        and the remainder is inserted as one batch.
        """
        _check_iso_week(year, week)
        plan, _ = self.store.get_or_create_plan(year, week)
        self._ensure_apply_allowed(plan, year, week)

        profile = self.resolve_profile(rule_profile)
        with self.store.plan_lock(plan.id):
            plan = self.store.get_plan(plan.id)
            self._ensure_apply_allowed(plan, year, week)
            result = plan_week(self.build_snapshot(year, week), profile)

            covered = covered_slot_keys(self.store.list_assignments(plan.id))
            rows = [
                WeeklyPlanAssignment(
                    weekly_plan_id=plan.id,
                    workplace_id=g.workplace_id,
                    weekday=g.weekday,
                    employee_id=g.employee_id,
                    role_label=None,
                    note=None,
                    is_blocked=False,
                    assignment_type=AssignmentType.PLAN,
                )
                for g in result.generated_assignments
                if g.slot_key not in covered
            ]
            skipped = len(result.generated_assignments) - len(rows)
            if skipped:
                logger.warning(f"Plan {plan.id}: {skipped} generated slots already covered, skipped")
            inserted = self.store.insert_generated(plan.id, rows)

        logger.info(f"Applied {len(inserted)} assignments to plan {plan.id} ({year}-W{week:02d})")
        return ApplyOutcome(plan=plan, result=result, applied_count=len(inserted), inserted=inserted)

    @staticmethod
    def _ensure_apply_allowed(plan: WeeklyPlan, year: int, week: int) -> None:
        try:
            ensure_apply_allowed(plan)
        except ValidationError:
            logger.warning(f"Apply refused for {year}-W{week:02d}: plan {plan.id} is released")
            raise

    # -----------------------------------------------------------------------
    # Plan management
    # -----------------------------------------------------------------------

    def get_or_create_plan(self, year: int, week: int) -> WeeklyPlan:
        _check_iso_week(year, week)
        plan, _ = self.store.get_or_create_plan(year, week)
        return plan

    def set_status(self, plan_id: int, target: Any) -> WeeklyPlan:
        status = parse_status(target)
        with self.store.plan_lock(plan_id):
            plan = self.store.get_plan(plan_id)
            transition(plan, status)
            return self.store.save_plan(plan)

    def set_locked_weekdays(self, plan_id: int, weekdays: Any) -> WeeklyPlan:
        locked = normalize_locked_weekdays(weekdays)
        with self.store.plan_lock(plan_id):
            plan = self.store.get_plan(plan_id)
            plan.locked_weekdays = locked
            return self.store.save_plan(plan)

    def _check_references(
        self,
        plan: WeeklyPlan,
        workplace_id: int,
        weekday: int,
        employee_id: Optional[int],
    ) -> None:
        if isinstance(weekday, bool) or not isinstance(weekday, int) or not 1 <= weekday <= 7:
            raise ValidationError(f"Invalid weekday: {weekday!r} (expected 1..7)")
        snapshot = self.snapshot_source.load_snapshot(plan.year, plan.week_number)
        if workplace_id not in {w.id for w in snapshot.workplaces}:
            raise NotFoundError(f"Workplace {workplace_id} not found")
        if employee_id is not None and employee_id not in {e.id for e in snapshot.employees}:
            raise NotFoundError(f"Employee {employee_id} not found")

    def add_assignment(
        self,
        plan_id: int,
        workplace_id: int,
        weekday: int,
        employee_id: Optional[int] = None,
        role_label: Optional[str] = None,
        note: Optional[str] = None,
        is_blocked: bool = False,
        assignment_type: Any = AssignmentType.PLAN,
    ) -> WeeklyPlanAssignment:
        """Manual edit: an employee, a note/role label, or a block for one slot."""
        plan = self.store.get_plan(plan_id)
        self._check_references(plan, workplace_id, weekday, employee_id)
        return self.store.add_assignment(WeeklyPlanAssignment(
            weekly_plan_id=plan.id,
            workplace_id=workplace_id,
            weekday=weekday,
            employee_id=employee_id,
            role_label=role_label,
            note=note,
            is_blocked=is_blocked,
            assignment_type=AssignmentType(assignment_type),
        ))

    def update_assignment(self, assignment_id: int, **changes: Any) -> WeeklyPlanAssignment:
        current = self.store.get_assignment(assignment_id)
        plan = self.store.get_plan(current.weekly_plan_id)
        if "assignment_type" in changes:
            changes["assignment_type"] = AssignmentType(changes["assignment_type"])
        self._check_references(
            plan,
            changes.get("workplace_id", current.workplace_id),
            changes.get("weekday", current.weekday),
            changes.get("employee_id", current.employee_id),
        )
        return self.store.update_assignment(assignment_id, **changes)

    def delete_assignment(self, assignment_id: int) -> None:
        self.store.delete_assignment(assignment_id)
