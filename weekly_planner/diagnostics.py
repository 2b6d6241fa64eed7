"""
diagnostics.py — Diagnostics Aggregator for a weekly planning run

Collects unfilled slots and rule violations and derives the publish gate:

  hardConflicts  = unfilled slots with blocksPublish + hard violations
  softConflicts  = soft violations
  publishAllowed = hardConflicts == 0

Unfilled slots and violations are data, never exceptions.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from weekly_planner import reasons as rc
from weekly_planner.constraints import ConstraintSeverity, ConstraintViolation
from weekly_planner.models import WeekSnapshot
from weekly_planner.rule_profile import RuleProfile
from weekly_planner.slots import Slot, get_week_dates

logger = logging.getLogger(__name__)


@dataclass
class UnfilledSlot:
    slot_id: str
    date: date
    weekday: int
    workplace_id: int
    workplace_name: str
    reason_codes: List[str]
    candidates_blocked_by: List[str] = field(default_factory=list)
    blocks_publish: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slotId": self.slot_id,
            "date": self.date.isoformat(),
            "weekday": self.weekday,
            "workplaceId": self.workplace_id,
            "workplaceName": self.workplace_name,
            "reasonCodes": list(self.reason_codes),
            "candidatesBlockedBy": list(self.candidates_blocked_by),
            "blocksPublish": self.blocks_publish,
        }


class PlanningDiagnostics:

    def __init__(self, existing_assignments: int = 0):
        self.unfilled_slots: List[UnfilledSlot] = []
        self.violations: List[ConstraintViolation] = []
        self.existing_assignments = existing_assignments
        self.generated_assignments = 0

    # -----------------------------------------------------------------------
    # Unfilled slots
    # -----------------------------------------------------------------------

    def _add_unfilled(
        self,
        slot: Slot,
        reason_codes: Iterable[str],
        blocked_by: Iterable[str] = (),
        blocks_publish: bool = True,
    ) -> UnfilledSlot:
        entry = UnfilledSlot(
            slot_id=slot.slot_id,
            date=slot.date,
            weekday=slot.weekday,
            workplace_id=slot.workplace.id,
            workplace_name=slot.workplace.name,
            reason_codes=rc.sort_reason_codes(reason_codes),
            candidates_blocked_by=rc.sort_reason_codes(blocked_by),
            blocks_publish=blocks_publish,
        )
        self.unfilled_slots.append(entry)
        return entry

    def add_locked_empty(self, slot: Slot) -> UnfilledSlot:
        """Deliberately blocked by the planner; reported but not a publish blocker."""
        return self._add_unfilled(slot, [rc.LOCKED_EMPTY], blocks_publish=False)

    def add_no_candidate(self, slot: Slot, blocked_by: Iterable[str]) -> UnfilledSlot:
        entry = self._add_unfilled(slot, [rc.NO_ELIGIBLE_CANDIDATE], blocked_by, blocks_publish=True)
        logger.warning(
            f"{slot.slot_id} ({slot.workplace.name}): no eligible candidate, "
            f"blocked by {entry.candidates_blocked_by or ['(no candidates)']}"
        )
        return entry

    # -----------------------------------------------------------------------
    # Violations
    # -----------------------------------------------------------------------

    def add_violation(
        self,
        code: str,
        message: str,
        hard: bool,
        day: Optional[date] = None,
        workplace_id: Optional[int] = None,
        employee_id: Optional[int] = None,
    ) -> ConstraintViolation:
        violation = ConstraintViolation(
            severity=ConstraintSeverity.HARD if hard else ConstraintSeverity.SOFT,
            code=code,
            message=message,
            date=day.isoformat() if day else None,
            workplace_id=workplace_id,
            employee_id=employee_id,
        )
        self.violations.append(violation)
        return violation

    def check_duty_coverage(self, snapshot: WeekSnapshot, profile: RuleProfile) -> bool:
        """
        Raise NO_DUTY_PLAN_IN_PERIOD when coverage is required and the week has
        no non-overduty roster shift at all. Returns True if covered.
        """
        if not profile.require_duty_plan_coverage:
            return True
        week = set(get_week_dates(snapshot.year, snapshot.week))
        covered = any(s.date in week and not s.is_overduty for s in snapshot.roster_shifts)
        if not covered:
            self.add_violation(
                rc.NO_DUTY_PLAN_IN_PERIOD,
                f"No duty plan shifts found for {snapshot.year}-W{snapshot.week:02d}",
                hard=True,
            )
        return covered

    # -----------------------------------------------------------------------
    # Summary
    # -----------------------------------------------------------------------

    @property
    def hard_conflicts(self) -> int:
        return (
            sum(1 for u in self.unfilled_slots if u.blocks_publish)
            + sum(1 for v in self.violations if v.hard)
        )

    @property
    def soft_conflicts(self) -> int:
        return sum(1 for v in self.violations if not v.hard)

    @property
    def publish_allowed(self) -> bool:
        return self.hard_conflicts == 0

    def stats(self) -> Dict[str, int]:
        return {
            "generatedAssignments": self.generated_assignments,
            "existingAssignments": self.existing_assignments,
            "unfilledSlots": len(self.unfilled_slots),
            "hardConflicts": self.hard_conflicts,
            "softConflicts": self.soft_conflicts,
        }
