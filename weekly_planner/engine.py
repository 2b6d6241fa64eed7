"""
engine.py — Weekly workplace-assignment engine

Pipeline (pure; reads a WeekSnapshot, writes nothing):
  rule profile → slot enumeration → candidate evaluation → score & select
  → diagnostics

Scoring:
  priorityScore = 300 / 200 / 100 for the employee's 1st / 2nd / 3rd
                  priority area, 10 otherwise
  score         = priorityScore - assignedCount * 15
  assignedCount = stored assignments this week + slots won earlier in this run

Ties on score are broken by last name, then first name (accent-insensitive,
case-folded), then employee id, so repeated runs on the same snapshot give
the same plan.

A winner whose priorityScore is the no-match floor is recorded as the soft
violation LOW_PRIORITY_AREA_MATCH.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from weekly_planner import reasons as rc
from weekly_planner.constraints import CandidateEvaluator, ConstraintViolation
from weekly_planner.diagnostics import PlanningDiagnostics, UnfilledSlot
from weekly_planner.models import Employee, WeekSnapshot
from weekly_planner.rule_profile import RuleProfile
from weekly_planner.skills import normalize_value
from weekly_planner.slots import enumerate_slots, planning_workplaces, week_bounds

logger = logging.getLogger(__name__)

PRIORITY_SCORES: Tuple[int, ...] = (300, 200, 100)
NO_MATCH_SCORE = 10
LOAD_PENALTY = 15


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class GeneratedAssignment:
    date: date
    weekday: int
    workplace_id: int
    workplace_name: str
    employee_id: int
    employee_name: str
    score: int
    priority_score: int

    @property
    def slot_key(self) -> Tuple[int, int]:
        return (self.weekday, self.workplace_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "weekday": self.weekday,
            "workplaceId": self.workplace_id,
            "workplaceName": self.workplace_name,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "score": self.score,
            "priorityScore": self.priority_score,
        }


@dataclass
class PlanningResult:
    year: int
    week: int
    date_from: date
    date_to: date
    profile: RuleProfile
    stats: Dict[str, int]
    generated_assignments: List[GeneratedAssignment] = field(default_factory=list)
    unfilled_slots: List[UnfilledSlot] = field(default_factory=list)
    violations: List[ConstraintViolation] = field(default_factory=list)
    publish_allowed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": {
                "year": self.year,
                "week": self.week,
                "from": self.date_from.isoformat(),
                "to": self.date_to.isoformat(),
            },
            "profile": self.profile.to_dict(),
            "stats": dict(self.stats),
            "generatedAssignments": [g.to_dict() for g in self.generated_assignments],
            "unfilledSlots": [u.to_dict() for u in self.unfilled_slots],
            "violations": [v.to_dict() for v in self.violations],
            "publishAllowed": self.publish_allowed,
        }


@dataclass
class ScoredCandidate:
    employee: Employee
    priority_score: int
    assigned_count: int

    @property
    def score(self) -> int:
        return self.priority_score - self.assigned_count * LOAD_PENALTY


# ---------------------------------------------------------------------------
# Scorer & selector
# ---------------------------------------------------------------------------

def priority_score(profile: RuleProfile, employee_id: int, workplace_id: int) -> int:
    rule = profile.rule_for(employee_id)
    rank = rule.priority_rank(workplace_id) if rule else None
    if rank is None or rank >= len(PRIORITY_SCORES):
        return NO_MATCH_SCORE
    return PRIORITY_SCORES[rank]


def tie_break_key(employee: Employee) -> Tuple[str, str, int]:
    return (
        normalize_value(employee.sort_last_name),
        normalize_value(employee.sort_first_name),
        employee.id,
    )


def rank_candidates(candidates: List[ScoredCandidate]) -> List[ScoredCandidate]:
    """Best first: score descending, then the name tie-break."""
    return sorted(candidates, key=lambda c: (-c.score, tie_break_key(c.employee)))


def select_winner(candidates: List[ScoredCandidate]) -> Optional[ScoredCandidate]:
    ranked = rank_candidates(candidates)
    return ranked[0] if ranked else None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def plan_week(snapshot: WeekSnapshot, profile: RuleProfile) -> PlanningResult:
    """
    Compute the best-effort assignment for one week.

    Args:
        snapshot: Inputs for the week (see models.WeekSnapshot).
        profile:  Canonical rule profile (rule_profile.resolve_rule_profile).

    Returns:
        PlanningResult with generated assignments and diagnostics; nothing
        is persisted.
    """
    stored_counts: Counter = Counter(
        a.employee_id for a in snapshot.existing_assignments if a.employee_id is not None
    )
    diagnostics = PlanningDiagnostics(existing_assignments=sum(stored_counts.values()))
    diagnostics.check_duty_coverage(snapshot, profile)

    enumeration = enumerate_slots(snapshot, profile)
    for slot in enumeration.locked_empty:
        diagnostics.add_locked_empty(slot)

    evaluator = CandidateEvaluator(snapshot, profile)
    run_counts: Counter = Counter()
    generated: List[GeneratedAssignment] = []

    for slot in enumeration.open_slots:
        eligible: List[ScoredCandidate] = []
        blocked_by = set()
        for employee in evaluator.candidates:
            exclusions = evaluator.evaluate(slot, employee)
            if exclusions:
                blocked_by |= exclusions
                continue
            eligible.append(ScoredCandidate(
                employee=employee,
                priority_score=priority_score(profile, employee.id, slot.workplace.id),
                assigned_count=stored_counts[employee.id] + run_counts[employee.id],
            ))

        winner = select_winner(eligible)
        if winner is None:
            diagnostics.add_no_candidate(slot, blocked_by)
            continue

        employee = winner.employee
        evaluator.book(employee.id, slot.weekday)
        run_counts[employee.id] += 1
        generated.append(GeneratedAssignment(
            date=slot.date,
            weekday=slot.weekday,
            workplace_id=slot.workplace.id,
            workplace_name=slot.workplace.name,
            employee_id=employee.id,
            employee_name=employee.display_name,
            score=winner.score,
            priority_score=winner.priority_score,
        ))
        logger.debug(
            f"{slot.slot_id} {slot.workplace.name} → {employee.display_name} "
            f"(score={winner.score}, of {len(eligible)} eligible)"
        )

        if winner.priority_score <= NO_MATCH_SCORE:
            diagnostics.add_violation(
                rc.LOW_PRIORITY_AREA_MATCH,
                f"{employee.display_name} assigned to {slot.workplace.name} on "
                f"{slot.date.isoformat()} without a priority match",
                hard=False,
                day=slot.date,
                workplace_id=slot.workplace.id,
                employee_id=employee.id,
            )

    diagnostics.generated_assignments = len(generated)
    _sort_unfilled(diagnostics, snapshot)

    monday, sunday = week_bounds(snapshot.year, snapshot.week)
    result = PlanningResult(
        year=snapshot.year,
        week=snapshot.week,
        date_from=monday,
        date_to=sunday,
        profile=profile,
        stats=diagnostics.stats(),
        generated_assignments=generated,
        unfilled_slots=diagnostics.unfilled_slots,
        violations=diagnostics.violations,
        publish_allowed=diagnostics.publish_allowed,
    )
    logger.info(
        f"Week {snapshot.year}-W{snapshot.week:02d}: {len(generated)} generated, "
        f"{len(result.unfilled_slots)} unfilled, hard={diagnostics.hard_conflicts}, "
        f"soft={diagnostics.soft_conflicts}, publish={'yes' if result.publish_allowed else 'no'}"
    )
    return result


def _sort_unfilled(diagnostics: PlanningDiagnostics, snapshot: WeekSnapshot) -> None:
    """Chronological, then workplace display order."""
    rank = {wp.id: i for i, wp in enumerate(planning_workplaces(snapshot.workplaces))}
    diagnostics.unfilled_slots.sort(key=lambda u: (u.date, rank.get(u.workplace_id, len(rank))))


# ---------------------------------------------------------------------------
# Load summary (used by reports and the dry-run chart)
# ---------------------------------------------------------------------------

def calculate_load(
    result: PlanningResult,
    snapshot: WeekSnapshot,
) -> Dict[str, Dict[str, int]]:
    """
    Per-employee slot counts for the week.

    Returns:
        {employee display name: {"existing": n, "generated": m, "total": n + m}}
    """
    names = {e.id: e.display_name for e in snapshot.employees}
    load: Dict[str, Dict[str, int]] = {}

    def _entry(employee_id: int) -> Dict[str, int]:
        name = names.get(employee_id, f"#{employee_id}")
        return load.setdefault(name, {"existing": 0, "generated": 0, "total": 0})

    for a in snapshot.existing_assignments:
        if a.employee_id is None:
            continue
        entry = _entry(a.employee_id)
        entry["existing"] += 1
        entry["total"] += 1
    for g in result.generated_assignments:
        entry = _entry(g.employee_id)
        entry["generated"] += 1
        entry["total"] += 1
    return load
