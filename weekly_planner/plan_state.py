"""
plan_state.py — Weekly plan lifecycle

  Draft    → Preview, Released
  Preview  → Released, Draft
  Released → Draft

Anything else is a ValidationError naming the allowed targets. Automatic
generation (apply) is refused on Released plans; a plan must be moved back
to Draft before it can be regenerated.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List

from weekly_planner.models import PlanStatus, WeeklyPlan

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Caller-visible rejection of a request (4xx-equivalent)."""


ALLOWED_TRANSITIONS: Dict[PlanStatus, FrozenSet[PlanStatus]] = {
    PlanStatus.DRAFT:    frozenset({PlanStatus.PREVIEW, PlanStatus.RELEASED}),
    PlanStatus.PREVIEW:  frozenset({PlanStatus.RELEASED, PlanStatus.DRAFT}),
    PlanStatus.RELEASED: frozenset({PlanStatus.DRAFT}),
}

# Labels of the source system's status enum
STATUS_ALIASES: Dict[str, PlanStatus] = {
    "entwurf": PlanStatus.DRAFT,
    "vorläufig": PlanStatus.PREVIEW,
    "vorlaeufig": PlanStatus.PREVIEW,
    "freigegeben": PlanStatus.RELEASED,
}


def parse_status(value: Any) -> PlanStatus:
    if isinstance(value, PlanStatus):
        return value
    key = str(value or "").strip().lower()
    for status in PlanStatus:
        if status.value == key or status.name.lower() == key:
            return status
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    raise ValidationError(f"Unknown plan status: {value!r}")


def allowed_targets(status: PlanStatus) -> List[PlanStatus]:
    order = list(PlanStatus)
    return sorted(ALLOWED_TRANSITIONS[status], key=order.index)


def can_transition(current: PlanStatus, target: PlanStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(plan: WeeklyPlan, target: Any) -> WeeklyPlan:
    """Move plan to target status in place, or raise ValidationError."""
    target_status = parse_status(target)
    if not can_transition(plan.status, target_status):
        allowed = ", ".join(s.value for s in allowed_targets(plan.status))
        raise ValidationError(
            f"Plan {plan.year}-W{plan.week_number:02d}: cannot change status from "
            f"{plan.status.value} to {target_status.value}; allowed: {allowed}"
        )
    logger.info(
        f"Plan {plan.year}-W{plan.week_number:02d}: {plan.status.value} → {target_status.value}"
    )
    plan.status = target_status
    return plan


def ensure_apply_allowed(plan: WeeklyPlan) -> None:
    if plan.status is PlanStatus.RELEASED:
        raise ValidationError(
            f"Plan {plan.year}-W{plan.week_number:02d} is released; "
            f"set it back to draft before generating assignments"
        )


def normalize_locked_weekdays(raw: Iterable[Any]) -> List[int]:
    """Sorted, de-duplicated ISO weekdays; anything but integers 1..7 is rejected."""
    if raw is None or isinstance(raw, (str, bytes)) or not hasattr(raw, "__iter__"):
        raise ValidationError(f"Locked weekdays must be a list of integers 1..7, got {raw!r}")
    days = set()
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 7:
            raise ValidationError(f"Invalid locked weekday: {value!r} (expected 1..7)")
        days.add(value)
    return sorted(days)
