"""
reasons.py — Reason codes reported by the weekly planning engine

Each code has a severity, a short title, a description and an optional hint
for the planner. REASON_ORDER is the display order used wherever a set of
codes is serialized.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

NO_DUTY_PLAN_IN_PERIOD = "NO_DUTY_PLAN_IN_PERIOD"
LOCKED_EMPTY = "LOCKED_EMPTY"
ABSENCE_BLOCKED = "ABSENCE_BLOCKED"
LONG_TERM_ABSENCE_BLOCKED = "LONG_TERM_ABSENCE_BLOCKED"
AFTER_DUTY_BLOCKED = "AFTER_DUTY_BLOCKED"
FORBIDDEN_AREA = "FORBIDDEN_AREA"
MISSING_REQUIRED_ROLE = "MISSING_REQUIRED_ROLE"
MISSING_REQUIRED_SKILL = "MISSING_REQUIRED_SKILL"
EMPLOYEE_INACTIVE = "EMPLOYEE_INACTIVE"
ALREADY_ASSIGNED_SAME_TIME = "ALREADY_ASSIGNED_SAME_TIME"
NO_ELIGIBLE_CANDIDATE = "NO_ELIGIBLE_CANDIDATE"
LOW_PRIORITY_AREA_MATCH = "LOW_PRIORITY_AREA_MATCH"


@dataclass(frozen=True)
class ReasonMeta:
    severity: str          # "hard" | "soft"
    title: str
    description: str
    action_hint: Optional[str] = None


REASON_MAP: Dict[str, ReasonMeta] = {
    NO_DUTY_PLAN_IN_PERIOD: ReasonMeta(
        "hard", "No duty plan in period",
        "There is no duty plan for the selected week.",
        "Create or release the duty plan for this period first.",
    ),
    LOCKED_EMPTY: ReasonMeta(
        "hard", "Locked empty",
        "The slot was deliberately locked as empty.",
        "Remove the block if the slot should be staffed after all.",
    ),
    ABSENCE_BLOCKED: ReasonMeta(
        "hard", "Absence", "The person is absent on this day.",
    ),
    LONG_TERM_ABSENCE_BLOCKED: ReasonMeta(
        "hard", "Long-term absence", "An approved long-term absence blocks the assignment.",
    ),
    AFTER_DUTY_BLOCKED: ReasonMeta(
        "hard", "After-duty rule", "No assignment is allowed on the day after a duty shift.",
    ),
    FORBIDDEN_AREA: ReasonMeta(
        "hard", "Area forbidden", "This area is forbidden for the person.",
    ),
    MISSING_REQUIRED_ROLE: ReasonMeta(
        "hard", "Required role missing", "The required role staffing cannot be met.",
    ),
    MISSING_REQUIRED_SKILL: ReasonMeta(
        "hard", "Required qualification missing", "A required qualification is missing.",
    ),
    EMPLOYEE_INACTIVE: ReasonMeta(
        "hard", "Inactive", "The person is not active in this period.",
    ),
    ALREADY_ASSIGNED_SAME_TIME: ReasonMeta(
        "hard", "Time conflict", "The person is already assigned at this time.",
        "Enter a deliberate double assignment manually only.",
    ),
    NO_ELIGIBLE_CANDIDATE: ReasonMeta(
        "hard", "No eligible candidate", "No suitable available person was found.",
        "Check a manual assignment or relax the rules.",
    ),
    LOW_PRIORITY_AREA_MATCH: ReasonMeta(
        "soft", "Low priority", "Assigned to an area the person did not prioritize.",
    ),
}

REASON_ORDER: List[str] = [
    NO_DUTY_PLAN_IN_PERIOD,
    LOCKED_EMPTY,
    ABSENCE_BLOCKED,
    LONG_TERM_ABSENCE_BLOCKED,
    AFTER_DUTY_BLOCKED,
    FORBIDDEN_AREA,
    MISSING_REQUIRED_ROLE,
    MISSING_REQUIRED_SKILL,
    EMPLOYEE_INACTIVE,
    ALREADY_ASSIGNED_SAME_TIME,
    NO_ELIGIBLE_CANDIDATE,
    LOW_PRIORITY_AREA_MATCH,
]


def _fallback_title(code: str) -> str:
    return " ".join(part.capitalize() for part in code.split("_"))


def get_reason_meta(code: str) -> ReasonMeta:
    """Metadata for a code; unknown codes are treated as hard."""
    return REASON_MAP.get(code) or ReasonMeta("hard", _fallback_title(code), code)


def get_reason_label(code: str) -> str:
    return get_reason_meta(code).title


def sort_reason_codes(codes: Iterable[str]) -> List[str]:
    """De-duplicate and order codes by REASON_ORDER; unknown codes go last, alphabetically."""
    rank = {code: i for i, code in enumerate(REASON_ORDER)}
    unique = set(codes)
    return sorted(unique, key=lambda c: (rank.get(c, len(rank)), c))
