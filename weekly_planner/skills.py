"""
skills.py — Role and competency matching for workplace eligibility

Functions:
  - Map each employee's role label to an explicit RoleCategory
  - Derive the role keys that workplaces reference in their required /
    alternative role-label lists
  - Check AND / OR competency requirements of a workplace
  - Audit helpers: qualified staff per workplace, coverage warnings

Role keys used by workplace configuration:
  primararzt, facharzt, assistenzarzt, op_assistenz, sekretaerin
"""

import unicodedata
from enum import Enum
from typing import Dict, List, Optional, Sequence

from weekly_planner.models import CompetencyRelation, Employee, RequiredCompetency, Workplace


class RoleCategory(Enum):
    CHIEF = "chief"
    SENIOR_PHYSICIAN = "senior_physician"
    SPECIALIST = "specialist"
    RESIDENT = "resident"
    INTERN = "intern"
    STUDENT = "student"
    OR_ASSISTANT = "or_assistant"
    CLERICAL = "clerical"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Role label → category (keys are normalized labels)
# ---------------------------------------------------------------------------
ROLE_CATEGORY_BY_LABEL: Dict[str, RoleCategory] = {
    "primararzt":           RoleCategory.CHIEF,
    "primararztin":         RoleCategory.CHIEF,
    "1. oberarzt":          RoleCategory.SENIOR_PHYSICIAN,
    "funktionsoberarzt":    RoleCategory.SENIOR_PHYSICIAN,
    "ausbildungsoberarzt":  RoleCategory.SENIOR_PHYSICIAN,
    "oberarzt":             RoleCategory.SENIOR_PHYSICIAN,
    "oberarztin":           RoleCategory.SENIOR_PHYSICIAN,
    "facharzt":             RoleCategory.SPECIALIST,
    "facharztin":           RoleCategory.SPECIALIST,
    "assistenzarzt":        RoleCategory.RESIDENT,
    "assistenzarztin":      RoleCategory.RESIDENT,
    "turnusarzt":           RoleCategory.INTERN,
    "turnusarztin":         RoleCategory.INTERN,
    "student (kpj)":        RoleCategory.STUDENT,
    "student (famulant)":   RoleCategory.STUDENT,
    "op-assistenz":         RoleCategory.OR_ASSISTANT,
    "sekretariat":          RoleCategory.CLERICAL,
    # English labels used by imported rosters
    "chief physician":      RoleCategory.CHIEF,
    "senior physician":     RoleCategory.SENIOR_PHYSICIAN,
    "specialist":           RoleCategory.SPECIALIST,
    "resident":             RoleCategory.RESIDENT,
    "intern":               RoleCategory.INTERN,
    "student":              RoleCategory.STUDENT,
    "or assistant":         RoleCategory.OR_ASSISTANT,
    "secretary":            RoleCategory.CLERICAL,
}

ROLE_KEYS_BY_CATEGORY: Dict[RoleCategory, List[str]] = {
    RoleCategory.CHIEF:            ["primararzt"],
    RoleCategory.SENIOR_PHYSICIAN: ["facharzt"],
    RoleCategory.SPECIALIST:       ["facharzt"],
    RoleCategory.RESIDENT:         ["assistenzarzt"],
    RoleCategory.INTERN:           ["assistenzarzt"],
    RoleCategory.STUDENT:          ["assistenzarzt"],
    RoleCategory.OR_ASSISTANT:     ["op_assistenz"],
    RoleCategory.CLERICAL:         ["sekretaerin"],
    RoleCategory.OTHER:            [],
}


def normalize_value(value: Optional[str]) -> str:
    """Accent-stripped, case-folded, trimmed form used for all label comparisons."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold().strip()


def get_role_category(role: Optional[str]) -> RoleCategory:
    return ROLE_CATEGORY_BY_LABEL.get(normalize_value(role), RoleCategory.OTHER)


def is_clerical(employee: Employee) -> bool:
    return get_role_category(employee.role) is RoleCategory.CLERICAL


def get_role_keys(employee: Employee) -> List[str]:
    if employee.role_keys_override is not None:
        return [normalize_value(k) for k in employee.role_keys_override if normalize_value(k)]
    return list(ROLE_KEYS_BY_CATEGORY[get_role_category(employee.role)])


# ---------------------------------------------------------------------------
# Requirement checks
# ---------------------------------------------------------------------------

def matches_role_requirements(
    employee: Employee,
    required: Sequence[str] = (),
    alternative: Sequence[str] = (),
) -> bool:
    """
    All required keys must be held; if alternatives are listed, at least one
    must be held. Empty lists impose nothing.
    """
    keys = set(get_role_keys(employee))
    required_keys = [normalize_value(k) for k in required if normalize_value(k)]
    alternative_keys = [normalize_value(k) for k in alternative if normalize_value(k)]
    if required_keys and not all(k in keys for k in required_keys):
        return False
    if alternative_keys and not any(k in keys for k in alternative_keys):
        return False
    return True


def matches_competencies(
    employee: Employee,
    requirements: Sequence[RequiredCompetency] = (),
) -> bool:
    """
    AND requirements must all be held, OR requirements need at least one.
    A requirement is held when the employee lists its code or its name.
    """
    if not requirements:
        return True
    held = {normalize_value(c) for c in employee.competencies if normalize_value(c)}

    def _has(req: RequiredCompetency) -> bool:
        return bool(
            (req.code and normalize_value(req.code) in held)
            or (req.name and normalize_value(req.name) in held)
        )

    and_reqs = [r for r in requirements if r.relation is CompetencyRelation.AND]
    or_reqs = [r for r in requirements if r.relation is CompetencyRelation.OR]
    if and_reqs and not all(_has(r) for r in and_reqs):
        return False
    if or_reqs and not any(_has(r) for r in or_reqs):
        return False
    return True


# ---------------------------------------------------------------------------
# Audit helpers
# ---------------------------------------------------------------------------

def get_qualified_staff(
    employees: List[Employee],
    workplace: Workplace,
    requirements: Sequence[RequiredCompetency] = (),
) -> List[Employee]:
    """Active, non-clerical employees meeting the workplace's role and competency rules."""
    return [
        e for e in employees
        if e.is_active
        and not is_clerical(e)
        and matches_role_requirements(e, workplace.required_role_labels, workplace.alternative_role_labels)
        and matches_competencies(e, requirements)
    ]


def validate_workplace_coverage(
    employees: List[Employee],
    workplaces: List[Workplace],
    requirements: Sequence[RequiredCompetency] = (),
) -> List[str]:
    """
    Warn about weekly-plan workplaces nobody on staff could ever fill.

    Returns:
        List of warning strings (empty = all OK)
    """
    warnings = []
    for wp in workplaces:
        if not (wp.is_active and wp.use_in_weekly_plan):
            continue
        reqs = [r for r in requirements if r.workplace_id == wp.id]
        qualified = get_qualified_staff(employees, wp, reqs)
        if not qualified:
            warnings.append(
                f"Workplace '{wp.name}' (id={wp.id}) has no qualified employee "
                f"(roles={wp.required_role_labels or wp.alternative_role_labels or '-'}, "
                f"competencies={len(reqs)})"
            )
    return warnings
