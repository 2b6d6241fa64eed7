"""
rule_profile.py — Rule Profile Resolver

Turns a planner-supplied rule profile (usually loosely-typed JSON from a
request body) and the stored default profile into one canonical RuleProfile.

Resolution per field:
  hard rules      candidate flag → fallback flag → True (blocking)
  employee rules  candidate list → fallback list → []

Employee rule lists keep only positive integer ids, are de-duplicated in
first-seen order, and priority lists are capped at MAX_PRIORITY_AREAS.
Malformed input never raises; it degrades to the defaults above.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

MAX_PRIORITY_AREAS = 3

# canonical attribute → accepted input keys (JSON camelCase first)
HARD_RULE_KEYS: Dict[str, tuple] = {
    "after_duty_block":           ("afterDutyBlock", "after_duty_block"),
    "absence_block":              ("absenceBlock", "absence_block"),
    "long_term_absence_block":    ("longTermAbsenceBlock", "long_term_absence_block"),
    "room_closed_block":          ("roomClosedBlock", "room_closed_block"),
    "require_duty_plan_coverage": ("requireDutyPlanCoverage", "require_duty_plan_coverage"),
}


@dataclass(frozen=True)
class EmployeeAreaRule:
    employee_id: int
    priority_area_ids: tuple = ()
    forbidden_area_ids: tuple = ()

    def priority_rank(self, workplace_id: int) -> Optional[int]:
        """0-based rank of workplace_id in the priority list, None if absent."""
        try:
            return self.priority_area_ids.index(workplace_id)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            "priorityAreaIds": list(self.priority_area_ids),
            "forbiddenAreaIds": list(self.forbidden_area_ids),
        }


@dataclass(frozen=True)
class RuleProfile:
    after_duty_block: bool = True
    absence_block: bool = True
    long_term_absence_block: bool = True
    room_closed_block: bool = True
    require_duty_plan_coverage: bool = True
    employee_rules: tuple = field(default_factory=tuple)

    def rule_for(self, employee_id: int) -> Optional[EmployeeAreaRule]:
        for rule in self.employee_rules:
            if rule.employee_id == employee_id:
                return rule
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hardRules": {
                keys[0]: getattr(self, attr) for attr, keys in HARD_RULE_KEYS.items()
            },
            "employeeRules": [r.to_dict() for r in self.employee_rules],
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _as_mapping(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, RuleProfile):
        return raw.to_dict()
    if isinstance(raw, Mapping):
        return raw
    return {}


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.strip().isdecimal():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def _clean_ids(raw: Any, cap: Optional[int] = None) -> List[int]:
    if not isinstance(raw, (list, tuple)):
        return []
    out: List[int] = []
    for value in raw:
        parsed = _positive_int(value)
        if parsed is None or parsed in out:
            continue
        out.append(parsed)
    return out[:cap] if cap is not None else out


def _hard_rules_section(profile: Mapping[str, Any]) -> Mapping[str, Any]:
    section = profile.get("hardRules", profile.get("hard_rules"))
    if isinstance(section, Mapping):
        return section
    # Flat form: flags at the top level.
    return profile


def _read_flag(section: Mapping[str, Any], keys: Iterable[str]) -> Optional[bool]:
    for key in keys:
        value = section.get(key)
        if isinstance(value, bool):
            return value
    return None


def _employee_rules_section(profile: Mapping[str, Any]) -> Optional[list]:
    section = profile.get("employeeRules", profile.get("employee_rules"))
    return section if isinstance(section, list) else None


def normalize_employee_rules(raw_rules: Optional[list]) -> tuple:
    """
    Canonicalize a raw employee-rule list.

    Entries for the same employee are merged in order, so a second entry can
    only append areas the first did not name.
    """
    merged: Dict[int, Dict[str, List[int]]] = {}
    for entry in raw_rules or []:
        if not isinstance(entry, Mapping):
            continue
        employee_id = _positive_int(entry.get("employeeId", entry.get("employee_id")))
        if employee_id is None:
            continue
        priority = _clean_ids(entry.get("priorityAreaIds", entry.get("priority_area_ids")))
        forbidden = _clean_ids(entry.get("forbiddenAreaIds", entry.get("forbidden_area_ids")))
        slot = merged.setdefault(employee_id, {"priority": [], "forbidden": []})
        slot["priority"] = _clean_ids(slot["priority"] + priority)
        slot["forbidden"] = _clean_ids(slot["forbidden"] + forbidden)

    rules = []
    for employee_id in sorted(merged):
        lists = merged[employee_id]
        if not lists["priority"] and not lists["forbidden"]:
            continue
        rules.append(EmployeeAreaRule(
            employee_id=employee_id,
            priority_area_ids=tuple(lists["priority"][:MAX_PRIORITY_AREAS]),
            forbidden_area_ids=tuple(lists["forbidden"]),
        ))
    return tuple(rules)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def resolve_rule_profile(
    candidate: Any = None,
    fallback: Any = None,
) -> RuleProfile:
    """
    Resolve the profile used for one engine run.

    Args:
        candidate: Caller-supplied profile (dict, RuleProfile or None).
        fallback:  Stored default profile (dict, RuleProfile or None).

    Returns:
        Canonical RuleProfile.
    """
    primary = _as_mapping(candidate)
    secondary = _as_mapping(fallback)
    if candidate is not None and not isinstance(candidate, (RuleProfile, Mapping)):
        logger.warning(f"Ignoring malformed rule profile of type {type(candidate).__name__}")

    primary_flags = _hard_rules_section(primary)
    secondary_flags = _hard_rules_section(secondary)
    flags: Dict[str, bool] = {}
    for attr, keys in HARD_RULE_KEYS.items():
        value = _read_flag(primary_flags, keys)
        if value is None:
            value = _read_flag(secondary_flags, keys)
        flags[attr] = True if value is None else value

    raw_rules = _employee_rules_section(primary)
    if raw_rules is None:
        raw_rules = _employee_rules_section(secondary)

    profile = RuleProfile(employee_rules=normalize_employee_rules(raw_rules), **flags)
    logger.debug(
        f"Resolved rule profile: {sum(flags.values())}/{len(flags)} hard rules on, "
        f"{len(profile.employee_rules)} employee rules"
    )
    return profile
