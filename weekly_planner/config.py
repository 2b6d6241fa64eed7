"""
config.py — Configuration Module for the weekly workplace planner

Loads the week snapshot inputs from a directory of CSV files and the stored
default rule profile from JSON.

  workplaces.csv             id, name, use_in_weekly_plan, is_active, sort_order,
                             required_role_labels, alternative_role_labels
  weekday_settings.csv       workplace_id, weekday, recurrence, is_closed,
                             closed_reason, usage_label, time_from, time_to
  required_competencies.csv  workplace_id, competency_id, relation, code, name
  employees.csv              id, name, first_name, last_name, role, competencies,
                             is_active, inactive_from, inactive_until, role_keys
  planned_absences.csv       employee_id, start_date, end_date, status, reason
  long_term_absences.csv     employee_id, start_date, end_date, status, reason
  roster_shifts.csv          date, service_type, employee_id

workplaces.csv and employees.csv are required; the others may be absent.
List cells (role labels, competencies, role keys) accept comma, semicolon or
pipe separators. Status columns accept the German labels of the source
system as well as the English values.
"""

import json
import logging
import re
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from weekly_planner.models import (
    CompetencyRelation,
    Employee,
    LongTermAbsence,
    LongTermAbsenceStatus,
    PlannedAbsence,
    PlannedAbsenceStatus,
    Recurrence,
    RequiredCompetency,
    RosterShift,
    WeekdaySetting,
    WeekSnapshot,
    Workplace,
)
from weekly_planner.rule_profile import RuleProfile, resolve_rule_profile
from weekly_planner.slots import week_bounds

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_PROFILE_PATH = DEFAULT_CONFIG_DIR / "rule_profile.json"
DEFAULT_PLANS_PATH   = DEFAULT_CONFIG_DIR / "weekly_plans.json"
DEFAULT_OUTPUT_DIR   = PROJECT_ROOT / "output"

WORKPLACES_FILE = "workplaces.csv"
WEEKDAY_SETTINGS_FILE = "weekday_settings.csv"
REQUIRED_COMPETENCIES_FILE = "required_competencies.csv"
EMPLOYEES_FILE = "employees.csv"
PLANNED_ABSENCES_FILE = "planned_absences.csv"
LONG_TERM_ABSENCES_FILE = "long_term_absences.csv"
ROSTER_SHIFTS_FILE = "roster_shifts.csv"


# ---------------------------------------------------------------------------
# Status / enum aliases (German labels of the source system)
# ---------------------------------------------------------------------------

PLANNED_ABSENCE_STATUS_ALIASES: Dict[str, PlannedAbsenceStatus] = {
    "geplant": PlannedAbsenceStatus.PLANNED,
    "genehmigt": PlannedAbsenceStatus.APPROVED,
    "abgelehnt": PlannedAbsenceStatus.REJECTED,
}

LONG_TERM_STATUS_ALIASES: Dict[str, LongTermAbsenceStatus] = {
    "entwurf": LongTermAbsenceStatus.DRAFT,
    "eingereicht": LongTermAbsenceStatus.SUBMITTED,
    "genehmigt": LongTermAbsenceStatus.APPROVED,
    "abgelehnt": LongTermAbsenceStatus.REJECTED,
}

RECURRENCE_ALIASES: Dict[str, Recurrence] = {
    "": Recurrence.WEEKLY,
    "wöchentlich": Recurrence.WEEKLY,
    "first_third": Recurrence.FIRST_AND_THIRD,
    "once": Recurrence.FIRST_ONLY,
}


def parse_enum(enum_cls, raw: Any, aliases: Optional[Dict[str, Any]] = None, default=None):
    """Match raw against enum values, enum names, then aliases (case-insensitive)."""
    key = str(raw if raw is not None else "").strip()
    lowered = key.lower()
    for member in enum_cls:
        if str(member.value).lower() == lowered or member.name.lower() == lowered:
            return member
    if aliases and lowered in aliases:
        return aliases[lowered]
    if default is not None and not key:
        return default
    raise ValueError(f"Unknown {enum_cls.__name__} value: {raw!r}")


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def _cell(row: Any, column: str) -> str:
    value = row.get(column, "")
    if value is None:
        return ""
    s = str(value).strip()
    return "" if s.lower() == "nan" else s


def _parse_yes_no(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if not s or s == "nan":
        return default
    return s in ("yes", "true", "1", "y", "ja", "j")


def _parse_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    s = str(value).strip() if value is not None else ""
    if not s or s.lower() == "nan":
        return default
    return int(float(s))


def _parse_date(value: Any) -> Optional[date]:
    s = str(value).strip() if value is not None else ""
    if not s or s.lower() == "nan":
        return None
    return date.fromisoformat(s[:10])


def _parse_list(raw: Any) -> List[str]:
    """
    Delimiter-tolerant list cell parser.
    Handles:
      - comma-separated:  "Facharzt,Oberarzt"
      - semicolon-sep:    "Facharzt;Oberarzt"
      - pipe-sep:         "Facharzt|Oberarzt"
      - quoted tokens:    '"Facharzt" "Oberarzt"'
    Case is preserved; matching normalizes later.
    """
    if raw is None or isinstance(raw, float):
        return []
    s = str(raw).strip()
    if not s or s.lower() == "nan":
        return []

    s = s.strip('"').strip("'")
    s = re.sub(r'"\s+"', ",", s)
    s = re.sub(r'"\s*', "", s)
    s = s.replace(";", ",").replace("|", ",")

    parts = [p.strip().strip('"').strip("'") for p in s.split(",")]
    return [p for p in parts if p]


def _read_csv(path: Path, required: bool = False):
    """DataFrame with every cell as a string, or None if an optional file is missing."""
    import pandas as pd

    if not path.exists():
        if required:
            raise FileNotFoundError(f"Required input not found: {path}")
        logger.warning(f"{path.name} not found in {path.parent}. Using empty list.")
        return None
    return pd.read_csv(path, dtype=str, keep_default_na=False)


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

def load_workplaces(path: Path) -> List[Workplace]:
    df = _read_csv(path, required=True)
    workplaces: List[Workplace] = []
    for _, row in df.iterrows():
        workplaces.append(Workplace(
            id=int(_cell(row, "id")),
            name=_cell(row, "name"),
            use_in_weekly_plan=_parse_yes_no(_cell(row, "use_in_weekly_plan"), default=True),
            is_active=_parse_yes_no(_cell(row, "is_active"), default=True),
            sort_order=_parse_int(_cell(row, "sort_order"), default=0),
            required_role_labels=_parse_list(_cell(row, "required_role_labels")),
            alternative_role_labels=_parse_list(_cell(row, "alternative_role_labels")),
        ))
    logger.info(f"Loaded {len(workplaces)} workplaces from {path}")
    return workplaces


def load_weekday_settings(path: Path) -> List[WeekdaySetting]:
    df = _read_csv(path)
    if df is None:
        return []
    settings: List[WeekdaySetting] = []
    for _, row in df.iterrows():
        settings.append(WeekdaySetting(
            workplace_id=int(_cell(row, "workplace_id")),
            weekday=int(_cell(row, "weekday")),
            recurrence=parse_enum(Recurrence, _cell(row, "recurrence"), RECURRENCE_ALIASES),
            is_closed=_parse_yes_no(_cell(row, "is_closed")),
            closed_reason=_cell(row, "closed_reason") or None,
            usage_label=_cell(row, "usage_label") or None,
            time_from=_cell(row, "time_from") or None,
            time_to=_cell(row, "time_to") or None,
        ))
    logger.info(f"Loaded {len(settings)} weekday settings from {path}")
    return settings


def load_required_competencies(path: Path) -> List[RequiredCompetency]:
    df = _read_csv(path)
    if df is None:
        return []
    requirements: List[RequiredCompetency] = []
    for _, row in df.iterrows():
        requirements.append(RequiredCompetency(
            workplace_id=int(_cell(row, "workplace_id")),
            competency_id=int(_cell(row, "competency_id")),
            relation=parse_enum(
                CompetencyRelation, _cell(row, "relation"),
                {"und": CompetencyRelation.AND, "oder": CompetencyRelation.OR},
                default=CompetencyRelation.AND,
            ),
            code=_cell(row, "code") or None,
            name=_cell(row, "name") or None,
        ))
    logger.info(f"Loaded {len(requirements)} required competencies from {path}")
    return requirements


def load_employees(path: Path) -> List[Employee]:
    df = _read_csv(path, required=True)
    employees: List[Employee] = []
    for _, row in df.iterrows():
        role_keys = _parse_list(_cell(row, "role_keys"))
        employees.append(Employee(
            id=int(_cell(row, "id")),
            name=_cell(row, "name"),
            first_name=_cell(row, "first_name") or None,
            last_name=_cell(row, "last_name") or None,
            role=_cell(row, "role"),
            competencies=_parse_list(_cell(row, "competencies")),
            is_active=_parse_yes_no(_cell(row, "is_active"), default=True),
            inactive_from=_parse_date(_cell(row, "inactive_from")),
            inactive_until=_parse_date(_cell(row, "inactive_until")),
            role_keys_override=role_keys or None,
        ))
    logger.info(f"Loaded {len(employees)} employees from {path}")
    return employees


def load_planned_absences(path: Path) -> List[PlannedAbsence]:
    df = _read_csv(path)
    if df is None:
        return []
    absences = [
        PlannedAbsence(
            employee_id=int(_cell(row, "employee_id")),
            start_date=_parse_date(_cell(row, "start_date")),
            end_date=_parse_date(_cell(row, "end_date")),
            status=parse_enum(
                PlannedAbsenceStatus, _cell(row, "status"),
                PLANNED_ABSENCE_STATUS_ALIASES, default=PlannedAbsenceStatus.PLANNED,
            ),
            reason=_cell(row, "reason") or None,
        )
        for _, row in df.iterrows()
    ]
    logger.info(f"Loaded {len(absences)} planned absences from {path}")
    return absences


def load_long_term_absences(path: Path) -> List[LongTermAbsence]:
    df = _read_csv(path)
    if df is None:
        return []
    absences = [
        LongTermAbsence(
            employee_id=int(_cell(row, "employee_id")),
            start_date=_parse_date(_cell(row, "start_date")),
            end_date=_parse_date(_cell(row, "end_date")),
            status=parse_enum(
                LongTermAbsenceStatus, _cell(row, "status"),
                LONG_TERM_STATUS_ALIASES, default=LongTermAbsenceStatus.DRAFT,
            ),
            reason=_cell(row, "reason") or None,
        )
        for _, row in df.iterrows()
    ]
    logger.info(f"Loaded {len(absences)} long-term absences from {path}")
    return absences


def load_roster_shifts(path: Path) -> List[RosterShift]:
    df = _read_csv(path)
    if df is None:
        return []
    shifts = [
        RosterShift(
            date=_parse_date(_cell(row, "date")),
            service_type=_cell(row, "service_type"),
            employee_id=_parse_int(_cell(row, "employee_id")),
        )
        for _, row in df.iterrows()
    ]
    logger.info(f"Loaded {len(shifts)} roster shifts from {path}")
    return shifts


# ---------------------------------------------------------------------------
# Snapshot source
# ---------------------------------------------------------------------------

class CsvSnapshotSource:
    """
    Week snapshot from a config directory of CSV files.

    Absences are trimmed to those overlapping the week; roster shifts to the
    week plus the Sunday before it (after-duty rule on Monday).
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR

    def load_snapshot(self, year: int, week: int) -> WeekSnapshot:
        d = self.config_dir
        monday, sunday = week_bounds(year, week)
        window_start = monday - timedelta(days=1)

        planned = [
            a for a in load_planned_absences(d / PLANNED_ABSENCES_FILE)
            if a.start_date <= sunday and a.end_date >= monday
        ]
        long_term = [
            a for a in load_long_term_absences(d / LONG_TERM_ABSENCES_FILE)
            if a.start_date <= sunday and a.end_date >= monday
        ]
        shifts = [
            s for s in load_roster_shifts(d / ROSTER_SHIFTS_FILE)
            if window_start <= s.date <= sunday
        ]

        return WeekSnapshot(
            year=year,
            week=week,
            workplaces=load_workplaces(d / WORKPLACES_FILE),
            weekday_settings=load_weekday_settings(d / WEEKDAY_SETTINGS_FILE),
            required_competencies=load_required_competencies(d / REQUIRED_COMPETENCIES_FILE),
            employees=load_employees(d / EMPLOYEES_FILE),
            planned_absences=planned,
            long_term_absences=long_term,
            roster_shifts=shifts,
        )


# ---------------------------------------------------------------------------
# Default rule profile
# ---------------------------------------------------------------------------

def load_default_rule_profile(profile_path: Optional[Path] = None) -> RuleProfile:
    """Stored default profile; all hard rules on if the file is missing."""
    path = profile_path or DEFAULT_PROFILE_PATH
    if not path.exists():
        logger.warning(f"Rule profile not found: {path}. Using defaults (all hard rules on).")
        return RuleProfile()
    with open(path) as f:
        data = json.load(f)
    profile = resolve_rule_profile(data)
    logger.info(f"Loaded default rule profile from {path} ({len(profile.employee_rules)} employee rules)")
    return profile


def save_rule_profile(profile: RuleProfile, profile_path: Optional[Path] = None) -> None:
    path = profile_path or DEFAULT_PROFILE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(profile.to_dict(), f, indent=2)
    logger.info(f"Rule profile saved to {path}")
