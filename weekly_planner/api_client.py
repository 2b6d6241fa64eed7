"""
Planning API Client
Loads weekly-planning inputs from the hospital backend's REST API and
builds a WeekSnapshot from them.

Endpoints used (JSON, camelCase fields):
  GET  /employees
  GET  /rooms                       workplaces
  GET  /rooms/weekday-settings
  GET  /rooms/competencies          required competencies
  GET  /planned-absences?from&to
  GET  /long-term-absences?from&to
  GET  /roster?from&to              roster shifts
  POST /weekly-assignments/bulk     upload generated rows
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import requests

from weekly_planner.config import (
    LONG_TERM_STATUS_ALIASES,
    PLANNED_ABSENCE_STATUS_ALIASES,
    RECURRENCE_ALIASES,
    parse_enum,
)
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
    WeeklyPlanAssignment,
    WeekSnapshot,
    Workplace,
)
from weekly_planner.slots import week_bounds

logger = logging.getLogger(__name__)


class PlanningApiClient:
    """
    Client for the planning backend's REST API
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "http://localhost:5000/api",
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            api_token: Bearer token of a planner account
            base_url: Base URL of the REST API
            session: Pre-built session (tests pass a stub)
        """
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_token}',
            'Content-Type': 'application/json'
        })

    def _get(self, path: str, what: str, params: Optional[Dict[str, Any]] = None) -> List[Dict]:
        endpoint = f"{self.base_url}{path}"
        logger.info(f"Fetching {what}")
        try:
            response = self.session.get(endpoint, params=params, timeout=30)
            response.raise_for_status()
            data = response.json()
            logger.info(f"Retrieved {len(data)} {what}")
            return data
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching {what}: {e}")
            raise

    def get_workplaces(self) -> List[Dict]:
        return self._get("/rooms", "workplaces")

    def get_weekday_settings(self) -> List[Dict]:
        return self._get("/rooms/weekday-settings", "weekday settings")

    def get_required_competencies(self) -> List[Dict]:
        return self._get("/rooms/competencies", "required competencies")

    def get_employees(self) -> List[Dict]:
        return self._get("/employees", "employees")

    def get_planned_absences(self, start_date: str, end_date: str) -> List[Dict]:
        return self._get("/planned-absences", "planned absences", {'from': start_date, 'to': end_date})

    def get_long_term_absences(self, start_date: str, end_date: str) -> List[Dict]:
        return self._get("/long-term-absences", "long-term absences", {'from': start_date, 'to': end_date})

    def get_roster_shifts(self, start_date: str, end_date: str) -> List[Dict]:
        return self._get("/roster", "roster shifts", {'from': start_date, 'to': end_date})

    def upload_assignments(self, assignments: List[WeeklyPlanAssignment]) -> List[Dict]:
        """
        Push generated rows to the backend in one bulk request

        Args:
            assignments: Rows returned by WeeklyPlanService.apply

        Returns:
            Created rows as echoed by the server
        """
        endpoint = f"{self.base_url}/weekly-assignments/bulk"
        payload = [
            {k: v for k, v in a.to_dict().items() if k != "id"}
            for a in assignments
        ]
        logger.info(f"Uploading {len(payload)} weekly assignments")
        try:
            response = self.session.post(endpoint, json=payload, timeout=30)
            response.raise_for_status()
            data = response.json()
            logger.info(f"Uploaded {len(data)} weekly assignments")
            return data
        except requests.exceptions.RequestException as e:
            logger.error(f"Error uploading weekly assignments: {e}")
            raise


# ---------------------------------------------------------------------------
# JSON → model converters
# ---------------------------------------------------------------------------

def _date(value: Any) -> Optional[date]:
    return date.fromisoformat(str(value)[:10]) if value else None


def workplace_from_json(raw: Dict) -> Workplace:
    return Workplace(
        id=int(raw["id"]),
        name=str(raw.get("name", "")),
        use_in_weekly_plan=bool(raw.get("useInWeeklyPlan", True)),
        is_active=bool(raw.get("isActive", True)),
        sort_order=int(raw.get("sortOrder") or 0),
        required_role_labels=list(raw.get("requiredRoleLabels") or []),
        alternative_role_labels=list(raw.get("alternativeRoleLabels") or []),
    )


def weekday_setting_from_json(raw: Dict) -> WeekdaySetting:
    return WeekdaySetting(
        workplace_id=int(raw["roomId"]),
        weekday=int(raw["weekday"]),
        recurrence=parse_enum(Recurrence, raw.get("recurrence") or "", RECURRENCE_ALIASES),
        is_closed=bool(raw.get("isClosed", False)),
        closed_reason=raw.get("closedReason"),
        usage_label=raw.get("usageLabel"),
        time_from=raw.get("timeFrom"),
        time_to=raw.get("timeTo"),
    )


def competency_from_json(raw: Dict) -> RequiredCompetency:
    return RequiredCompetency(
        workplace_id=int(raw["roomId"]),
        competency_id=int(raw["competencyId"]),
        relation=parse_enum(CompetencyRelation, raw.get("relationType") or "", default=CompetencyRelation.AND),
        code=raw.get("competencyCode"),
        name=raw.get("competencyName"),
    )


def employee_from_json(raw: Dict) -> Employee:
    return Employee(
        id=int(raw["id"]),
        name=str(raw.get("name") or f"{raw.get('firstName', '')} {raw.get('lastName', '')}".strip()),
        first_name=raw.get("firstName"),
        last_name=raw.get("lastName"),
        role=str(raw.get("role") or ""),
        competencies=list(raw.get("competencies") or []),
        is_active=bool(raw.get("isActive", True)),
        inactive_from=_date(raw.get("inactiveFrom")),
        inactive_until=_date(raw.get("inactiveUntil")),
        role_keys_override=raw.get("roleKeys") or None,
    )


def planned_absence_from_json(raw: Dict) -> PlannedAbsence:
    return PlannedAbsence(
        employee_id=int(raw["employeeId"]),
        start_date=_date(raw["startDate"]),
        end_date=_date(raw["endDate"]),
        status=parse_enum(
            PlannedAbsenceStatus, raw.get("status") or "",
            PLANNED_ABSENCE_STATUS_ALIASES, default=PlannedAbsenceStatus.PLANNED,
        ),
        reason=raw.get("reason"),
    )


def long_term_absence_from_json(raw: Dict) -> LongTermAbsence:
    return LongTermAbsence(
        employee_id=int(raw["employeeId"]),
        start_date=_date(raw["startDate"]),
        end_date=_date(raw["endDate"]),
        status=parse_enum(
            LongTermAbsenceStatus, raw.get("status") or "",
            LONG_TERM_STATUS_ALIASES, default=LongTermAbsenceStatus.DRAFT,
        ),
        reason=raw.get("reason"),
    )


def roster_shift_from_json(raw: Dict) -> RosterShift:
    employee_id = raw.get("employeeId")
    return RosterShift(
        date=_date(raw["date"]),
        service_type=str(raw.get("serviceType") or ""),
        employee_id=int(employee_id) if employee_id is not None else None,
    )


class ApiSnapshotSource:
    """Snapshot source backed by PlanningApiClient (see service.WeeklyPlanService)."""

    def __init__(self, client: PlanningApiClient):
        self.client = client

    def load_snapshot(self, year: int, week: int) -> WeekSnapshot:
        monday, sunday = week_bounds(year, week)
        start, end = monday.isoformat(), sunday.isoformat()
        # Sunday before the week, for the after-duty rule on Monday
        roster_start = (monday - timedelta(days=1)).isoformat()

        return WeekSnapshot(
            year=year,
            week=week,
            workplaces=[workplace_from_json(r) for r in self.client.get_workplaces()],
            weekday_settings=[weekday_setting_from_json(r) for r in self.client.get_weekday_settings()],
            required_competencies=[competency_from_json(r) for r in self.client.get_required_competencies()],
            employees=[employee_from_json(r) for r in self.client.get_employees()],
            planned_absences=[planned_absence_from_json(r) for r in self.client.get_planned_absences(start, end)],
            long_term_absences=[
                long_term_absence_from_json(r) for r in self.client.get_long_term_absences(start, end)
            ],
            roster_shifts=[roster_shift_from_json(r) for r in self.client.get_roster_shifts(roster_start, end)],
        )
