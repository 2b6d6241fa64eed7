"""
Tests for the REST snapshot source (stub session, no network)
"""

import sys
from pathlib import Path

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from weekly_planner.api_client import ApiSnapshotSource, PlanningApiClient
from weekly_planner.models import (
    CompetencyRelation,
    LongTermAbsenceStatus,
    PlannedAbsenceStatus,
    Recurrence,
    WeeklyPlanAssignment,
)


class StubResponse:

    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class StubSession:

    def __init__(self, routes, status=200):
        self.routes = routes
        self.status = status
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", url, params, timeout))
        path = url.split("/api", 1)[1]
        return StubResponse(self.routes.get(path, []), self.status)

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", url, json, timeout))
        return StubResponse(json, self.status)


ROUTES = {
    "/rooms": [
        {"id": 1, "name": "OP 1", "useInWeeklyPlan": True, "isActive": True, "sortOrder": 1,
         "alternativeRoleLabels": ["facharzt"]},
    ],
    "/rooms/weekday-settings": [
        {"roomId": 1, "weekday": 1, "recurrence": "monthly_first_third", "isClosed": False},
    ],
    "/rooms/competencies": [
        {"roomId": 1, "competencyId": 4, "relationType": "OR", "competencyCode": "US-II"},
    ],
    "/employees": [
        {"id": 3, "firstName": "Sabine", "lastName": "Wagner", "role": "Oberärztin",
         "competencies": ["US-II"], "isActive": True, "inactiveFrom": None},
    ],
    "/planned-absences": [
        {"employeeId": 3, "startDate": "2026-03-19", "endDate": "2026-03-20", "status": "Abgelehnt"},
    ],
    "/long-term-absences": [
        {"employeeId": 3, "startDate": "2026-03-01T00:00:00Z", "endDate": "2026-04-30", "status": "Genehmigt"},
    ],
    "/roster": [
        {"date": "2026-03-15", "serviceType": "gyn", "employeeId": 3},
        {"date": "2026-03-17", "serviceType": "overduty", "employeeId": None},
    ],
}


@pytest.fixture
def session():
    return StubSession(ROUTES)


class TestClient:

    def test_bearer_header_and_timeout(self, session):
        client = PlanningApiClient("secret", base_url="https://klinik.example/api/", session=session)
        client.get_employees()
        assert session.headers["Authorization"] == "Bearer secret"
        method, url, _, timeout = session.calls[0]
        assert (method, url, timeout) == ("GET", "https://klinik.example/api/employees", 30)

    def test_http_error_reraised(self):
        client = PlanningApiClient("secret", base_url="https://klinik.example/api", session=StubSession(ROUTES, 500))
        with pytest.raises(requests.exceptions.HTTPError):
            client.get_workplaces()

    def test_upload_strips_ids(self, session):
        client = PlanningApiClient("secret", base_url="https://klinik.example/api", session=session)
        row = WeeklyPlanAssignment(weekly_plan_id=1, workplace_id=1, weekday=1, employee_id=3, id=17)
        echoed = client.upload_assignments([row])
        assert "id" not in echoed[0]
        assert echoed[0]["assignmentType"] == "Plan"


class TestApiSnapshotSource:

    def test_builds_snapshot(self, session):
        client = PlanningApiClient("secret", base_url="https://klinik.example/api", session=session)
        snapshot = ApiSnapshotSource(client).load_snapshot(2026, 12)

        assert snapshot.workplaces[0].alternative_role_labels == ["facharzt"]
        assert snapshot.weekday_settings[0].recurrence is Recurrence.FIRST_AND_THIRD
        assert snapshot.required_competencies[0].relation is CompetencyRelation.OR
        emp = snapshot.employees[0]
        assert emp.name == "Sabine Wagner" and emp.inactive_from is None
        assert snapshot.planned_absences[0].status is PlannedAbsenceStatus.REJECTED
        assert snapshot.long_term_absences[0].status is LongTermAbsenceStatus.APPROVED
        assert snapshot.roster_shifts[1].is_overduty

        roster_call = [c for c in session.calls if c[1].endswith("/roster")][0]
        assert roster_call[2] == {"from": "2026-03-15", "to": "2026-03-22"}
