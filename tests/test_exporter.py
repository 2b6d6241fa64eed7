"""
Tests for CSV / Excel / diagnostics report export
"""

import csv
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from weekly_planner.engine import calculate_load, plan_week
from weekly_planner.exporter import (
    build_grid_rows,
    export_diagnostics_report,
    export_to_csv,
    export_to_excel,
)
from weekly_planner.models import Employee, PlannedAbsence, WeeklyPlanAssignment, Workplace
from weekly_planner.rule_profile import RuleProfile


@pytest.fixture
def planned(snapshot_factory, monday):
    workplaces = [Workplace(id=1, name="OP 1", sort_order=1), Workplace(id=2, name="Ambulanz", sort_order=2)]
    staff = [
        Employee(id=1, name="Ben Baker", first_name="Ben", last_name="Baker"),
        Employee(id=2, name="Clara Anderson", first_name="Clara", last_name="Anderson"),
    ]
    existing = [
        WeeklyPlanAssignment(weekly_plan_id=1, workplace_id=1, weekday=5, is_blocked=True),
        WeeklyPlanAssignment(weekly_plan_id=1, workplace_id=2, weekday=5, employee_id=1, note="Einschulung"),
    ]
    snapshot = snapshot_factory(
        workplaces=workplaces,
        employees=staff,
        existing_assignments=existing,
        planned_absences=[PlannedAbsence(employee_id=1, start_date=monday, end_date=monday)],
    )
    return snapshot, plan_week(snapshot, RuleProfile())


class TestCsv:

    def test_rows_match_generated(self, planned, tmp_path):
        _, result = planned
        path = tmp_path / "out" / "assignments.csv"
        export_to_csv(result, path)
        with open(path, newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == len(result.generated_assignments)
        assert rows[0]["date"] == "2026-03-16"
        assert rows[0]["employee"] == "Clara Anderson"


class TestExcel:

    def test_grid_rows(self, planned):
        snapshot, result = planned
        entries = [r["Entry"] for r in build_grid_rows(result, snapshot)]
        assert "[blocked]" in entries
        assert "Ben Baker (Einschulung)" in entries
        assert "UNFILLED" in entries
        assert any(e.endswith(" *") for e in entries)

    def test_workbook_written(self, planned, tmp_path):
        openpyxl = pytest.importorskip("openpyxl")
        snapshot, result = planned
        path = tmp_path / "week.xlsx"
        export_to_excel(result, snapshot, path)
        ws = openpyxl.load_workbook(path)["Week"]
        header = [c.value for c in ws[1]]
        assert header[1:] == ["OP 1", "Ambulanz"]
        assert ws.max_row == 6   # header + Mon..Fri

    def test_days_in_calendar_order(self, planned, tmp_path):
        openpyxl = pytest.importorskip("openpyxl")
        snapshot, result = planned
        path = tmp_path / "week.xlsx"
        export_to_excel(result, snapshot, path)
        ws = openpyxl.load_workbook(path)["Week"]
        days = [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)]
        assert days == [
            "Mon 2026-03-16",
            "Tue 2026-03-17",
            "Wed 2026-03-18",
            "Thu 2026-03-19",
            "Fri 2026-03-20",
        ]
        assert ws.cell(row=1, column=1).value == "Day"


class TestReport:

    def test_report_contents(self, planned, tmp_path):
        snapshot, result = planned
        text = export_diagnostics_report(result, tmp_path / "report.txt", load=calculate_load(result, snapshot))
        assert "2026-W12" in text
        assert "PUBLISH BLOCKED" in text
        assert "No eligible candidate" in text
        assert "candidates blocked by: Absence, Time conflict" in text
        assert "Clara Anderson" in text
        assert (tmp_path / "report.txt").read_text(encoding="utf-8") == text
