"""
Tests for the weekly planning engine (scoring, tie-break, diagnostics, publish gate)
"""

import sys
from datetime import timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from weekly_planner import reasons as rc
from weekly_planner.engine import (
    NO_MATCH_SCORE,
    ScoredCandidate,
    calculate_load,
    plan_week,
    priority_score,
    rank_candidates,
)
from weekly_planner.models import (
    Employee,
    PlannedAbsence,
    RosterShift,
    WeekdaySetting,
    WeeklyPlanAssignment,
    Workplace,
)
from weekly_planner.rule_profile import RuleProfile, resolve_rule_profile


class TestScoring:

    def test_priority_scores(self):
        profile = resolve_rule_profile({"employeeRules": [{"employeeId": 1, "priorityAreaIds": [7, 8, 9]}]})
        assert priority_score(profile, 1, 7) == 300
        assert priority_score(profile, 1, 8) == 200
        assert priority_score(profile, 1, 9) == 100
        assert priority_score(profile, 1, 10) == NO_MATCH_SCORE
        assert priority_score(profile, 2, 7) == NO_MATCH_SCORE

    def test_load_penalty(self):
        emp = Employee(id=1, name="A B")
        assert ScoredCandidate(emp, priority_score=300, assigned_count=2).score == 270

    def test_rank_by_score_then_name(self):
        anderson = Employee(id=9, name="Zoe Anderson", first_name="Zoe", last_name="Anderson")
        baker = Employee(id=1, name="Adam Baker", first_name="Adam", last_name="Baker")
        aerger = Employee(id=5, name="Ülla Ärger", first_name="Ülla", last_name="Ärger")
        ranked = rank_candidates([
            ScoredCandidate(baker, 10, 0),
            ScoredCandidate(anderson, 10, 0),
            ScoredCandidate(aerger, 10, 1),
        ])
        assert [c.employee.id for c in ranked] == [9, 1, 5]

    def test_accented_last_name_sorts_with_plain_letter(self):
        aerger = Employee(id=5, name="Ülla Ärger", first_name="Ülla", last_name="Ärger")
        baker = Employee(id=1, name="Adam Baker", first_name="Adam", last_name="Baker")
        ranked = rank_candidates([ScoredCandidate(baker, 10, 0), ScoredCandidate(aerger, 10, 0)])
        assert ranked[0].employee.id == 5


class TestPlanWeek:

    def test_single_monday_slot_no_priority(self, snapshot_factory):
        emp = Employee(id=1, name="Clara Anderson", role="Facharzt")
        snapshot = snapshot_factory(employees=[emp], weekdays=(1,))
        result = plan_week(snapshot, RuleProfile())

        assert len(result.generated_assignments) == 1
        g = result.generated_assignments[0]
        assert (g.weekday, g.workplace_id, g.employee_id) == (1, 1, 1)
        assert g.priority_score == NO_MATCH_SCORE
        assert [v.code for v in result.violations] == [rc.LOW_PRIORITY_AREA_MATCH]
        assert not result.violations[0].hard
        assert result.publish_allowed
        assert result.stats["softConflicts"] == 1

    def test_priority_match_has_no_soft_violation(self, snapshot_factory):
        emp = Employee(id=1, name="Clara Anderson", role="Facharzt")
        profile = resolve_rule_profile({"employeeRules": [{"employeeId": 1, "priorityAreaIds": [1]}]})
        result = plan_week(snapshot_factory(employees=[emp], weekdays=(1,)), profile)
        assert result.generated_assignments[0].priority_score == 300
        assert result.violations == []

    def test_anderson_beats_baker_on_tie(self, snapshot_factory):
        staff = [
            Employee(id=1, name="Ben Baker", first_name="Ben", last_name="Baker"),
            Employee(id=2, name="Clara Anderson", first_name="Clara", last_name="Anderson"),
        ]
        result = plan_week(snapshot_factory(employees=staff, weekdays=(1,)), RuleProfile())
        assert result.generated_assignments[0].employee_name == "Clara Anderson"

    def test_load_balancing_across_days(self, snapshot_factory):
        staff = [
            Employee(id=1, name="Ben Baker", first_name="Ben", last_name="Baker"),
            Employee(id=2, name="Clara Anderson", first_name="Clara", last_name="Anderson"),
        ]
        result = plan_week(snapshot_factory(employees=staff, weekdays=(1, 2, 3, 4)), RuleProfile())
        winners = [g.employee_id for g in result.generated_assignments]
        assert winners == [2, 1, 2, 1]

    def test_existing_assignments_count_toward_load(self, snapshot_factory):
        staff = [
            Employee(id=1, name="Ben Baker", first_name="Ben", last_name="Baker"),
            Employee(id=2, name="Clara Anderson", first_name="Clara", last_name="Anderson"),
        ]
        existing = [WeeklyPlanAssignment(weekly_plan_id=1, workplace_id=1, weekday=5, employee_id=2)]
        result = plan_week(
            snapshot_factory(employees=staff, weekdays=(1, 5), existing_assignments=existing),
            RuleProfile(),
        )
        assert [g.employee_id for g in result.generated_assignments] == [1]
        assert result.stats["existingAssignments"] == 1

    def test_no_double_booking_same_weekday(self, snapshot_factory):
        workplaces = [Workplace(id=i, name=f"Room {i}", sort_order=i) for i in (1, 2, 3)]
        staff = [Employee(id=i, name=f"Person {i}") for i in (1, 2)]
        result = plan_week(snapshot_factory(workplaces=workplaces, employees=staff), RuleProfile())

        seen = set()
        for g in result.generated_assignments:
            assert (g.employee_id, g.weekday) not in seen
            seen.add((g.employee_id, g.weekday))
        # 3 rooms, 2 people: one room per day stays unfilled
        assert len(result.unfilled_slots) == 5
        assert all(u.reason_codes == [rc.NO_ELIGIBLE_CANDIDATE] for u in result.unfilled_slots)
        assert all(u.candidates_blocked_by == [rc.ALREADY_ASSIGNED_SAME_TIME] for u in result.unfilled_slots)

    def test_unfilled_slot_blocks_publish(self, snapshot_factory, monday):
        emp = Employee(id=1, name="Clara Anderson", role="Facharzt")
        absence = PlannedAbsence(employee_id=1, start_date=monday, end_date=monday)
        result = plan_week(
            snapshot_factory(employees=[emp], weekdays=(1,), planned_absences=[absence]),
            RuleProfile(),
        )
        assert result.generated_assignments == []
        unfilled = result.unfilled_slots[0]
        assert unfilled.slot_id == "2026-03-16:1"
        assert unfilled.blocks_publish
        assert unfilled.candidates_blocked_by == [rc.ABSENCE_BLOCKED]
        assert result.stats["hardConflicts"] == 1
        assert result.publish_allowed is False

    def test_no_candidates_at_all(self, snapshot_factory):
        result = plan_week(snapshot_factory(weekdays=(1,)), RuleProfile())
        assert result.unfilled_slots[0].candidates_blocked_by == []
        assert not result.publish_allowed

    def test_locked_wednesday_absent_everywhere(self, snapshot_factory):
        staff = [Employee(id=i, name=f"Person {i}") for i in (1, 2)]
        snapshot = snapshot_factory(employees=staff, locked_weekdays=[3])
        result = plan_week(snapshot, RuleProfile())
        assert 3 not in {g.weekday for g in result.generated_assignments}
        assert 3 not in {u.weekday for u in result.unfilled_slots}

    def test_locked_empty_does_not_block_publish(self, snapshot_factory):
        emp = Employee(id=1, name="Clara Anderson")
        block = WeeklyPlanAssignment(weekly_plan_id=1, workplace_id=1, weekday=1, is_blocked=True)
        result = plan_week(
            snapshot_factory(employees=[emp], weekdays=(1,), existing_assignments=[block]),
            RuleProfile(),
        )
        assert result.generated_assignments == []
        assert result.unfilled_slots[0].reason_codes == [rc.LOCKED_EMPTY]
        assert result.unfilled_slots[0].blocks_publish is False
        assert result.publish_allowed

    def test_closed_room_never_reported(self, snapshot_factory):
        emp = Employee(id=1, name="Clara Anderson")
        settings = [WeekdaySetting(workplace_id=1, weekday=2, is_closed=True)]
        result = plan_week(snapshot_factory(employees=[emp], weekday_settings=settings), RuleProfile())
        assert result.generated_assignments == []
        assert result.unfilled_slots == []

    def test_missing_duty_plan_is_hard(self, snapshot_factory, monday):
        emp = Employee(id=1, name="Clara Anderson")
        shifts = [
            RosterShift(date=monday, service_type="overduty", employee_id=1),
            RosterShift(date=monday - timedelta(days=1), service_type="gyn", employee_id=1),
        ]
        result = plan_week(
            snapshot_factory(employees=[emp], weekdays=(2,), roster_shifts=shifts), RuleProfile()
        )
        duty = [v for v in result.violations if v.code == rc.NO_DUTY_PLAN_IN_PERIOD]
        assert len(duty) == 1 and duty[0].hard
        assert result.publish_allowed is False
        # Generation still runs
        assert len(result.generated_assignments) == 1

    def test_duty_coverage_rule_off(self, snapshot_factory):
        emp = Employee(id=1, name="Clara Anderson")
        result = plan_week(
            snapshot_factory(employees=[emp], weekdays=(1,), roster_shifts=[]),
            RuleProfile(require_duty_plan_coverage=False),
        )
        assert all(v.code != rc.NO_DUTY_PLAN_IN_PERIOD for v in result.violations)

    def test_hard_conflicts_iff_publish_blocked(self, snapshot_factory, monday):
        staff = [Employee(id=i, name=f"Person {i}") for i in (1, 2)]
        absence = PlannedAbsence(employee_id=1, start_date=monday, end_date=monday + timedelta(days=2))
        result = plan_week(
            snapshot_factory(
                workplaces=[Workplace(id=1, name="A"), Workplace(id=2, name="B")],
                employees=staff,
                planned_absences=[absence],
            ),
            RuleProfile(),
        )
        assert (result.stats["hardConflicts"] == 0) == result.publish_allowed
        assert result.stats["hardConflicts"] == 3

    def test_preview_is_deterministic(self, snapshot_factory):
        workplaces = [Workplace(id=i, name=f"Room {i}", sort_order=-i) for i in (1, 2, 3)]
        staff = [Employee(id=i, name=f"Person {i}") for i in (4, 2, 3, 1)]
        profile = resolve_rule_profile({"employeeRules": [{"employeeId": 3, "priorityAreaIds": [2]}]})
        first = plan_week(snapshot_factory(workplaces=workplaces, employees=staff), profile)
        second = plan_week(snapshot_factory(workplaces=workplaces, employees=staff), profile)
        assert first.to_dict() == second.to_dict()

    def test_result_shape(self, snapshot_factory):
        result = plan_week(snapshot_factory(weekdays=()), RuleProfile())
        data = result.to_dict()
        assert data["meta"] == {"year": 2026, "week": 12, "from": "2026-03-16", "to": "2026-03-22"}
        assert set(data["stats"]) == {
            "generatedAssignments", "existingAssignments", "unfilledSlots", "hardConflicts", "softConflicts",
        }
        assert data["publishAllowed"] is True


class TestLoad:

    def test_calculate_load(self, snapshot_factory):
        staff = [Employee(id=1, name="Ben Baker"), Employee(id=2, name="Clara Anderson")]
        existing = [WeeklyPlanAssignment(weekly_plan_id=1, workplace_id=1, weekday=5, employee_id=2)]
        snapshot = snapshot_factory(employees=staff, weekdays=(1, 2, 5), existing_assignments=existing)
        load = calculate_load(plan_week(snapshot, RuleProfile()), snapshot)
        assert load["Clara Anderson"] == {"existing": 1, "generated": 1, "total": 2}
        assert load["Ben Baker"]["generated"] == 1
