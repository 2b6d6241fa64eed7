"""
Tests for rule profile resolution (hard-rule fallback, employee-rule cleanup)
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from weekly_planner.rule_profile import (
    MAX_PRIORITY_AREAS,
    EmployeeAreaRule,
    RuleProfile,
    normalize_employee_rules,
    resolve_rule_profile,
)


class TestHardRules:

    def test_defaults_all_blocking(self):
        profile = resolve_rule_profile(None, None)
        assert profile == RuleProfile()
        assert profile.after_duty_block and profile.absence_block
        assert profile.long_term_absence_block and profile.room_closed_block
        assert profile.require_duty_plan_coverage
        assert profile.employee_rules == ()

    def test_candidate_overrides_fallback_per_flag(self):
        fallback = {"hardRules": {"afterDutyBlock": False, "absenceBlock": False}}
        candidate = {"hardRules": {"absenceBlock": True}}
        profile = resolve_rule_profile(candidate, fallback)
        assert profile.absence_block is True
        assert profile.after_duty_block is False      # from fallback
        assert profile.room_closed_block is True      # default

    def test_flat_shape_accepted(self):
        profile = resolve_rule_profile({"roomClosedBlock": False})
        assert profile.room_closed_block is False

    def test_non_boolean_flag_ignored(self):
        profile = resolve_rule_profile(
            {"hardRules": {"afterDutyBlock": "no"}},
            {"hardRules": {"afterDutyBlock": False}},
        )
        assert profile.after_duty_block is False

    @pytest.mark.parametrize("garbage", ["nonsense", 42, ["a"], object()])
    def test_malformed_candidate_degrades_to_fallback(self, garbage):
        fallback = RuleProfile(require_duty_plan_coverage=False)
        profile = resolve_rule_profile(garbage, fallback)
        assert profile.require_duty_plan_coverage is False

    def test_to_dict_round_shape(self):
        data = RuleProfile(absence_block=False).to_dict()
        assert data["hardRules"]["absenceBlock"] is False
        assert data["employeeRules"] == []
        assert resolve_rule_profile(data) == RuleProfile(absence_block=False)


class TestEmployeeRules:

    def test_candidate_list_wins_over_fallback(self):
        fallback = {"employeeRules": [{"employeeId": 1, "priorityAreaIds": [5]}]}
        candidate = {"employeeRules": [{"employeeId": 2, "forbiddenAreaIds": [3]}]}
        profile = resolve_rule_profile(candidate, fallback)
        assert [r.employee_id for r in profile.employee_rules] == [2]

    def test_fallback_list_used_when_candidate_has_none(self):
        fallback = {"employeeRules": [{"employeeId": 1, "priorityAreaIds": [5]}]}
        profile = resolve_rule_profile({"hardRules": {}}, fallback)
        assert profile.rule_for(1).priority_area_ids == (5,)

    def test_ids_cleaned_and_deduplicated(self):
        rules = normalize_employee_rules([
            {"employeeId": "4", "priorityAreaIds": [2, "2", -1, 0, "x", 3.0, True]},
        ])
        assert rules == (EmployeeAreaRule(employee_id=4, priority_area_ids=(2, 3)),)

    @pytest.mark.parametrize("odd_id", ["²", "①", "1²", " ", "-3"])
    def test_non_decimal_digit_strings_dropped(self, odd_id):
        profile = resolve_rule_profile({
            "employeeRules": [
                {"employeeId": odd_id, "priorityAreaIds": [1]},
                {"employeeId": 5, "priorityAreaIds": [odd_id, 2]},
            ],
        })
        assert profile.employee_rules == (EmployeeAreaRule(employee_id=5, priority_area_ids=(2,)),)

    def test_priority_list_capped(self):
        rules = normalize_employee_rules([{"employeeId": 1, "priorityAreaIds": [1, 2, 3, 4, 5]}])
        assert len(rules[0].priority_area_ids) == MAX_PRIORITY_AREAS

    def test_entries_merged_and_empty_rules_dropped(self):
        rules = normalize_employee_rules([
            {"employeeId": 7, "priorityAreaIds": [1]},
            {"employeeId": 7, "priorityAreaIds": [1, 2], "forbiddenAreaIds": [9]},
            {"employeeId": 8, "priorityAreaIds": [], "forbiddenAreaIds": []},
            {"employeeId": None, "priorityAreaIds": [1]},
            "not a rule",
        ])
        assert len(rules) == 1
        assert rules[0].priority_area_ids == (1, 2)
        assert rules[0].forbidden_area_ids == (9,)

    def test_priority_rank(self):
        rule = EmployeeAreaRule(employee_id=1, priority_area_ids=(7, 3))
        assert rule.priority_rank(7) == 0
        assert rule.priority_rank(3) == 1
        assert rule.priority_rank(99) is None
