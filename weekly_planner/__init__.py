"""
Weekly Workplace Planner

Modules:
- models: Snapshot entities, weekly plan and assignment records
- rule_profile: Hard rules and per-employee priority/forbidden areas
- engine: Slot-by-slot assignment with scoring and diagnostics (preview)
- service: Preview / apply operations and plan management
- config: CSV snapshot loader, stored default rule profile
- api_client: REST snapshot source
"""

from .config import (
    CsvSnapshotSource,
    load_default_rule_profile,
)

from .engine import (
    PlanningResult,
    plan_week,
    calculate_load,
)

from .rule_profile import (
    RuleProfile,
    resolve_rule_profile,
)

from .service import (
    ApplyOutcome,
    WeeklyPlanService,
)

from .storage import PlanStore

__all__ = [
    "CsvSnapshotSource",
    "load_default_rule_profile",
    "PlanningResult",
    "plan_week",
    "calculate_load",
    "RuleProfile",
    "resolve_rule_profile",
    "ApplyOutcome",
    "WeeklyPlanService",
    "PlanStore",
]
