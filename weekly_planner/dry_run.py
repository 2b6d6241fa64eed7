"""
dry_run.py — Weekly plan preview (and optional apply) from the command line

Full orchestration:
  1. Load snapshot inputs (CSV config dir), default rule profile, plan store
  2. Validate inputs (weekday settings, workplace coverage)
  3. Preview the week, or apply it with --apply
  4. Export CSV, Excel grid, diagnostics report, result JSON
  5. Print summary to console (optionally a matplotlib load chart)

Usage:
  python -m weekly_planner.dry_run --year 2026 --week 12
  python -m weekly_planner.dry_run --year 2026 --week 12 --apply --visual
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from weekly_planner.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PLANS_PATH,
    DEFAULT_PROFILE_PATH,
    CsvSnapshotSource,
    load_default_rule_profile,
)
from weekly_planner.engine import calculate_load
from weekly_planner.exporter import export_diagnostics_report, export_to_csv, export_to_excel
from weekly_planner.plan_state import ValidationError
from weekly_planner.service import WeeklyPlanService
from weekly_planner.skills import validate_workplace_coverage
from weekly_planner.slots import ConfigurationError, week_bounds
from weekly_planner.storage import PlanStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Visual analysis (matplotlib)
# ---------------------------------------------------------------------------

def _generate_load_chart(
    load: Dict[str, Dict[str, int]],
    output_dir: Path,
    prefix: str,
) -> Path:
    """Stacked bar chart of existing vs generated slots per employee."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    names = sorted(load, key=lambda n: (-load[n]["total"], n))
    existing = [load[n]["existing"] for n in names]
    generated = [load[n]["generated"] for n in names]
    x = range(len(names))

    fig, ax = plt.subplots(figsize=(max(6, len(names) * 0.8), 5))
    ax.bar(x, existing, color="#1a3d7c", alpha=0.85, width=0.65, label="Existing")
    ax.bar(x, generated, bottom=existing, color="#4a90d9", alpha=0.85, width=0.65, label="Generated")
    for i, n in enumerate(names):
        ax.text(i, load[n]["total"] + 0.05, str(load[n]["total"]), ha="center", va="bottom", fontsize=8)
    ax.set_xticks(list(x))
    ax.set_xticklabels(names, rotation=40, ha="right", fontsize=9)
    ax.set_ylabel("Slots this week")
    ax.set_title(f"Workplace Load by Employee ({prefix})", fontsize=13, fontweight="bold")
    ax.legend()
    ax.grid(axis="y", alpha=0.3)
    fig.tight_layout()
    path = output_dir / f"{prefix}_load.png"
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"  ✓ Visual  → {path.name}")
    return path


# ---------------------------------------------------------------------------
# Main orchestrator
# ---------------------------------------------------------------------------

def run_dry_run(
    year: int,
    week: int,
    config_dir: Optional[Path] = None,
    profile_path: Optional[Path] = None,
    plans_path: Optional[Path] = None,
    output_dir: Path = DEFAULT_OUTPUT_DIR,
    apply: bool = False,
    visual: bool = False,
) -> Dict[str, Any]:
    """
    Plan one ISO week from CSV inputs.

    Args:
        year, week:   ISO year and week number
        config_dir:   Directory with the input CSVs (default: config/)
        profile_path: Stored default rule profile (default: config/rule_profile.json)
        plans_path:   Weekly plan store JSON (default: config/weekly_plans.json)
        output_dir:   Directory for output files
        apply:        Persist generated assignments instead of previewing
        visual:       Write a matplotlib load chart

    Returns:
        Dict with result, load, applied_count and output paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = f"{'apply' if apply else 'preview'}_{year}-W{week:02d}"
    sep = "=" * 70
    monday, sunday = week_bounds(year, week)

    print(f"\n{sep}")
    print(f"  {'APPLY' if apply else 'PREVIEW'} MODE — {year}-W{week:02d} ({monday} → {sunday})")
    print(f"{sep}\n")

    # ── 1. Load configuration ──────────────────────────────────────────────
    print("Step 1/4: Loading configuration...")
    source = CsvSnapshotSource(config_dir or DEFAULT_CONFIG_DIR)
    profile = load_default_rule_profile(profile_path or DEFAULT_PROFILE_PATH)
    store = PlanStore(plans_path or DEFAULT_PLANS_PATH)
    service = WeeklyPlanService(store, source, default_profile=profile)
    snapshot = service.build_snapshot(year, week)
    print(
        f"  ✓ {len(snapshot.workplaces)} workplaces | {len(snapshot.employees)} employees | "
        f"{len(snapshot.roster_shifts)} roster shifts | {len(snapshot.existing_assignments)} stored rows"
    )

    # ── 2. Validate inputs ─────────────────────────────────────────────────
    print("\nStep 2/4: Validating inputs...")
    coverage_warnings = validate_workplace_coverage(
        snapshot.employees, snapshot.workplaces, snapshot.required_competencies
    )
    for w in coverage_warnings:
        print(f"  ⚠ WARNING: {w}")
    if not coverage_warnings:
        print("  ✓ Every planned workplace has qualified staff")

    # ── 3. Plan ────────────────────────────────────────────────────────────
    print(f"\nStep 3/4: {'Applying' if apply else 'Previewing'} week...")
    applied_count = 0
    if apply:
        outcome = service.apply(year, week)
        result = outcome.result
        applied_count = outcome.applied_count
        print(f"  ✓ {applied_count} assignments written to plan {outcome.plan.id} ({outcome.plan.status.value})")
    else:
        result = service.preview(year, week)
    stats = result.stats
    gate = "✓" if result.publish_allowed else "✗"
    print(f"  ✓ {stats['generatedAssignments']} generated | {stats['unfilledSlots']} unfilled")
    print(f"  {gate} Hard conflicts: {stats['hardConflicts']} | soft: {stats['softConflicts']}")

    # ── 4. Export ──────────────────────────────────────────────────────────
    print("\nStep 4/4: Exporting outputs...")
    load = calculate_load(result, snapshot)

    csv_path    = output_dir / f"{prefix}_assignments.csv"
    xlsx_path   = output_dir / f"{prefix}_week.xlsx"
    report_path = output_dir / f"{prefix}_diagnostics.txt"
    json_path   = output_dir / f"{prefix}_result.json"

    export_to_csv(result, csv_path)
    export_to_excel(result, snapshot, xlsx_path)
    report_text = export_diagnostics_report(result, report_path, load=load)
    with open(json_path, "w") as f:
        json.dump(result.to_dict(), f, indent=2)

    print(f"  ✓ CSV:       {csv_path.name}")
    print(f"  ✓ Excel:     {xlsx_path.name}")
    print(f"  ✓ Report:    {report_path.name}")
    print(f"  ✓ JSON:      {json_path.name}")

    outputs = {"csv": csv_path, "excel": xlsx_path, "report": report_path, "json": json_path}
    if visual and load:
        outputs["chart"] = _generate_load_chart(load, output_dir, prefix)

    print(f"\n{report_text}\n")

    return {
        "result":        result,
        "load":          load,
        "applied_count": applied_count,
        "outputs":       outputs,
    }


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Preview (default) or apply the weekly workplace plan for one ISO week"
    )
    parser.add_argument("--year",       required=True, type=int, help="ISO year, e.g. 2026")
    parser.add_argument("--week",       required=True, type=int, help="ISO week number 1..53")
    parser.add_argument("--config-dir", default=None,  help="Input CSV directory (default: config/)")
    parser.add_argument("--profile",    default=None,  help="Default rule profile JSON (default: config/rule_profile.json)")
    parser.add_argument("--plans",      default=None,  help="Weekly plan store JSON (default: config/weekly_plans.json)")
    parser.add_argument("--output-dir", default=None,  help="Output directory (default: output/)")
    parser.add_argument("--apply",      action="store_true", help="Persist generated assignments")
    parser.add_argument("--visual",     action="store_true", help="Write a matplotlib load chart")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        week_bounds(args.year, args.week)
    except ValueError as e:
        print(f"Invalid ISO week {args.year}-W{args.week}: {e}")
        sys.exit(1)

    try:
        run_dry_run(
            args.year, args.week,
            config_dir=Path(args.config_dir) if args.config_dir else None,
            profile_path=Path(args.profile) if args.profile else None,
            plans_path=Path(args.plans) if args.plans else None,
            output_dir=Path(args.output_dir) if args.output_dir else DEFAULT_OUTPUT_DIR,
            apply=args.apply,
            visual=args.visual,
        )
    except (ConfigurationError, ValidationError, FileNotFoundError) as e:
        print(f"\n  ✗ Cannot proceed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
