"""
exporter.py — Export Layer for weekly planning results

Outputs:
  - CSV: flat (date, weekday, workplace, employee, score) of generated rows
  - Excel (.xlsx): formatted day × workplace grid with existing rows,
    generated rows and unfilled markers
  - Diagnostics report (.txt): stats, publish gate, unfilled slots with reason
    titles, violations

Usage:
  from weekly_planner.exporter import export_to_csv, export_to_excel, export_diagnostics_report
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from weekly_planner.engine import PlanningResult
from weekly_planner.models import WeekSnapshot
from weekly_planner.reasons import get_reason_label, get_reason_meta
from weekly_planner.slots import get_week_dates, planning_workplaces

logger = logging.getLogger(__name__)

WEEKDAY_LABELS = {1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat", 7: "Sun"}


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_to_csv(result: PlanningResult, output_path: Path) -> None:
    """
    Export generated assignments to flat CSV.

    Args:
        result:      Output of engine.plan_week / WeeklyPlanService.preview
        output_path: .csv file path
    """
    import csv
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fields = ["date", "weekday", "workplace_id", "workplace", "employee_id", "employee", "score", "priority_score"]
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fields)
        writer.writeheader()
        for g in result.generated_assignments:
            writer.writerow({
                "date": g.date.isoformat(),
                "weekday": g.weekday,
                "workplace_id": g.workplace_id,
                "workplace": g.workplace_name,
                "employee_id": g.employee_id,
                "employee": g.employee_name,
                "score": g.score,
                "priority_score": g.priority_score,
            })

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def build_grid_rows(result: PlanningResult, snapshot: WeekSnapshot) -> List[Dict[str, str]]:
    """Cell entries (Date, Day, Workplace, Entry) for stored, generated and unfilled slots."""
    names = {e.id: e.display_name for e in snapshot.employees}
    workplace_names = {w.id: w.name for w in snapshot.workplaces}
    day_by_weekday = {d.isoweekday(): d for d in get_week_dates(result.year, result.week)}

    def _row(weekday: int, workplace: str, entry: str) -> Dict[str, str]:
        day = day_by_weekday[weekday].isoformat()
        return {
            "Date": day,
            "Day": f"{WEEKDAY_LABELS[weekday]} {day}",
            "Workplace": workplace,
            "Entry": entry,
        }

    rows: List[Dict[str, str]] = []
    for a in snapshot.existing_assignments:
        if a.employee_id is not None:
            entry = names.get(a.employee_id, f"#{a.employee_id}")
        elif a.is_blocked:
            entry = "[blocked]"
        else:
            entry = a.note or a.role_label or ""
        if a.note and a.employee_id is not None:
            entry = f"{entry} ({a.note})"
        if entry:
            rows.append(_row(a.weekday, workplace_names.get(a.workplace_id, f"#{a.workplace_id}"), entry))
    for g in result.generated_assignments:
        rows.append(_row(g.weekday, g.workplace_name, f"{g.employee_name} *"))
    for u in result.unfilled_slots:
        if u.blocks_publish:
            rows.append(_row(u.weekday, u.workplace_name, "UNFILLED"))
    return rows


def export_to_excel(
    result: PlanningResult,
    snapshot: WeekSnapshot,
    output_path: Path,
) -> None:
    """
    Export the week to a formatted Excel grid: rows=day, columns=workplace.

    Generated rows are marked with '*'; slots without an eligible candidate
    show UNFILLED. Workplace columns follow the planning sort order.
    """
    import pandas as pd

    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(build_grid_rows(result, snapshot), columns=["Date", "Day", "Workplace", "Entry"])
    if df.empty:
        df[["Day", "Workplace", "Entry"]].to_excel(output_path, index=False)
        logger.info(f"Excel exported (empty) → {output_path}")
        return

    grid = df.pivot_table(
        index="Date",
        columns="Workplace",
        values="Entry",
        aggfunc=lambda x: "; ".join(x),
    )
    # calendar order, then the display label
    week_days = [d.isoformat() for d in get_week_dates(result.year, result.week)]
    grid = grid.reindex([d for d in week_days if d in grid.index])
    labels = dict(zip(df["Date"], df["Day"]))
    grid.index = pd.Index([labels[d] for d in grid.index], name="Day")

    order = [w.name for w in planning_workplaces(snapshot.workplaces)]
    available = [w for w in order if w in grid.columns]
    rest = [w for w in grid.columns if w not in order]
    grid = grid[available + rest].fillna("")
    grid.columns.name = None

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name="Week")
        _format_excel_grid(writer, "Week")

    logger.info(f"Excel exported → {output_path}")


def _format_excel_grid(writer: Any, sheet_name: str) -> None:
    """Header fill, column widths, alternate row shading, red UNFILLED cells."""
    from openpyxl.styles import Alignment, Font, PatternFill

    ws = writer.sheets[sheet_name]
    header_fill = PatternFill("solid", fgColor="1F4E79")
    header_font = Font(bold=True, color="FFFFFF")

    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    for col in ws.columns:
        max_len = max((len(str(c.value)) for c in col if c.value), default=8)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 30)

    alt = PatternFill("solid", fgColor="EBF3FB")
    unfilled_font = Font(bold=True, color="C00000")
    for i, row in enumerate(ws.iter_rows(min_row=2), start=2):
        for cell in row:
            if i % 2 == 0:
                cell.fill = alt
            if isinstance(cell.value, str) and "UNFILLED" in cell.value:
                cell.font = unfilled_font


# ---------------------------------------------------------------------------
# Diagnostics Report
# ---------------------------------------------------------------------------

def format_diagnostics_report(
    result: PlanningResult,
    load: Optional[Dict[str, Dict[str, int]]] = None,
) -> str:
    """
    Text report of one planning run.

    Args:
        result: PlanningResult
        load:   Optional engine.calculate_load() output for a per-employee table
    """
    stats = result.stats
    gate = "✓ PUBLISH ALLOWED" if result.publish_allowed else "✗ PUBLISH BLOCKED"
    sep = "=" * 70
    rule = "─" * 70

    lines = [
        sep,
        f"  WEEKLY PLAN DIAGNOSTICS — {result.year}-W{result.week:02d} "
        f"({result.date_from.isoformat()} … {result.date_to.isoformat()})",
        sep,
        "",
        f"  Generated assignments: {stats.get('generatedAssignments', 0)}",
        f"  Existing assignments:  {stats.get('existingAssignments', 0)}",
        f"  Unfilled slots:        {stats.get('unfilledSlots', 0)}",
        f"  Hard conflicts:        {stats.get('hardConflicts', 0)}",
        f"  Soft conflicts:        {stats.get('softConflicts', 0)}",
        f"  {gate}",
        "",
        rule,
        "  Unfilled Slots",
        rule,
    ]

    if result.unfilled_slots:
        for u in result.unfilled_slots:
            marker = "✗" if u.blocks_publish else "·"
            reasons = ", ".join(get_reason_label(c) for c in u.reason_codes)
            lines.append(f"  {marker} {u.date.isoformat()} {u.workplace_name:<24} {reasons}")
            if u.candidates_blocked_by:
                blocked = ", ".join(get_reason_label(c) for c in u.candidates_blocked_by)
                lines.append(f"      candidates blocked by: {blocked}")
            hint = get_reason_meta(u.reason_codes[0]).action_hint if u.reason_codes else None
            if hint:
                lines.append(f"      → {hint}")
    else:
        lines.append("  (none)")

    lines += ["", rule, "  Violations", rule]
    if result.violations:
        for v in result.violations:
            lines.append(f"  {v}")
    else:
        lines.append("  (none)")

    if load:
        lines += [
            "",
            rule,
            "  Load This Week",
            rule,
            f"  {'Name':<28} {'Existing':>8} {'Generated':>10} {'Total':>6}",
        ]
        for name in sorted(load, key=lambda n: (-load[n]["total"], n)):
            entry = load[name]
            lines.append(
                f"  {name:<28} {entry['existing']:>8d} {entry['generated']:>10d} {entry['total']:>6d}"
            )

    lines.append("")
    lines.append(sep)
    return "\n".join(lines)


def export_diagnostics_report(
    result: PlanningResult,
    output_path: Path,
    load: Optional[Dict[str, Dict[str, int]]] = None,
) -> str:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report_text = format_diagnostics_report(result, load)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_text)
    logger.info(f"Diagnostics report exported → {output_path}")
    return report_text
