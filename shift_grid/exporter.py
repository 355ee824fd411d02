"""
exporter.py — Export layer for the schedule grid

Outputs:
  - CSV: flat (patient, date, slot, professional, source_demand) rows
  - Excel (.xlsx): date × slot grid with professional names
  - Summary report (.txt): per-professional slots / days / hours

Usage:
  from shift_grid.exporter import export_to_csv, export_to_excel, export_summary_report
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from shift_grid.keys import parse_assignment_key
from shift_grid.slots import Regime, slots_for_regime, to_regime
from shift_grid.store import Assignment

logger = logging.getLogger(__name__)

Entries = Iterable[Tuple[str, Assignment]]


def _rows(entries: Entries, regime: Regime, names: Dict[str, str]) -> List[Dict[str, Any]]:
    slots = slots_for_regime(regime)
    rows = []
    for key, assignment in sorted(entries, key=lambda e: e[0]):
        parts = parse_assignment_key(key)
        label = slots[parts.slot_index].label if parts.slot_index < len(slots) else str(parts.slot_index)
        prof = assignment.professional_id
        rows.append({
            "patient":       parts.patient_id,
            "date":          parts.day.isoformat(),
            "slot_index":    parts.slot_index,
            "slot":          label,
            "professional":  names.get(prof, prof) if prof else "",
            "source_demand": assignment.source_demand_id or "",
        })
    rows.sort(key=lambda r: (r["patient"], r["date"], r["slot_index"]))
    return rows


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_to_csv(
    entries: Entries,
    output_path: Path,
    regime: Union[Regime, str],
    names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export assignments to flat CSV.

    Args:
        entries:      (key, Assignment) pairs, e.g. store.items()
        output_path:  .csv file path
        regime:       regime used for slot labels
        names:        optional professional_id → display name
    """
    import csv
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = ["patient", "date", "slot_index", "slot", "professional", "source_demand"]

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in _rows(entries, to_regime(regime), names or {}):
            writer.writerow(row)

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def export_to_excel(
    entries: Entries,
    output_path: Path,
    regime: Union[Regime, str],
    names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export assignments to an Excel grid: rows=date, columns=slot label,
    cells=professional. Cleared cells show as blank.
    """
    import pandas as pd

    output_path.parent.mkdir(parents=True, exist_ok=True)
    regime = to_regime(regime)
    rows = _rows(entries, regime, names or {})

    df = pd.DataFrame(rows)
    if df.empty:
        df.to_excel(output_path, index=False)
        return

    grid = df.pivot_table(
        index="date",
        columns="slot",
        values="professional",
        aggfunc=lambda x: "; ".join(v for v in x if v),
    )
    slot_order = [s.label for s in slots_for_regime(regime)]
    grid = grid[[s for s in slot_order if s in grid.columns]]

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name="Escala")
        _format_excel_grid(writer, "Escala")

    logger.info(f"Excel exported → {output_path}")


def _format_excel_grid(writer: Any, sheet_name: str) -> None:
    """Header styling and column widths."""
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


# ---------------------------------------------------------------------------
# Summary Report
# ---------------------------------------------------------------------------

def export_summary_report(
    summary: List[Dict[str, Any]],
    output_path: Path,
    title: str = "",
    unassigned: int = 0,
) -> str:
    """
    Write the per-professional summary (output of summary.summarize) as text.

    Returns the report text.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    sep = "=" * 60

    lines = [
        sep,
        f"  SCHEDULE SUMMARY{(': ' + title) if title else ''}",
        sep,
        "",
        f"  {'Professional':<28} {'Slots':>6} {'Days':>6} {'Hours':>7}",
        "─" * 60,
    ]
    for row in summary:
        lines.append(
            f"  {row['professional_name']:<28} {row['slots']:>6d} {row['days']:>6d} {row['hours']:>7d}"
        )
    if not summary:
        lines.append("  (no assignments)")

    lines += [
        "─" * 60,
        f"  Total slots assigned:  {sum(r['slots'] for r in summary)}",
        f"  Cleared slots:         {unassigned}",
        sep,
    ]

    report_text = "\n".join(lines)
    with open(output_path, "w") as f:
        f.write(report_text)

    logger.info(f"Summary report exported → {output_path}")
    return report_text
