"""
dry_run.py — Auto-fill preview on a saved grid snapshot (no backend calls)

Full orchestration:
  1. Load a grid snapshot (JSON) into an AssignmentStore
  2. Build the auto-fill config from the command line
  3. Propose and apply the auto-fill batch
  4. Summarize per professional
  5. Export CSV, Excel, summary report and the updated snapshot
  6. Print summary to console

Snapshot format:
  {
    "regime": "12h",
    "min_editable_date": "2024-01-10",          (optional)
    "assignments": {"<patient>|<yyyy-mm-dd>|<slot>": {assignment record}, ...}
  }

Usage:
  python -m shift_grid.dry_run --snapshot grid.json --patient P1 --professional prof-1 \
      --start 2024-01-01 --end 2024-01-31 --slots 0,1 --policy skip-occupied
"""

import argparse
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from shift_grid.autofill import AutoFillConfig, AutoFillEngine, OverwritePolicy
from shift_grid.config import MAX_HISTORY, PROJECT_ROOT, load_settings
from shift_grid.exporter import export_summary_report, export_to_csv, export_to_excel
from shift_grid.history import HistoryLog
from shift_grid.slots import Regime, slots_for_regime
from shift_grid.store import Assignment, AssignmentMap, AssignmentStore
from shift_grid.summary import summarize

logger = logging.getLogger(__name__)

OUTPUTS_DIR = PROJECT_ROOT / "outputs"


# ---------------------------------------------------------------------------
# Snapshot I/O
# ---------------------------------------------------------------------------

def load_snapshot(path: Path) -> Tuple[AssignmentMap, Dict[str, Any]]:
    """Return (assignment map, metadata) from a snapshot file."""
    if not path.exists():
        raise FileNotFoundError(f"Snapshot not found: {path}")
    with open(path) as f:
        data = json.load(f)

    mapping = {
        key: Assignment.from_record(record)
        for key, record in data.get("assignments", {}).items()
    }
    meta = {k: v for k, v in data.items() if k != "assignments"}
    logger.info(f"Loaded snapshot with {len(mapping)} assignments from {path}")
    return mapping, meta


def save_snapshot(
    store: AssignmentStore,
    path: Path,
    regime: Regime,
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {"regime": regime.value}
    if store.min_editable_date:
        data["min_editable_date"] = store.min_editable_date.isoformat()
    data["assignments"] = {key: a.to_record() for key, a in sorted(store.items())}
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Snapshot saved → {path}")


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def run_dry_run(
    snapshot: Tuple[AssignmentMap, Dict[str, Any]],
    patient_id: str,
    config: AutoFillConfig,
    output_dir: Path,
    max_history: int = MAX_HISTORY,
) -> Dict[str, Any]:
    """
    Apply auto-fill to a loaded snapshot (output of load_snapshot) and
    export the result.

    Returns: {"proposed", "summary", "outputs"}
    """
    mapping, meta = snapshot
    min_editable = meta.get("min_editable_date")
    store = AssignmentStore(
        history=HistoryLog(max_checkpoints=max_history),
        user_id="dry-run",
        min_editable_date=date.fromisoformat(min_editable) if min_editable else None,
    )
    store.reset(mapping)

    batch = AutoFillEngine(store).apply(patient_id, config)
    patient_items = [(k, a) for k, a in store.items() if k.startswith(f"{patient_id}|")]
    summary = summarize(patient_items, config.regime)
    cleared = sum(1 for _k, a in patient_items if a.is_empty)

    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = f"{patient_id}_{config.date_range[0].isoformat()}_{config.date_range[1].isoformat()}"
    outputs = {
        "csv":      output_dir / f"{prefix}_schedule.csv",
        "excel":    output_dir / f"{prefix}_schedule.xlsx",
        "report":   output_dir / f"{prefix}_summary.txt",
        "snapshot": output_dir / f"{prefix}_snapshot.json",
    }
    export_to_csv(patient_items, outputs["csv"], config.regime)
    export_to_excel(patient_items, outputs["excel"], config.regime)
    export_summary_report(summary, outputs["report"], title=patient_id, unassigned=cleared)
    save_snapshot(store, outputs["snapshot"], config.regime)

    return {"proposed": batch, "summary": summary, "outputs": outputs}


def _print_summary(result: Dict[str, Any]) -> None:
    sep = "━" * 46
    print(f"\n{sep}")
    print("  AUTO-FILL DRY RUN")
    print(sep)
    print(f"  Cells written : {len(result['proposed'])}")
    for row in result["summary"]:
        print(f"  {row['professional_name']:<24} slots={row['slots']:<4d} hours={row['hours']}")
    print()
    for kind, path in result["outputs"].items():
        print(f"  {kind:<9}→ {path}")
    print(sep + "\n")


def _parse_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Auto-fill dry run on a grid snapshot (no backend calls)"
    )
    parser.add_argument("--snapshot",     required=True, help="Grid snapshot JSON")
    parser.add_argument("--patient",      required=True, help="Patient id")
    parser.add_argument("--professional", required=True, help="Professional id to assign")
    parser.add_argument("--start",        required=True, help="Start date YYYY-MM-DD")
    parser.add_argument("--end",          required=True, help="End date YYYY-MM-DD")
    parser.add_argument("--regime",       default=None,  choices=[r.value for r in Regime],
                        help="Regime (default: snapshot's, else 24h)")
    parser.add_argument("--slots",        default=None,  help="Comma-separated slot indices (default: all)")
    parser.add_argument("--policy",       default=OverwritePolicy.SKIP_OCCUPIED.value,
                        choices=[p.value for p in OverwritePolicy])
    parser.add_argument("--rotation",     default=None,  help="Comma-separated professional ids to rotate")
    parser.add_argument("--days-per-professional", type=int, default=1)
    parser.add_argument("--weekdays",     default=None,  help="Comma-separated weekdays, Monday=0")
    parser.add_argument("--demand",       default=None,  help="Source demand id stamped on new cells")
    parser.add_argument("--output-dir",   default=None,  help="Output directory (default: outputs/)")
    parser.add_argument("--settings",     default=None,  help="Settings JSON (default: config/grid_settings.json)")
    return parser


def main(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)

    settings = load_settings(Path(args.settings) if args.settings else None)
    snapshot = load_snapshot(Path(args.snapshot))
    meta = snapshot[1]
    regime = Regime(args.regime or meta.get("regime") or Regime.H24.value)

    slot_indices = (
        [int(s) for s in _parse_list(args.slots)]
        if args.slots else list(range(len(slots_for_regime(regime))))
    )
    weekdays = [int(d) for d in _parse_list(args.weekdays)] if args.weekdays else range(7)

    config = AutoFillConfig(
        professional_id=args.professional,
        regime=regime,
        date_range=(date.fromisoformat(args.start), date.fromisoformat(args.end)),
        slot_indices=frozenset(slot_indices),
        overwrite_policy=args.policy,
        rotation=tuple(_parse_list(args.rotation)),
        days_per_professional=args.days_per_professional,
        weekdays=frozenset(weekdays),
        source_demand_id=args.demand,
    )

    output_dir = Path(args.output_dir) if args.output_dir else OUTPUTS_DIR
    result = run_dry_run(snapshot, args.patient, config, output_dir, max_history=settings["max_history"])
    _print_summary(result)
    return result


def cli() -> None:
    main()


if __name__ == "__main__":
    cli()
