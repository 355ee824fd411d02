#!/usr/bin/env python3
"""
Dry Run - Apply auto-fill to a grid snapshot without touching the backend

Usage:
  python scripts/run_dry_run.py --snapshot grid.json --patient P1 --professional prof-1 \
      --start 2024-01-01 --end 2024-01-31

Outputs to outputs/ directory.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from shift_grid.dry_run import cli

if __name__ == "__main__":
    cli()
