#!/usr/bin/env python3
"""
Dry Run - Preview the weekly workplace plan without persisting (DEFAULT mode)

Usage:
  python scripts/run_dry_run.py --year 2026 --week 12
  python scripts/run_dry_run.py --year 2026 --week 12 --apply

Outputs to output/ directory.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from weekly_planner.dry_run import main

if __name__ == "__main__":
    main()
