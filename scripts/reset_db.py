#!/usr/bin/env python3
"""
Create (or recreate) the supply ledger schema for the configured database.

Reads ``database.url`` from the configuration set, creates every table and,
with ``--reset``, drops the existing ones first.  Optionally seeds one
distribution center so a fresh database is usable right away.

Usage:
  python3 scripts/reset_db.py [--config PATH] [--reset] [--seed-cd CODE NAME]
"""

import argparse
import sys
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the supply ledger schema from the config set")
    p.add_argument("--config", type=Path, default=None, help="YAML configuration set (default: sets/default.yaml)")
    p.add_argument("--reset", action="store_true", help="Drop every table before creating the schema")
    p.add_argument("--seed-cd", nargs=2, metavar=("CODE", "NAME"), help="Create a distribution center unit")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from supply_config import get_active_config
    from supply_kernel.db.engine import reset_engine
    from supply_kernel.domain.dtos import Unit
    from supply_kernel.logging_config import configure_logging
    from supply_services.bootstrap import open_sql_repository

    configure_logging()
    config = get_active_config(args.config)
    repo = open_sql_repository(config, reset=args.reset)

    if args.seed_cd:
        code, name = args.seed_cd
        unit = repo.add_unit(Unit(uuid4(), code, name, is_distribution_center=True))
        print(f"  Created distribution center {unit.code} ({unit.id})")

    print(f"  Schema ready on {config.database.url}")
    reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
