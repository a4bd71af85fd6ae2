#!/usr/bin/env python3
"""
Create (or recreate) the billing ledger schema.

Reads the database URL from the ledger settings (``BILLING_LEDGER_CONFIG``,
``BILLING_DATABASE_URL``) unless --db-url is given.

Usage:
  python3 scripts/init_db.py [--config PATH] [--db-url URL] [--drop]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the billing ledger tables")
    p.add_argument("--config", default=None, help="Ledger settings YAML file")
    p.add_argument("--db-url", default=None, help="Database URL (overrides settings)")
    p.add_argument(
        "--drop",
        action="store_true",
        help="Drop every ledger table first (destroys data)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from billing_config import get_active_settings
    from billing_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, reset_engine
    from billing_kernel.logging_config import configure_logging

    try:
        settings = get_active_settings(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    if args.db_url:
        settings = settings.with_overrides(database_url=args.db_url)

    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(settings.database_url, echo=settings.echo_sql)
    try:
        if args.drop:
            drop_tables(engine)
        create_tables(engine)
    finally:
        reset_engine()

    print(f"  Schema ready on {engine.url.render_as_string(hide_password=True)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
