#!/usr/bin/env python3
"""
Create the balance tracker schema in the configured database.

Settings come from balance_config.get_active_settings(): the file named by
--config or BALANCE_TRACKER_CONFIG, else the packaged defaults, with
BALANCE_TRACKER_DATABASE_URL (or --db-url) overriding the database URL.

Usage:
  python3 scripts/init_db.py [--config PATH] [--db-url URL] [--drop]
"""

import argparse
import sys


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the balance tracker schema")
    p.add_argument("--config", default=None, help="Settings YAML file")
    p.add_argument("--db-url", default=None, help="Database URL (overrides settings)")
    p.add_argument(
        "--drop",
        action="store_true",
        help="Drop all tables first. Deletes every period, item and payee.",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from balance_config import get_active_settings
    from balance_kernel.db.engine import build_engine, create_tables, drop_tables
    from balance_kernel.logging_config import configure_logging

    try:
        settings = get_active_settings(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    configure_logging(level=settings.logging.level_number)
    url = args.db_url or settings.database.url
    engine = build_engine(url, echo=settings.database.echo)
    try:
        if args.drop:
            drop_tables(engine)
            print("  Dropped existing tables.")
        create_tables(engine)
        print(f"  Schema ready on {engine.url.render_as_string(hide_password=True)}")
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
