#!/usr/bin/env python3
"""
Create the registry schema in the configured database.

Usage:
  python3 scripts/init_db.py [--config PATH] [--database-url URL] [--drop]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the document registry schema")
    p.add_argument("--config", default=None, help="Settings YAML (default: registry_config/sets/default.yaml)")
    p.add_argument("--database-url", default=None, help="Override database.url from the settings")
    p.add_argument("--drop", action="store_true", help="Drop all registry tables first (destroys data)")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from registry_config import get_active_config
    from registry_kernel.db.engine import create_tables, drop_tables, init_engine_from_url
    from registry_kernel.logging_config import configure_logging

    configure_logging()
    config = get_active_config(args.config)
    url = args.database_url or config.database.url

    init_engine_from_url(url, echo=config.database.echo_sql)
    if args.drop:
        drop_tables()
        print("Dropped registry tables")
    create_tables()
    print(f"Schema ready at {url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
