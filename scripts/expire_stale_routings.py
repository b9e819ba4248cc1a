#!/usr/bin/env python3
"""
Flag routings that were sent but never answered within the expiry window.

Meant to run on a schedule (cron, systemd timer) every few minutes.  Safe to
run concurrently with request traffic and with itself: records already
flagged are skipped.

Usage:
  python3 scripts/expire_stale_routings.py [--config PATH] [--hours HOURS]
                                           [--database-url URL]
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Flag stale in-flight document routings")
    p.add_argument("--config", default=None, help="Settings YAML (default: registry_config/sets/default.yaml)")
    p.add_argument(
        "--hours",
        type=float,
        default=None,
        help="Expiry window in hours (default: workflow.routing_expiry_hours from the settings)",
    )
    p.add_argument("--database-url", default=None, help="Override database.url from the settings")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from registry_config import get_active_config
    from registry_kernel.db.engine import init_engine_from_url
    from registry_kernel.db.immutability import register_immutability_listeners
    from registry_kernel.logging_config import configure_logging
    from registry_kernel.services.registratura_service import RegistraturaService

    configure_logging()
    config = get_active_config(args.config)

    hours = args.hours if args.hours is not None else config.workflow.routing_expiry_hours
    if hours <= 0:
        print("ERROR: --hours must be positive", file=sys.stderr)
        return 2

    init_engine_from_url(
        args.database_url or config.database.url,
        echo=config.database.echo_sql,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    register_immutability_listeners()

    facade = RegistraturaService.from_config(config)
    expired = facade.expire_stale_routings(timedelta(hours=hours))
    print(f"Flagged {expired} stale routing(s) older than {hours:g}h")
    return 0


if __name__ == "__main__":
    sys.exit(main())
