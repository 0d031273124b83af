"""Command line access to landops reports and status sync.

Usage examples::

    landops summary <event-id>
    landops sync-status <event-id>
    landops hours <event-id>
    landops performance <event-id> --start 2024-05-01 --end 2024-05-31
    landops weekly <user-id> --last
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from landops.cache import clear_all
from landops.config import load_settings
from landops.data_sanitize import assert_jsonable, clean_jsonable
from landops.logging_setup import setup_logging
from landops.services import events, reports, tasks
from landops.utils.supa import SupabaseConfigError, SupabaseConnectionError

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="landops", description="Landscaping operations reports")
    parser.add_argument("--log-level", default=None, help="Console log level (default from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("summary", help="Event progress, materials and equipment")
    p.add_argument("event_id")

    p = sub.add_parser("sync-status", help="Re-derive the event status from task progress")
    p.add_argument("event_id")

    p = sub.add_parser("hours", help="Hours worked per user and task")
    p.add_argument("event_id")

    p = sub.add_parser("performance", help="Project hours between two dates")
    p.add_argument("event_id")
    p.add_argument("--start", required=True, help="First day (YYYY-MM-DD)")
    p.add_argument("--end", required=True, help="Last day (YYYY-MM-DD)")

    p = sub.add_parser("weekly", help="Worker hours for the current work week")
    p.add_argument("user_id")
    p.add_argument("--last", action="store_true", help="Previous work week instead")

    return parser.parse_args(argv)


def _run(args: argparse.Namespace) -> Any:
    if args.command == "summary":
        return events.event_overview(args.event_id)
    if args.command == "sync-status":
        return {"event_id": args.event_id, "status": tasks.sync_event_status(args.event_id)}
    if args.command == "hours":
        return reports.hours_worked(args.event_id)
    if args.command == "performance":
        return reports.project_performance(args.event_id, args.start, args.end)
    if args.command == "weekly":
        return reports.weekly_worker_hours(args.user_id, last_week=args.last)
    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_file)
    clear_all()

    try:
        payload = clean_jsonable(_run(args))
        assert_jsonable(payload)
    except (SupabaseConfigError, SupabaseConnectionError) as exc:
        logger.error("%s", exc)
        return 1
    except (LookupError, ValueError, RuntimeError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
