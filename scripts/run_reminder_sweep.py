#!/usr/bin/env python3
"""Run one reminder sweep. Schedule it from cron or any periodic job runner."""

from __future__ import annotations

import argparse
import logging
import sys

from booking_engine.core.config import settings
from booking_engine.core.log_config import configure_logging
from booking_engine.wiring.dependencies import get_reminder_sweep


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Send reminders for upcoming confirmed bookings.")
    parser.add_argument(
        "--hours",
        type=float,
        default=settings.REMINDER_HOURS_BEFORE,
        help="Remind bookings starting within this many hours (default: %(default)s)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    logger = logging.getLogger("run_reminder_sweep")

    report = get_reminder_sweep().run_sweep(args.hours)
    logger.info("Sweep done: sent=%s failed=%s skipped=%s", report.sent, report.failed, report.skipped)
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
