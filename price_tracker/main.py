from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from . import config, emailer
from .scheduler import build_scheduler
from .tracker import Tracker


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="price-tracker",
        description="Track product prices and stock and email a daily digest.",
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Start the scheduler (default).")
    sub.add_parser("scrape", help="Queue every tracked product and scrape it now.")
    sub.add_parser("report", help="Generate and send today's digest now.")
    lookup = sub.add_parser("lookup", help="Scrape one product code and store the result.")
    lookup.add_argument("code")
    test_email = sub.add_parser("test-email", help="Send a test message to ADDRESS.")
    test_email.add_argument("address")
    return parser


def _print_lookup(tracker: Tracker, code: str) -> int:
    result = tracker.lookup(code)
    if result.error is not None and not result.not_found:
        print(f"{code}: {result.error}", file=sys.stderr)
        return 1
    status = tracker.reconcile(result)
    if result.not_found:
        print(f"{code}: not found ({status.value})")
        return 0
    print(f"{code}: {result.product.name} ({status.value})")
    for s in result.product.styles:
        print(f"  {s.colour} / {s.size}: {s.price} (stock {s.stock})")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Initialise the tracker and run the requested command."""
    args = _build_parser().parse_args(argv)
    config.validate()
    setup_logging()
    logger = logging.getLogger(__name__)

    if args.command == "test-email":
        return 0 if emailer.send_test_email(args.address) else 1

    logger.info("Initializing database at %s…", config.SQLITE_DB_PATH)
    tracker = Tracker.from_config()
    try:
        if args.command == "scrape":
            tracker.reseed_jobs()
            summary = tracker.run_cycle()
            return 1 if summary.retry else 0
        if args.command == "report":
            tracker.send_daily_report()
            return 0
        if args.command == "lookup":
            return _print_lookup(tracker, args.code)

        scheduler = build_scheduler(tracker)
        logger.info("Scraper starts working; jobs: %s", ", ".join(j.id for j in scheduler.get_jobs()))
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Shutdown signal received; stopping scheduler")
        return 0
    finally:
        tracker.close()


if __name__ == "__main__":
    sys.exit(main())
