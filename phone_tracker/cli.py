# phone_tracker/cli.py
"""Command line entry point.

    phone-tracker scheduler            run the recurring jobs until interrupted
    phone-tracker scrape jumia         run one marketplace (or ``all``) now
    phone-tracker clean-data --all     re-classify recent catalog entries
"""
import argparse
import json
import signal
import sys
import threading
from dataclasses import asdict
from .classifier import clean_catalog
from .context import create_context
from .pipeline import run_all_scrapers, run_scraper
from .scrapers.registry import SCRAPERS
from .utils import logger


def _cmd_scheduler(ctx, args):
    stop = threading.Event()

    def _stop(signum, frame):
        logger.info("Shutting down scheduler...")
        stop.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    ctx.job_manager.initialize_jobs()
    ctx.job_manager.start()
    logger.info("Scheduler running, press Ctrl+C to stop")
    stop.wait()
    return 0


def _summary(result):
    data = asdict(result)
    data.pop("data", None)
    return data


def _cmd_scrape(ctx, args):
    if args.marketplace == "all":
        results = run_all_scrapers(ctx)
        print(json.dumps({k: _summary(v) for k, v in results.items()}, indent=2, default=str))
        return 0 if all(r.success for r in results.values()) else 1
    result = run_scraper(ctx, args.marketplace)
    print(json.dumps(_summary(result), indent=2, default=str))
    return 0 if result.success else 1


def _cmd_clean(ctx, args):
    marketplace = "all" if args.all else args.marketplace
    summary = clean_catalog(ctx.session_factory, ctx.classifier, marketplace=marketplace,
                            limit=args.limit, dry_run=args.dry_run, notifier=ctx.notifier)
    print(json.dumps(summary, indent=2))
    return 0


def _cmd_init_db(ctx, args):
    logger.info("Database tables are up to date")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="phone-tracker")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scheduler", help="run recurring scraping jobs").set_defaults(func=_cmd_scheduler)

    scrape = sub.add_parser("scrape", help="run one scraper now")
    scrape.add_argument("marketplace", choices=sorted(SCRAPERS) + ["all"])
    scrape.set_defaults(func=_cmd_scrape)

    clean = sub.add_parser("clean-data", help="re-classify catalog entries")
    clean.add_argument("-m", "--marketplace", default="ouedkniss")
    clean.add_argument("-a", "--all", action="store_true")
    clean.add_argument("-l", "--limit", type=int, default=100)
    clean.add_argument("-d", "--dry-run", action="store_true")
    clean.set_defaults(func=_cmd_clean)

    sub.add_parser("init-db", help="create database tables").set_defaults(func=_cmd_init_db)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    ctx = create_context()
    try:
        return args.func(ctx, args)
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
