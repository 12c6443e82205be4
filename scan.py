#!/usr/bin/env python3
"""
Crawl-and-test CLI
Usage: python scan.py http://localhost:3000 [--seed /] [--max-retries 3] [--json] [--report FILE]
"""

import argparse
import asyncio
import json
import logging
import sys

from rich.logging import RichHandler

from crawlqa.config import RunConfig
from crawlqa.core.gateway import SetupError
from crawlqa.core.report import print_report
from crawlqa.core.runner import run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Autonomous crawl-and-test scheduler for web applications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  python scan.py http://localhost:3000\n"
               "  python scan.py http://localhost:3000 --seed /products --report report.json\n"
               "  python scan.py https://staging.example.com --max-retries 1 --headful",
    )
    parser.add_argument("url", help="Origin of the web application to test")
    parser.add_argument("--seed", default="/", help="Path to start from (default: /)")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Retries for a page that keeps showing defects (default: 3)")
    parser.add_argument("--unbounded", action="store_true",
                        help="Retry defective pages forever (the run may never finish)")
    parser.add_argument("--timeout", type=int, default=None,
                        help="Navigation timeout in seconds (default: 20)")
    parser.add_argument("--headful", action="store_true", help="Run the browser visibly")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON instead of a table")
    parser.add_argument("--report", default=None, help="Also write the JSON report to this file")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase logging, can be passed multiple times")
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    overrides = {
        "seed_path": args.seed,
        "report_path": args.report,
        "navigation_timeout_ms": args.timeout * 1000 if args.timeout else None,
        "headless": False if args.headful else None,
    }
    if args.unbounded:
        overrides["max_retries"] = None
    elif args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    return RunConfig.from_env(args.url, **overrides)


def main(argv=None):
    args = build_parser().parse_args(argv)

    level_map = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}
    logging.basicConfig(
        level=level_map.get(args.verbose, logging.DEBUG),
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )

    config = config_from_args(args)

    if not args.json:
        print(f"\n  Testing {config.base_url} from {config.seed_path}")
        retries = "unbounded" if config.max_retries is None else config.max_retries
        print(f"  Max retries: {retries} | Mode: {'headless' if config.headless else 'headful'}\n")

    progress = None if args.json else _cli_progress
    try:
        report = asyncio.run(run(config.base_url, config=config, on_progress=progress))
    except SetupError as e:
        print(f"\n  Setup failed: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n  Run interrupted by user", file=sys.stderr)
        sys.exit(130)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)
    sys.exit(1 if report.failed_work else 0)


def _cli_progress(event_type: str, data: dict):
    if event_type == "executing_item":
        attempt = data.get("attempt", 0)
        retry = f" (retry {attempt})" if attempt else ""
        print(f"   [{data.get('pending', 0)} pending] {data.get('kind', '')} {data.get('path', '')}{retry}")
    elif event_type == "route_discovered":
        print(f"         -> Discovered {data.get('path', '')[:60]}")
    elif event_type == "defect_found":
        print(f"         [DEFECT] {data.get('severity', '')} {data.get('description', '')[:80]}")
    elif event_type == "item_failed":
        print(f"         [FAILED] {data.get('reason', '')[:100]}")
    elif event_type == "run_complete":
        print(f"\n   Done: {data.get('completed', 0)} tests, {data.get('discovered', 0)} routes, "
              f"{data.get('defects', 0)} defects\n")


if __name__ == "__main__":
    main()
