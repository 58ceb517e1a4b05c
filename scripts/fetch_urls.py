#!/usr/bin/env python3
"""Command-line entrypoint for fetching or probing a batch of URLs."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from src.batch import RequestEngine
from src.config import AppConfig, REPO_ROOT, load_config
from src.logging_utils import configure_logging, perf_span


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch or probe a batch of URLs.")
    parser.add_argument("urls", nargs="+", help="URLs to request.")
    parser.add_argument(
        "--probe",
        action="store_true",
        help="Only check whether each URL answers with a 2xx/3xx status.",
    )
    parser.add_argument(
        "--method",
        default="GET",
        help="HTTP method for every URL (default: GET).",
    )
    parser.add_argument(
        "--data",
        default=None,
        help="Body sent with non-GET requests.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Parse --data as JSON and send it as application/json.",
    )
    parser.add_argument(
        "--auth",
        default=None,
        help="Basic auth credentials as user:password.",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write response bodies to this file instead of printing sizes.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall timeout per request in seconds (default: REQUEST_TIMEOUT).",
    )
    return parser.parse_args(argv)


def _print_probe(urls: List[str], flags: List[bool]) -> None:
    for url, ok in zip(urls, flags):
        print(f"{'up' if ok else 'down'}\t{url}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config()
    except ValueError as exc:
        fallback = AppConfig(log_directory=REPO_ROOT / "logs", log_level="INFO")
        configure_logging(fallback)
        logging.getLogger(__name__).error("Failed to load configuration: %s", exc)
        return 1

    configure_logging(config)
    engine = RequestEngine.from_config(config)

    if args.probe:
        with perf_span("cli.probe", tags={"urls": len(args.urls)}):
            _print_probe(args.urls, engine.is_available(args.urls))
        return 0

    data = json.loads(args.data) if args.json and args.data is not None else args.data
    sink = open(args.output, "wb") if args.output else None
    try:
        with perf_span("cli.process", tags={"urls": len(args.urls), "method": args.method}):
            result = engine.process(
                args.urls,
                method=args.method.upper(),
                data=data,
                as_json=args.json,
                auth=args.auth,
                file_sink=sink,
                timeout=args.timeout,
            )
    finally:
        if sink is not None:
            sink.close()

    exit_code = 0 if result.complete else 2
    for index, url in enumerate(args.urls):
        info = result.infos.get(index, {})
        status = info.get("http_code", 0)
        if not status:
            exit_code = exit_code or 3
        print(f"{status}\t{info.get('size_download', 0)}\t{url}", file=sys.stdout)
    return exit_code


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    raise SystemExit(main())
