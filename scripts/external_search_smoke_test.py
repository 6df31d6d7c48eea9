#!/usr/bin/env python3
"""
Smoke-test the configured external search producer without Telegram.

Usage:
  python scripts/external_search_smoke_test.py "some term"
  python scripts/external_search_smoke_test.py "some term" --max-lines 20 --show 5
  python scripts/external_search_smoke_test.py "some term" --command "./zindex5 --fast"
"""

import argparse
import asyncio
import shlex
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from aggregator import ProducerError, run_external_search
from config import load_config


async def _run(args: argparse.Namespace) -> int:
    cfg = load_config()
    command = shlex.split(args.command) if args.command else cfg.external_search_command
    max_lines = args.max_lines or cfg.external_search_max_lines
    timeout = args.timeout if args.timeout is not None else cfg.external_search_timeout_sec

    try:
        result = await run_external_search(command, args.term, quota=max_lines, timeout_sec=timeout)
    except ProducerError as exc:
        print(f"[FAIL] {' '.join(command)} -> {exc}")
        return 1

    status = "OK" if result.count else "EMPTY"
    print(
        f"[{status}] {result.count} unique line(s), quota {result.quota}, "
        f"quota reached: {result.quota_reached}, exit code: {result.exit_code}, "
        f"timed out: {result.timed_out}"
    )
    for line in result.lines[: max(0, args.show)]:
        print(f"  {line}")
    if result.stderr_tail:
        print("\nstderr tail:")
        for line in result.stderr_tail:
            print(f"  {line}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Smoke-test the external search producer.")
    parser.add_argument("term", help="Search term passed to the producer.")
    parser.add_argument(
        "--command",
        default="",
        help="Override EXTERNAL_SEARCH_COMMAND for this run.",
    )
    parser.add_argument(
        "--max-lines",
        type=int,
        default=0,
        help="Result quota (defaults to EXTERNAL_SEARCH_MAX_LINES).",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Timeout in seconds (0 disables; defaults to EXTERNAL_SEARCH_TIMEOUT_SEC).",
    )
    parser.add_argument(
        "--show",
        type=int,
        default=10,
        help="Number of result lines to print.",
    )
    args = parser.parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
