"""Command-line entry point for the Sentinel pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Any, Optional, Sequence

from sentinel_pipeline.core.errors import ConfigurationError
from sentinel_pipeline.processing.pipeline import build_default_scheduler

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _persist_flag(args: argparse.Namespace) -> Optional[bool]:
    # 플래그가 없으면 SENTINEL_AUTO_PERSIST 사용
    if args.persist:
        return True
    if args.preview:
        return False
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sentinel-pipeline",
        description="Feed ingestion and AI draft generation",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run cycles on the configured interval until interrupted")

    for name, help_text in (
        ("run-once", "Run a single fetch/score/generate cycle"),
        ("import", "Generate a draft from one feed or article URL"),
    ):
        p = sub.add_parser(name, help=help_text)
        if name == "import":
            p.add_argument("url", help="Feed URL or article URL")
        mode = p.add_mutually_exclusive_group()
        mode.add_argument("--persist", action="store_true", help="Write drafts to the store")
        mode.add_argument("--preview", action="store_true", help="Return previews only")
    return parser


def _serve() -> int:
    scheduler = build_default_scheduler()
    try:
        if not scheduler.start():
            return 0
    except ConfigurationError as e:
        logger.error("❌ %s", e)
        return 2
    try:
        while scheduler.running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping scheduler")
    finally:
        scheduler.stop()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "serve":
        return _serve()

    scheduler = build_default_scheduler()
    if args.command == "run-once":
        summary = scheduler.run_once(persist=_persist_flag(args))
        _print_json(summary.to_dict())
        return 0 if summary.errors == 0 else 1

    result = scheduler.import_url(args.url, persist=_persist_flag(args))
    _print_json(result)
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())
