"""
Run the file-processing worker.

Usage:
    stock-file-worker                       # poll until interrupted
    stock-file-worker --once                # one tick, then exit
    stock-file-worker --config prod.yaml    # alternate settings file
    stock-file-worker --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
import sys

from stock_config import get_active_settings
from stock_kernel.logging_config import configure_logging, get_logger

from stock_batch.orchestrator import FileWorkerOrchestrator

logger = get_logger("batch.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stock-file-worker",
        description="Process queued order file uploads and charge material stock.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Settings YAML (default: $STOCK_CONFIG_PATH or the packaged defaults)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll and exit",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before starting (local runs)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level))

    try:
        settings = get_active_settings(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    orchestrator = FileWorkerOrchestrator.from_settings(
        settings, create_tables=args.create_tables,
    )
    worker = orchestrator.create_worker()

    try:
        if args.once:
            handled = worker.tick()
            logger.info("file_worker_single_tick", extra={"handled": handled})
            return 0
        worker.run_forever()
    except KeyboardInterrupt:
        worker.stop(timeout=0)
    finally:
        orchestrator.database.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
