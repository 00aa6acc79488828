#!/usr/bin/env python3
"""
Command line entry point for the fault recovery system.

Runs recovery for one classified error and exits with a status code
reflecting the outcome: 0 for success, 1 for partial, 2 for failure.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from fault_recovery.models import ErrorKind, RecoveryOutcome


EXIT_CODES = {
    RecoveryOutcome.SUCCESS: 0,
    RecoveryOutcome.PARTIAL: 1,
    RecoveryOutcome.FAILED: 2,
}

# Kinds whose strategy acts on a file or device path
TARGETED_KINDS = {ErrorKind.FILE_ACCESS, ErrorKind.DEVICE_BUSY, ErrorKind.TEXT_BUSY}


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None):
    """Set up application logging."""
    log_dir = log_dir or Path.home() / ".fault-recovery" / "logs"
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / 'fault_recovery.log'))
    except OSError as e:
        print(f"Cannot write log files to {log_dir}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="fault-recovery",
        description="Recover from a classified process error"
    )
    parser.add_argument(
        "kind",
        choices=[kind.value for kind in ErrorKind],
        help="Error kind to recover from"
    )
    parser.add_argument(
        "--target",
        help="File or device path overriding the configured target "
             "(file_access, device_busy and text_busy only)"
    )
    parser.add_argument("--config-dir", help="Directory holding recovery_config.json")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    from fault_recovery.config import ConfigManager
    from fault_recovery.error_handling import CancellationToken
    from fault_recovery.recovery import RecoveryDispatcher

    token = CancellationToken()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, cancelling recovery...")
        token.cancel()

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, 'SIGTERM'):
        signal.signal(signal.SIGTERM, signal_handler)

    settings = ConfigManager(args.config_dir).load_settings()
    dispatcher = RecoveryDispatcher(settings)

    kind = ErrorKind.parse(args.kind)
    if args.target and kind not in TARGETED_KINDS:
        logger.warning(f"--target is ignored for error type {kind.value}")

    logger.info(f"Starting recovery for {kind.value}")
    outcome = dispatcher.recover(kind, target=args.target, token=token)

    print(f"Recovery {outcome.label} for error type {kind.value}")
    return EXIT_CODES[outcome]


if __name__ == "__main__":
    sys.exit(main())
