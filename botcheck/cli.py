"""Command-line entry point: run one verification and map it to an exit code."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from botcheck.core.config import Settings
from botcheck.core.logging import get_logger, setup_logging
from botcheck.orchestrator import RunReport, Verifier
from botcheck.services.control_plane import ControlPlaneClient
from botcheck.services.presence import PresenceQueryClient


logger = get_logger("cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="botcheck",
        description="Verify that a managed bot can be spawned and shows up on the voice server.",
    )
    parser.add_argument(
        "--settle-mode",
        choices=["poll", "fixed"],
        help="fixed (default): wait settle-delay and check presence once; poll: retry until found or timed out",
    )
    parser.add_argument(
        "--login-checks-status",
        action="store_true",
        default=None,
        help="reject non-200 login responses instead of only decoding the token",
    )
    parser.add_argument("--password-file", help="path of the admin password file")
    parser.add_argument("--nickname", help="nickname marker to assign and look for")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument(
        "--json", action="store_true", help="print the run report as JSON on stdout"
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line overrides applied."""
    overrides: dict[str, Any] = {
        "settle_mode": args.settle_mode,
        "login_checks_status": args.login_checks_status,
        "password_file": args.password_file,
        "expected_nickname": args.nickname,
        "log_level": args.log_level,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def install_signal_handlers(stop_event: threading.Event) -> None:
    def _stop(signum, frame):
        logger.warning(f"Received signal {signum}, stopping")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _stop)


def exit_code_for(report: RunReport) -> int:
    if report.succeeded:
        return EXIT_OK
    if report.cancelled:
        return EXIT_CANCELLED
    return EXIT_FAILED


def run(settings: Settings, stop_event: Optional[threading.Event] = None) -> RunReport:
    with ControlPlaneClient.from_settings(settings) as control_plane:
        verifier = Verifier(
            settings,
            control_plane,
            PresenceQueryClient.from_settings(settings),
            stop_event=stop_event,
        )
        return verifier.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return EXIT_CONFIG

    # Keep stdout clean for the JSON report.
    setup_logging(settings, stream=sys.stderr if args.json else None)

    stop_event = threading.Event()
    install_signal_handlers(stop_event)

    report = run(settings, stop_event)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    elif not report.succeeded:
        print(f"Failed: {report.message}", file=sys.stderr)

    return exit_code_for(report)


if __name__ == "__main__":
    sys.exit(main())
