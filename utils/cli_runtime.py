"""CLI/runtime bootstrap helpers for docker-chaos."""

from __future__ import annotations

import argparse
import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from core.deadline import DeadlinePolicy

DEFAULT_DURATION_MS = 30000


def configure_windows_console_utf8() -> None:
    """Best-effort UTF-8 console setup for Windows terminals."""
    if sys.platform != "win32":
        return

    try:
        if hasattr(sys.stdout, "reconfigure"):
            stdout: Any = sys.stdout
            stderr: Any = sys.stderr
            stdout.reconfigure(encoding="utf-8")
            stderr.reconfigure(encoding="utf-8")
        os.system("chcp 65001 >nul 2>&1")
    except (OSError, ValueError):
        # Terminal-dependent setup; safe fallback is default encoding.
        pass


def default_log_path() -> Path:
    """Timestamped directory under the system temp dir, e.g. /tmp/logs-20240101T120000."""
    stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
    return Path(tempfile.gettempdir()) / f"logs-{stamp}"


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number, got {value}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"cannot be negative, got {value}")
    return number


def _non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"cannot be negative, got {value}")
    return number


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the docker-chaos CLI parser."""
    parser = argparse.ArgumentParser(
        prog="docker-chaos",
        description="Run a test command against a docker-compose project while scaling its services "
                    "according to a chaos plan.",
        epilog="Examples:\n"
        "  docker-chaos --plan plan.json --projectName shop ./run-tests.sh\n"
        "  docker-chaos --plan plan.json --projectName shop --duration 600000 \"./run-tests.sh --smoke\"\n"
        "  docker-chaos --plan plan.json --projectName shop --show-plan",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--composeFile", "--compose-file", dest="compose_file",
                        default=None, help="docker-compose file (default: ./docker-compose.yml)")
    parser.add_argument("--plan", dest="plan", help="Chaos plan JSON file (required)")
    parser.add_argument("--logPath", "--log-path", dest="log_path", default=None,
                        help="Directory for captured logs; must not exist (default: timestamped temp dir)")
    parser.add_argument("--duration", type=_positive_int, default=DEFAULT_DURATION_MS,
                        help=f"Run duration in milliseconds (default: {DEFAULT_DURATION_MS})")
    parser.add_argument("--projectName", "--project-name", dest="project_name",
                        help="docker-compose project name (required)")
    parser.add_argument("--config", "-c", help="Path to config.json with run tunables")
    parser.add_argument("--max-retries", type=_non_negative_int, default=None,
                        help="Give up after this many consecutive test failures (default: never)")
    parser.add_argument("--retry-backoff", type=_non_negative_float, default=None,
                        help="Seconds to wait after the first failed test run, doubling after each failure "
                             "(default: 0, retry immediately)")
    parser.add_argument("--on-deadline", choices=DeadlinePolicy.choices(), default=None,
                        help="What to do when the duration elapses: continue (only stop log capture), "
                             "drain (finish the current step and exit) or abort (kill the current step and exit)")
    parser.add_argument("--halt-on-scenario-failure", action="store_true",
                        help="Stop with an error when a scenario cannot be applied")
    parser.add_argument("--show-plan", action="store_true",
                        help="Print the scenarios and their scale commands and exit")
    parser.add_argument("--skip-tool-check", action="store_true",
                        help="Do not check that the compose tool is installed")
    parser.add_argument("command", nargs=argparse.REMAINDER,
                        help="Test command to run (quote it or put it last)")
    return parser
