from __future__ import annotations

import argparse

from sweepforge.config import ConfigFormat
from sweepforge.config.types import DEFAULT_ENTRYPOINT, DEFAULT_RETRY_LIMIT, DEFAULT_TOOL_PATH


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sweepforge")

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config file (default: config.<format>)",
    )
    parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in ConfigFormat],
        default=None,
        help="Config file format, inferred from the extension when omitted",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress (-v) or every task (-vv)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # plan
    subparsers.add_parser("plan", help="Print the command of every task")

    # run
    run = subparsers.add_parser("run", help="Build the tool and run the sweep")
    run.add_argument(
        "--tool-path",
        default=None,
        help=f"Directory holding the tool entrypoint (default: {DEFAULT_TOOL_PATH})",
    )
    run.add_argument(
        "--entrypoint",
        default=None,
        help=f"Name of the build/run script inside the tool directory (default: {DEFAULT_ENTRYPOINT})",
    )
    run.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Maximum concurrent invocations (default: CPU count)",
    )
    run.add_argument(
        "--retry-limit",
        type=int,
        default=None,
        help=f"Maximum attempts per task (default: {DEFAULT_RETRY_LIMIT})",
    )
    run.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-invocation timeout in seconds",
    )
    run.add_argument(
        "--no-build",
        action="store_true",
        help="Skip the build step",
    )
    run.add_argument(
        "--no-cancel-on-abort",
        action="store_true",
        help="Leave running invocations alone when the sweep aborts",
    )
    run.add_argument(
        "--show-output",
        action="store_true",
        help="Print the stdout of every task",
    )

    return parser
