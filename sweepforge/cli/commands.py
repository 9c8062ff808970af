from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Mapping

from sweepforge.config import ConfigFormat, ExecutorOptions, load_groups
from sweepforge.errors import ConfigError, NotFoundError, SweepError, UnsupportedOptionError
from sweepforge.executor import Executor, ProgressCounter, Task
from sweepforge.sweep import ExecutionPlan, GridConfig

from .args import build_parser


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        _configure_logging(args.verbose)

        match args.command:
            case "plan":
                return cmd_plan(args)
            case "run":
                return cmd_run(args)
            case _:
                return 2

    except (ConfigError, NotFoundError, UnsupportedOptionError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except SweepError as exc:
        print(f"FAIL {exc}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        return 130


def cmd_plan(args: argparse.Namespace) -> int:
    options = _options(args).resolve()
    raw = load_groups(options.config_path, options.config_format)
    plan = ExecutionPlan.from_raw(raw, GridConfig.from_mapping)
    for group, param in plan.work_items():
        print(f"{group}: {param.build_cmd()}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    options = _options(args)
    progress = ProgressCounter(log=True)
    executor = Executor.from_options(options, progress=progress)
    progress.total = len(executor.plan)

    try:
        results = executor.execute(build=not args.no_build)
    except SweepError:
        _print_results(executor.results, show_output=False, label="PARTIAL")
        raise

    _print_results(results, show_output=args.show_output)
    return 0


def _options(args: argparse.Namespace) -> ExecutorOptions:
    # Flags left unset fall back to the ExecutorOptions defaults.
    overrides = {
        "tool_path": getattr(args, "tool_path", None),
        "entrypoint": getattr(args, "entrypoint", None),
        "task_concurrent": getattr(args, "jobs", None),
        "retry_limit": getattr(args, "retry_limit", None),
        "task_timeout": getattr(args, "timeout", None),
    }
    return ExecutorOptions(
        config_path=Path(args.config) if args.config else None,
        config_format=ConfigFormat(args.format) if args.format else None,
        cancel_on_abort=not getattr(args, "no_cancel_on_abort", False),
        **{key: value for key, value in overrides.items() if value is not None},
    )


def _print_results(
    results: Mapping[str, tuple[Task, ...]], *, show_output: bool, label: str = "OK"
) -> None:
    for group in sorted(results):
        tasks = results[group]
        print(f"{label} {group}: {len(tasks)} task(s)")
        if show_output:
            for task in tasks:
                print(f"  $ {task.param.build_cmd()}")
                for line in task.stdout.splitlines():
                    print(f"  {line}")


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
