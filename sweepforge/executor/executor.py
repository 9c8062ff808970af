from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Mapping, Protocol

from sweepforge.config import ExecutorOptions, check_config_file, read_groups
from sweepforge.config.types import DEFAULT_RETRY_LIMIT
from sweepforge.errors import InvalidConfigError, JoinError, OutputDecodeError, SweepError
from sweepforge.sweep import Commandable, ConfigFactory, ExecutionPlan, GridConfig

from .progress import NullProgress, ProgressReporter
from .retry import Runner, run_with_retry
from .toolchain import Toolchain
from .types import ResultStore, Task

logger = logging.getLogger(__name__)


class Tool(Runner, Protocol):
    def build(self) -> None: ...

    def open(self) -> None: ...

    def close(self) -> None: ...


class Executor:
    """Runs every parameter set of a plan through the external tool.

    At most `task_concurrent` invocations are in flight at any time. The
    first task that fails for good aborts the whole run; `results` then holds
    whatever had completed before that.
    """

    def __init__(
        self,
        plan: ExecutionPlan,
        toolchain: Tool,
        *,
        task_concurrent: int,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        encoding: str = "utf-8",
        cancel_on_abort: bool = True,
        progress: ProgressReporter | None = None,
    ):
        if task_concurrent < 1:
            raise InvalidConfigError(
                f"task_concurrent must be at least 1, got {task_concurrent}"
            )
        if retry_limit < 0:
            raise InvalidConfigError(f"retry_limit can't be negative, got {retry_limit}")

        self.plan = plan
        self.toolchain = toolchain
        self.task_concurrent = task_concurrent
        self.retry_limit = retry_limit
        self.encoding = encoding
        self.cancel_on_abort = cancel_on_abort
        self.progress = progress or NullProgress()
        self._store = ResultStore(plan.group_names())
        self._cancelled = threading.Event()

    @classmethod
    def from_options(
        cls,
        options: ExecutorOptions,
        config_factory: ConfigFactory = GridConfig.from_mapping,
        progress: ProgressReporter | None = None,
    ) -> Executor:
        opts = options.resolve()
        # A bad config file is reported before a missing tool.
        config_file = check_config_file(opts.config_path, opts.config_format)
        toolchain = Toolchain.locate(
            opts.tool_path, opts.entrypoint, timeout=opts.task_timeout
        )
        raw = read_groups(config_file, opts.config_format)
        plan = ExecutionPlan.from_raw(raw, config_factory)

        return cls(
            plan,
            toolchain,
            task_concurrent=opts.task_concurrent,
            retry_limit=opts.retry_limit,
            encoding=opts.encoding,
            cancel_on_abort=opts.cancel_on_abort,
            progress=progress,
        )

    @property
    def results(self) -> Mapping[str, tuple[Task, ...]]:
        return self._store.snapshot()

    def execute(self, *, build: bool = True) -> Mapping[str, tuple[Task, ...]]:
        if build:
            self.toolchain.build()

        self._store = ResultStore(self.plan.group_names())
        self._cancelled.clear()
        self.toolchain.open()
        work = deque(self.plan.work_items())
        in_flight: dict[Future[Task], str] = {}

        logger.info(
            "Running %d task(s) from %d group(s), %d at a time",
            len(work),
            len(self.plan.groups),
            self.task_concurrent,
        )

        pool = ThreadPoolExecutor(
            max_workers=self.task_concurrent, thread_name_prefix="sweepforge"
        )
        try:
            while work:
                if len(in_flight) < self.task_concurrent:
                    group, param = work.popleft()
                    in_flight[pool.submit(self._run_task, param)] = group
                    self.progress.launched()
                    logger.debug("Launched %s: %s", group, param)
                    continue

                self._collect(in_flight)

            while in_flight:
                self._collect(in_flight)

        except SweepError as exc:
            logger.error("Aborting run, %d task(s) still in flight: %s", len(in_flight), exc)
            self._abort(pool)
            raise

        except BaseException:
            self._abort(pool)
            raise

        pool.shutdown(wait=True)
        logger.info("Run finished, %d task(s) completed", len(self._store))
        return self.results

    def _collect(self, in_flight: dict[Future[Task], str]) -> None:
        done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
        for future in done:
            group = in_flight.pop(future)
            try:
                task = future.result()
            except SweepError:
                raise
            except Exception as exc:
                raise JoinError(f"Task of group '{group}' crashed: {exc!r}") from exc

            self._store.append(group, task)
            self.progress.completed()
            logger.debug("Completed %s: %s", group, task.param)

    def _abort(self, pool: ThreadPoolExecutor) -> None:
        if not self.cancel_on_abort:
            pool.shutdown(wait=False)
            return

        self._cancelled.set()
        self.toolchain.close()
        pool.shutdown(wait=True, cancel_futures=True)

    def _run_task(self, param: Commandable) -> Task:
        command = param.build_cmd()
        start = time.monotonic()
        invocation, attempts = run_with_retry(
            self.toolchain, command, self.retry_limit, self._cancelled
        )
        duration = time.monotonic() - start

        return Task(
            param,
            invocation.returncode,
            invocation.stdout,
            invocation.stderr,
            self._decode(invocation.stdout, command, "stdout"),
            self._decode(invocation.stderr, command, "stderr"),
            attempts,
            duration,
        )

    def _decode(self, data: bytes, command: str, stream: str) -> str:
        try:
            return data.decode(self.encoding)
        except UnicodeDecodeError as exc:
            raise OutputDecodeError(command, stream, self.encoding) from exc
