from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from pathlib import Path

from sweepforge.errors import (
    BuildFailError,
    ExecuteFailError,
    NotFoundError,
    TaskTimeoutError,
)

from .types import Invocation

logger = logging.getLogger(__name__)

RUN_FLAG = "--run"
BUILD_ARG = "build"


class Toolchain:
    """The external tool: its one-off build step and per-task invocations.

    Each invocation leads its own process group, tracked while it runs so
    that a timeout or `close()` also kills whatever the tool started.
    Process groups make this POSIX-only.
    """

    def __init__(self, root: Path, entrypoint: str, *, timeout: float | None = None):
        self.root = root
        self.entrypoint = entrypoint
        self.timeout = timeout
        self._running: set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def locate(
        cls, tool_path: str | Path, entrypoint: str, *, timeout: float | None = None
    ) -> Toolchain:
        try:
            script = (Path(tool_path).expanduser() / entrypoint).resolve(strict=True)
        except OSError as exc:
            raise NotFoundError(
                f"Can't locate '{entrypoint}' in tool directory {tool_path}"
            ) from exc

        if not script.is_file():
            raise NotFoundError(f"Tool entrypoint is not a file: {script}")

        return cls(script.parent, script.name, timeout=timeout)

    @property
    def script(self) -> Path:
        return self.root / self.entrypoint

    def build(self) -> None:
        logger.info("Building external tool in %s", self.root)
        try:
            result = subprocess.run(
                [str(self.script), BUILD_ARG],
                cwd=self.root,
                capture_output=True,
            )
        except OSError as exc:
            raise ExecuteFailError(f"Failed to start build step: {exc}") from exc

        if result.returncode != 0:
            raise BuildFailError(
                result.returncode, result.stderr.decode("utf-8", errors="replace")
            )
        logger.info("Build finished")

    def run(self, command: str) -> Invocation:
        try:
            proc = subprocess.Popen(
                [str(self.script), RUN_FLAG, command],
                cwd=self.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise ExecuteFailError(f"Failed to execute '{command}': {exc}") from exc

        with self._lock:
            if self._closed:
                _kill_group(proc)
            self._running.add(proc)

        try:
            stdout, stderr = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            proc.communicate()
            raise TaskTimeoutError(command, self.timeout) from None
        finally:
            with self._lock:
                self._running.discard(proc)

        return Invocation(proc.returncode, stdout, stderr)

    def open(self) -> None:
        """Accept invocations again after `close()`."""
        with self._lock:
            self._closed = False

    def close(self) -> None:
        """Kill every running invocation and refuse to keep new ones alive."""
        with self._lock:
            self._closed = True
            running = list(self._running)

        for proc in running:
            logger.debug("Killing process group %d", proc.pid)
            _kill_group(proc)


def _kill_group(proc: subprocess.Popen) -> None:
    # Each invocation leads its own session, so this also reaches whatever the tool spawned.
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
