from __future__ import annotations

import logging
import threading
from typing import Protocol

from sweepforge.errors import RetryLimitExceededError, TaskCancelledError

from .types import Invocation

logger = logging.getLogger(__name__)


class Runner(Protocol):
    def run(self, command: str) -> Invocation: ...


def run_with_retry(
    runner: Runner,
    command: str,
    retry_limit: int,
    cancelled: threading.Event | None = None,
) -> tuple[Invocation, int]:
    """Run `command` until it exits with status 0.

    `retry_limit` caps the total number of attempts, the first included; 0 and
    1 both mean a single attempt. Spawn failures and timeouts raised by the
    runner are never retried.
    """
    max_attempts = max(1, retry_limit)
    attempt = 1

    while True:
        invocation = runner.run(command)
        if invocation.succeeded:
            return invocation, attempt

        if attempt >= max_attempts:
            raise RetryLimitExceededError(command, attempt, invocation.returncode)

        if cancelled is not None and cancelled.is_set():
            raise TaskCancelledError(command)

        logger.warning(
            "Attempt %d/%d exited with %d, retrying: %s",
            attempt,
            max_attempts,
            invocation.returncode,
            command,
        )
        attempt += 1
