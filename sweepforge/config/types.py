from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from sweepforge.errors import InvalidConfigError

DEFAULT_RETRY_LIMIT = 5
DEFAULT_ENTRYPOINT = "waf"
DEFAULT_TOOL_PATH = "/"


class ConfigFormat(str, Enum):
    TOML = "toml"
    JSON = "json"
    YAML = "yaml"
    INI = "ini"
    RON = "ron"

    @property
    def default_filename(self) -> str:
        return f"config.{self.value}"


@dataclass(frozen=True)
class ExecutorOptions:
    """Construction-time options of an `Executor`.

    Fields left as ``None`` are filled in by `resolve()`, which also rejects
    out-of-range values. Everything downstream only sees resolved options.
    """

    config_path: str | Path | None = None
    config_format: ConfigFormat | None = None
    tool_path: str | Path = DEFAULT_TOOL_PATH
    entrypoint: str = DEFAULT_ENTRYPOINT
    task_concurrent: int | None = None
    retry_limit: int = DEFAULT_RETRY_LIMIT
    task_timeout: float | None = None
    encoding: str = "utf-8"
    cancel_on_abort: bool = True

    def resolve(self) -> ExecutorOptions:
        fmt = self.config_format
        if fmt is not None and not isinstance(fmt, ConfigFormat):
            try:
                fmt = ConfigFormat(str(fmt).lower())
            except ValueError:
                raise InvalidConfigError(f"Unknown config format: {fmt}") from None

        path = self.config_path
        if path is None:
            fmt = fmt or ConfigFormat.TOML
            path = fmt.default_filename

        task_concurrent = self.task_concurrent
        if task_concurrent is None:
            task_concurrent = os.cpu_count() or 1

        if task_concurrent < 1:
            raise InvalidConfigError(
                f"task_concurrent must be at least 1, got {task_concurrent}"
            )

        if self.retry_limit < 0:
            raise InvalidConfigError(
                f"retry_limit can't be negative, got {self.retry_limit}"
            )

        if self.task_timeout is not None and self.task_timeout <= 0:
            raise InvalidConfigError(
                f"task_timeout must be positive, got {self.task_timeout}"
            )

        if len(self.entrypoint.strip()) < 1:
            raise InvalidConfigError("entrypoint can't be empty")

        return replace(
            self,
            config_path=Path(path),
            config_format=fmt,
            tool_path=Path(self.tool_path),
            task_concurrent=task_concurrent,
        )
