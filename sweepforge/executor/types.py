from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Generic, Mapping, TypeVar

from sweepforge.sweep import Commandable

P = TypeVar("P", bound=Commandable)


@dataclass(frozen=True)
class Invocation:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class Task(Generic[P]):
    param: P
    returncode: int
    stdout_bytes: bytes
    stderr_bytes: bytes
    stdout: str
    stderr: str
    attempts: int
    duration_s: float

    def read(self) -> tuple[str, str]:
        return self.stdout, self.stderr

    def read_raw(self) -> tuple[bytes, bytes]:
        return self.stdout_bytes, self.stderr_bytes


class ResultStore:
    """Completed tasks keyed by group name.

    Every group is present from the start, so recording a task is a plain
    append. Only the executor's driver thread writes to it.
    """

    def __init__(self, groups: list[str]):
        self._tasks: dict[str, list[Task]] = {name: [] for name in groups}

    def __len__(self) -> int:
        return sum(len(tasks) for tasks in self._tasks.values())

    def __contains__(self, group: object) -> bool:
        return group in self._tasks

    def append(self, group: str, task: Task) -> None:
        self._tasks[group].append(task)

    def snapshot(self) -> Mapping[str, tuple[Task, ...]]:
        return MappingProxyType(
            {name: tuple(tasks) for name, tasks in self._tasks.items()}
        )
