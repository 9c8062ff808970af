from .executor import Executor, Tool
from .progress import NullProgress, ProgressCounter, ProgressReporter
from .retry import run_with_retry
from .toolchain import Toolchain
from .types import Invocation, ResultStore, Task

__all__ = [
    "Executor",
    "Tool",
    "Toolchain",
    "run_with_retry",
    "Invocation",
    "ResultStore",
    "Task",
    "ProgressReporter",
    "ProgressCounter",
    "NullProgress",
]
