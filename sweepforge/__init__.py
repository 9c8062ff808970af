from .config import ConfigFormat, ExecutorOptions, load_groups
from .errors import SweepError
from .executor import Executor, ProgressCounter, Task, Toolchain
from .sweep import Commandable, ExecutionPlan, Expandable, GridConfig, Params

__all__ = [
    "ConfigFormat",
    "ExecutorOptions",
    "load_groups",
    "SweepError",
    "Executor",
    "ProgressCounter",
    "Task",
    "Toolchain",
    "Commandable",
    "Expandable",
    "ExecutionPlan",
    "GridConfig",
    "Params",
]
