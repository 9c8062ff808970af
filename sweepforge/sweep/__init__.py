from .grid import GridConfig, Params
from .plan import ExecutionPlan
from .types import Commandable, ConfigFactory, Expandable

__all__ = [
    "GridConfig",
    "Params",
    "ExecutionPlan",
    "Commandable",
    "Expandable",
    "ConfigFactory",
]
