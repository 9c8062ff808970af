from .loader import FORMATS, check_config_file, detect_format, load_groups, read_groups
from .types import ConfigFormat, ExecutorOptions

__all__ = [
    "load_groups",
    "read_groups",
    "check_config_file",
    "detect_format",
    "FORMATS",
    "ConfigFormat",
    "ExecutorOptions",
]
