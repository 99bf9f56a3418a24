"""Core domain types and logic."""

from .config import Config, ConfigError, load_config, load_config_or_default
from .errors import ErrorCode
from .layout import ReleaseLayout
from .result import Err, Ok, Result

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    "load_config_or_default",
    # errors
    "ErrorCode",
    # layout
    "ReleaseLayout",
    # result
    "Err",
    "Ok",
    "Result",
]
