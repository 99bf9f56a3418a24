"""Platform abstraction layer."""

from .files import (
    atomic_symlink,
    atomic_write_text,
    clear_write_bits,
    restore_owner_write,
)
from .http import HttpClient, HttpError, UrllibHttpClient
from .process import (
    ProcessError,
    run,
)

__all__ = [
    # files
    "atomic_symlink",
    "atomic_write_text",
    "clear_write_bits",
    "restore_owner_write",
    # http
    "HttpClient",
    "HttpError",
    "UrllibHttpClient",
    # process
    "ProcessError",
    "run",
]
