"""Ok/Err return values for operations that fail in expected ways.

Deploy, switch, rollback and prune each have a handful of known failure
modes (missing artifact, duplicate version, no previous release). They
return a Result instead of raising, and the CLI maps the Err payload to an
exit code with a match statement:

    match switcher.switch("1.2.0"):
        case Ok(pointers):
            ...
        case Err(error):
            print_release_error(error, console)

Unexpected failures (bugs, interrupted syscalls) still raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failure payload, normally one of the frozen dataclasses in gwops.release.errors."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True


Result = Union[Ok[T], Err[E]]
