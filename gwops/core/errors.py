"""Exit codes for CLI commands.

Each failure condition an operator may need to react to gets its own code, so
scripts and remote shells can tell "nothing to roll back to" apart from "the
artifact is broken" without parsing output.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes.

    These values are part of the command surface and must remain stable:
    - 0: Success
    - 1: User error (bad arguments, invalid version label)
    - 2: Environment error (not root, unreadable config)
    - 3..7: Release conditions (one per condition)
    - 8: Service supervisor failed to restart or did not come up
    - 9: I/O error on the release store
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    ARTIFACT_NOT_FOUND = 3
    VERSION_EXISTS = 4
    VALIDATION_FAILED = 5
    NO_PREVIOUS_RELEASE = 6
    VERSION_NOT_FOUND = 7
    SUPERVISOR_ERROR = 8
    IO_ERROR = 9

    def __str__(self) -> str:
        """Return human-readable name."""
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
