"""Error presentation utilities.

Centralized formatting and exit code mapping for release errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from gwops.core.errors import ErrorCode
from gwops.output.console import Style
from gwops.release.errors import (
    ArtifactNotFound,
    ArtifactUnreadable,
    NoPreviousRelease,
    ReleaseError,
    StoreIOError,
    SupervisorFailed,
    ValidationFailed,
    VersionAlreadyExists,
    VersionInvalid,
    VersionNotFound,
)

if TYPE_CHECKING:
    from gwops.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a release error with an operator hint."""
    match error:
        case ArtifactNotFound(path=path):
            console.error(f"Artifact not found: {path}")
        case ArtifactUnreadable(path=path, reason=reason, release_dir=release_dir):
            console.error(f"Cannot extract {path}: {reason}")
            if release_dir is not None and release_dir.exists():
                console.print(
                    f"hint: partial release left for inspection: {release_dir}", Style.DIM
                )
        case VersionInvalid(version=version, reason=reason):
            console.error(f"Invalid version '{version}': {reason}")
        case VersionAlreadyExists(path=path):
            console.error(f"Destination already exists: {path}")
            console.print(
                "hint: refusing to overwrite; use a new --version or remove it manually", Style.DIM
            )
        case ValidationFailed(release_dir=release_dir, reason=reason):
            console.error(f"Release validation failed: {reason}")
            console.print(
                f"hint: check your release packaging; left for inspection: {release_dir}",
                Style.DIM,
            )
        case VersionNotFound(version=version, available=available):
            console.error(f"Unknown release: {version}")
            if available:
                console.print(f"Available: {', '.join(available)}", Style.DIM)
        case NoPreviousRelease(reason=reason):
            console.error(f"Nothing to roll back to: {reason}")
        case SupervisorFailed(service=service, reason=reason, active_version=active):
            console.error(f"{service}.service did not restart cleanly: {reason}")
            if active:
                console.print(
                    f"hint: current -> {active}; inspect logs: journalctl -u {service} -n 200 "
                    "--no-pager (roll back with: gwops rollback)",
                    Style.DIM,
                )
        case StoreIOError(path=path, reason=reason):
            console.error(f"{path}: {reason}")


def release_error_exit_code(error: ReleaseError) -> int:
    """Get the exit code for a release error."""
    match error:
        case ArtifactNotFound():
            return int(ErrorCode.ARTIFACT_NOT_FOUND)
        case ArtifactUnreadable() | VersionInvalid():
            return int(ErrorCode.USER_ERROR)
        case VersionAlreadyExists():
            return int(ErrorCode.VERSION_EXISTS)
        case ValidationFailed():
            return int(ErrorCode.VALIDATION_FAILED)
        case VersionNotFound():
            return int(ErrorCode.VERSION_NOT_FOUND)
        case NoPreviousRelease():
            return int(ErrorCode.NO_PREVIOUS_RELEASE)
        case SupervisorFailed():
            return int(ErrorCode.SUPERVISOR_ERROR)
        case StoreIOError():
            return int(ErrorCode.IO_ERROR)
