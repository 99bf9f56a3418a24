"""Failure conditions of release operations.

Each condition is its own type so the CLI can map it to a distinct exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ArtifactNotFound:
    path: Path


@dataclass(frozen=True, slots=True)
class ArtifactUnreadable:
    """The artifact exists but could not be extracted.

    `release_dir` is set when extraction had already started; whatever was
    written is left there for inspection.
    """

    path: Path
    reason: str
    release_dir: Path | None = None


@dataclass(frozen=True, slots=True)
class VersionInvalid:
    version: str
    reason: str


@dataclass(frozen=True, slots=True)
class VersionAlreadyExists:
    version: str
    path: Path


@dataclass(frozen=True, slots=True)
class ValidationFailed:
    """Extracted release lacks a usable entry point (directory left on disk)."""

    version: str
    release_dir: Path
    reason: str


@dataclass(frozen=True, slots=True)
class VersionNotFound:
    version: str
    available: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class NoPreviousRelease:
    reason: str
    target: Path | None = None


@dataclass(frozen=True, slots=True)
class SupervisorFailed:
    """Restart failed or the unit is not active afterwards.

    The switch itself has already happened; `active_version` says what
    `current` points at now.
    """

    service: str
    reason: str
    active_version: str | None = None


@dataclass(frozen=True, slots=True)
class StoreIOError:
    path: Path
    reason: str


ReleaseError = (
    ArtifactNotFound
    | ArtifactUnreadable
    | VersionInvalid
    | VersionAlreadyExists
    | ValidationFailed
    | VersionNotFound
    | NoPreviousRelease
    | SupervisorFailed
    | StoreIOError
)
