"""Versioned release store with atomic current/previous switching."""

from .errors import (
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
from .model import DeployResult, PointerState, Release, StoreStatus
from .prune import PrunePlan, apply_prune, plan_prune
from .store import ReleaseStore
from .switcher import ReleaseSwitcher, validate_version

__all__ = [
    # errors
    "ArtifactNotFound",
    "ArtifactUnreadable",
    "NoPreviousRelease",
    "ReleaseError",
    "StoreIOError",
    "SupervisorFailed",
    "ValidationFailed",
    "VersionAlreadyExists",
    "VersionInvalid",
    "VersionNotFound",
    # model
    "DeployResult",
    "PointerState",
    "Release",
    "StoreStatus",
    # prune
    "PrunePlan",
    "apply_prune",
    "plan_prune",
    # store
    "ReleaseStore",
    # switcher
    "ReleaseSwitcher",
    "validate_version",
]
