from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Release:
    """An extracted release directory in the store.

    Attributes:
        version: Caller-supplied label, unique within the store
        path: releases/<version>
        deployed_at: ISO timestamp from the metadata file, if recorded
        artifact: File name of the archive it was extracted from
        sha256: Checksum of that archive
    """

    version: str
    path: Path
    deployed_at: str | None = None
    artifact: str | None = None
    sha256: str | None = None


@dataclass(frozen=True, slots=True)
class PointerState:
    """Resolved state of the `current` or `previous` pointer.

    Attributes:
        name: "current" or "previous"
        link: Path of the symlink itself
        target: Resolved target, None when the pointer is unset
        version: Version label if the target lives in releases/
        target_exists: Whether the target directory is present on disk
    """

    name: str
    link: Path
    target: Path | None = None
    version: str | None = None
    target_exists: bool = False

    @property
    def is_set(self) -> bool:
        return self.target is not None

    def describe(self) -> str:
        if self.target is None:
            return "(missing)"
        if not self.target_exists:
            return f"{self.target} (target missing)"
        return str(self.target)


@dataclass(frozen=True, slots=True)
class StoreStatus:
    current: PointerState
    previous: PointerState


@dataclass(frozen=True, slots=True)
class DeployResult:
    """Outcome of a successful deploy.

    Attributes:
        release: The new release
        status: Pointer state after the switch
        files_count: Regular files extracted from the artifact
        flattened_from: Name of the nested top-level directory that was
            promoted, if the archive had one
    """

    release: Release
    status: StoreStatus
    files_count: int
    flattened_from: str | None = None
