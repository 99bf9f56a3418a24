"""Removal of old releases.

Releases are never deleted by deploy or rollback. This is the out-of-band
cleanup: keep the newest N by arrival and never touch whatever `current` or
`previous` point at.
"""

from __future__ import annotations

from dataclasses import dataclass

from gwops.core.result import Err, Ok, Result
from gwops.output.console import ConsoleProtocol
from gwops.release.errors import StoreIOError
from gwops.release.model import Release
from gwops.release.store import ReleaseStore

__all__ = ["DEFAULT_KEEP", "PrunePlan", "apply_prune", "plan_prune"]

DEFAULT_KEEP = 5


@dataclass(frozen=True, slots=True)
class PrunePlan:
    keep: tuple[Release, ...]
    remove: tuple[Release, ...]
    protected: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not self.remove


def plan_prune(store: ReleaseStore, keep: int = DEFAULT_KEEP) -> PrunePlan:
    if keep < 0:
        raise ValueError("keep must be >= 0")

    releases = store.list_releases()
    status = store.status()
    protected = tuple(
        v for v in (status.current.version, status.previous.version) if v is not None
    )

    newest = {r.version for r in releases[len(releases) - keep :]} if keep else set()
    kept: list[Release] = []
    removed: list[Release] = []
    for release in releases:
        if release.version in newest or release.version in protected:
            kept.append(release)
        else:
            removed.append(release)

    return PrunePlan(keep=tuple(kept), remove=tuple(removed), protected=protected)


def apply_prune(
    store: ReleaseStore, plan: PrunePlan, console: ConsoleProtocol
) -> Result[list[str], StoreIOError]:
    """Delete the releases in plan.remove, stopping at the first failure."""
    removed: list[str] = []
    for release in plan.remove:
        result = store.remove(release.version)
        if isinstance(result, Err):
            return result
        console.print(f"deleted: {release.path}")
        removed.append(release.version)
    return Ok(removed)
