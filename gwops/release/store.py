"""Release store: release directories plus the current/previous pointers."""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path

from gwops.core.layout import ReleaseLayout
from gwops.core.result import Err, Ok, Result
from gwops.platform.files import atomic_symlink, restore_owner_write
from gwops.release.errors import StoreIOError
from gwops.release.metadata import (
    ReleaseRecord,
    forget_releases,
    load_metadata,
    record_release,
)
from gwops.release.model import PointerState, Release, StoreStatus

__all__ = ["ReleaseStore"]


class ReleaseStore:
    """Filesystem-backed release store.

    The two pointers are plain symlinks; each one is only ever replaced
    through atomic_symlink, never edited in place.
    """

    def __init__(self, layout: ReleaseLayout) -> None:
        self._layout = layout

    @property
    def layout(self) -> ReleaseLayout:
        return self._layout

    def ensure_dirs(self) -> Result[None, StoreIOError]:
        try:
            self._layout.releases_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(StoreIOError(self._layout.releases_dir, str(e)))
        return Ok(None)

    # -- releases -----------------------------------------------------------

    def exists(self, version: str) -> bool:
        path = self._layout.release_dir(version)
        return path.exists() or path.is_symlink()

    def get(self, version: str) -> Release | None:
        path = self._layout.release_dir(version)
        if not path.is_dir():
            return None
        record = load_metadata(self._layout.metadata_path).get(version)
        return self._release(version, path, record)

    def list_releases(self) -> list[Release]:
        """All releases, oldest arrival first.

        Arrival is the recorded deploy time; directories without metadata
        (copied in by hand) fall back to their mtime.
        """
        releases_dir = self._layout.releases_dir
        if not releases_dir.is_dir():
            return []

        records = load_metadata(self._layout.metadata_path)
        keyed: list[tuple[str, str, Release]] = []
        for child in releases_dir.iterdir():
            if not child.is_dir() or child.name.startswith("."):
                continue
            record = records.get(child.name)
            if record is not None:
                arrival = record.deployed_at
            else:
                arrival = datetime.fromtimestamp(child.stat().st_mtime).isoformat(
                    timespec="seconds"
                )
            keyed.append((arrival, child.name, self._release(child.name, child, record)))

        keyed.sort(key=lambda item: (item[0], item[1]))
        return [release for _, _, release in keyed]

    def versions(self) -> list[str]:
        return [r.version for r in self.list_releases()]

    def record(self, version: str, record: ReleaseRecord) -> Result[None, StoreIOError]:
        try:
            record_release(self._layout.metadata_path, version, record)
        except OSError as e:
            return Err(StoreIOError(self._layout.metadata_path, str(e)))
        return Ok(None)

    def remove(self, version: str) -> Result[None, StoreIOError]:
        """Delete a release directory and its metadata entry."""
        path = self._layout.release_dir(version)
        try:
            restore_owner_write(path)
            shutil.rmtree(path)
            forget_releases(self._layout.metadata_path, [version])
        except OSError as e:
            return Err(StoreIOError(path, str(e)))
        return Ok(None)

    def _release(self, version: str, path: Path, record: ReleaseRecord | None) -> Release:
        if record is None:
            return Release(version=version, path=path)
        return Release(
            version=version,
            path=path,
            deployed_at=record.deployed_at,
            artifact=record.artifact or None,
            sha256=record.sha256 or None,
        )

    # -- pointers -----------------------------------------------------------

    def read_pointer(self, link: Path) -> PointerState:
        name = link.name
        if not link.is_symlink():
            return PointerState(name=name, link=link)

        raw = Path(os.readlink(link))
        if not raw.is_absolute():
            raw = link.parent / raw
        target = raw.resolve()
        return PointerState(
            name=name,
            link=link,
            target=target,
            version=self._layout.version_of(target),
            target_exists=target.is_dir(),
        )

    def current(self) -> PointerState:
        return self.read_pointer(self._layout.current_link)

    def previous(self) -> PointerState:
        return self.read_pointer(self._layout.previous_link)

    def status(self) -> StoreStatus:
        return StoreStatus(current=self.current(), previous=self.previous())

    def set_pointer(self, link: Path, target: Path) -> Result[None, StoreIOError]:
        try:
            atomic_symlink(link, target)
        except OSError as e:
            return Err(StoreIOError(link, f"cannot repoint to {target}: {e}"))
        return Ok(None)
