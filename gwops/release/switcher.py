"""Versioned release deployment with atomic switch and one-step rollback.

deploy:   extract -> flatten -> validate -> lock down -> switch
switch:   previous := current, then current := release
rollback: current := previous (previous is left alone)

Deploy either completes the switch or fails before touching any pointer. A
failed deploy never removes anything: a half-extracted or invalid release
stays under releases/ so the operator can inspect it.
"""

from __future__ import annotations

import os
import re
import shutil
import stat
from pathlib import Path

from gwops.core.result import Err, Ok, Result
from gwops.output.console import ConsoleProtocol, Style
from gwops.platform.files import clear_write_bits
from gwops.release.errors import (
    ArtifactNotFound,
    ArtifactUnreadable,
    NoPreviousRelease,
    ReleaseError,
    StoreIOError,
    ValidationFailed,
    VersionAlreadyExists,
    VersionInvalid,
    VersionNotFound,
)
from gwops.release.extract import ArchiveExtractor, flatten_nested, is_supported_archive
from gwops.release.metadata import ReleaseRecord, sha256_file
from gwops.release.model import DeployResult, Release, StoreStatus
from gwops.release.store import ReleaseStore

__all__ = ["ReleaseSwitcher", "validate_version"]

_VERSION_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")
_MAX_VERSION_LEN = 128
_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def validate_version(version: str) -> Result[str, VersionInvalid]:
    """Check that a version label can be used as a single directory name."""
    if not version or not version.strip():
        return Err(VersionInvalid(version, "version must not be empty"))
    if len(version) > _MAX_VERSION_LEN:
        return Err(VersionInvalid(version, f"version longer than {_MAX_VERSION_LEN} characters"))
    if not _VERSION_RE.match(version):
        return Err(
            VersionInvalid(
                version,
                "use letters, digits and . _ + - only, starting with a letter or digit",
            )
        )
    return Ok(version)


class ReleaseSwitcher:
    def __init__(
        self,
        *,
        store: ReleaseStore,
        entry_point: str,
        console: ConsoleProtocol,
        owner: str | None = None,
        group: str | None = None,
        extractor: ArchiveExtractor | None = None,
    ) -> None:
        self._store = store
        self._entry_point = entry_point
        self._console = console
        self._owner = owner
        self._group = group
        self._extractor = extractor or ArchiveExtractor()

    @property
    def store(self) -> ReleaseStore:
        return self._store

    def status(self) -> StoreStatus:
        return self._store.status()

    def deploy(self, artifact: Path, version: str) -> Result[DeployResult, ReleaseError]:
        """Extract `artifact` as release `version` and make it current."""
        if not artifact.is_file():
            return Err(ArtifactNotFound(artifact))
        if not is_supported_archive(artifact):
            return Err(ArtifactUnreadable(artifact, "not a .tar.gz, .tgz, .tar.xz, .txz or .zip"))

        checked = validate_version(version)
        if isinstance(checked, Err):
            return checked

        if self._store.exists(version):
            return Err(VersionAlreadyExists(version, self._store.layout.release_dir(version)))

        ensured = self._store.ensure_dirs()
        if isinstance(ensured, Err):
            return ensured

        dest = self._store.layout.release_dir(version)
        try:
            # exist_ok=False: refuses to reuse a directory created meanwhile
            dest.mkdir(mode=0o755)
        except FileExistsError:
            return Err(VersionAlreadyExists(version, dest))
        except OSError as e:
            return Err(StoreIOError(dest, str(e)))

        self._console.step(f"Extracting {artifact} -> {dest}")
        extracted = self._extractor.extract(artifact, dest)
        if isinstance(extracted, Err):
            return extracted
        for name in extracted.value.skipped:
            self._console.warning(f"skipped archive member: {name}")

        try:
            flattened = flatten_nested(dest, self._entry_point)
        except OSError as e:
            return Err(StoreIOError(dest, f"flattening failed: {e}"))
        if isinstance(flattened, Err):
            return Err(ValidationFailed(version, dest, flattened.error))
        if flattened.value is not None:
            self._console.step(f"Detected nested release directory: {flattened.value}/")
            self._console.step(f"Flattened into {dest}")

        validated = self._validate(version, dest)
        if isinstance(validated, Err):
            return validated

        locked = self._lock_down(dest)
        if isinstance(locked, Err):
            return locked
        self._console.step("Release extracted and validated.")

        try:
            digest = sha256_file(artifact)
        except OSError as e:
            self._console.warning(f"could not checksum {artifact}: {e}")
            digest = ""
        recorded = self._store.record(version, ReleaseRecord.now(artifact, digest))
        if isinstance(recorded, Err):
            self._console.warning(f"could not record release metadata: {recorded.error.reason}")

        switched = self.switch(version)
        if isinstance(switched, Err):
            return switched

        release = self._store.get(version) or Release(version=version, path=dest)
        return Ok(
            DeployResult(
                release=release,
                status=switched.value,
                files_count=extracted.value.files_count,
                flattened_from=flattened.value,
            )
        )

    def switch(self, version: str) -> Result[StoreStatus, ReleaseError]:
        """Make `version` current, keeping the old current as previous.

        Previous is written before current: if the process dies between the
        two renames, previous already names the release that was running.
        """
        layout = self._store.layout
        new = layout.release_dir(version)
        if validate_version(version).is_err() or not new.is_dir():
            return Err(VersionNotFound(version, tuple(self._store.versions())))
        # leftovers of a failed deploy live under releases/ too
        valid = self._validate(version, new)
        if isinstance(valid, Err):
            return valid

        new_target = new.resolve()
        old = self._store.current()

        self._console.step(f"Switching {layout.current_link} -> {new_target}")

        if old.target is not None and old.target != new_target:
            if old.target_exists:
                saved = self._store.set_pointer(layout.previous_link, old.target)
                if isinstance(saved, Err):
                    return saved
                self._console.step(f"Saved previous -> {old.target}")
            else:
                self._console.warning(
                    f"current pointed at missing {old.target}; previous left unchanged"
                )

        swapped = self._store.set_pointer(layout.current_link, new_target)
        if isinstance(swapped, Err):
            return swapped

        status = self._store.status()
        self._console.step(f"Current now points to: {status.current.describe()}")
        return Ok(status)

    def rollback(self) -> Result[StoreStatus, ReleaseError]:
        """Point current back at previous.

        Previous itself is not touched, so repeating a rollback re-applies the
        same target instead of walking further back.
        """
        layout = self._store.layout
        prev = self._store.previous()
        if prev.target is None:
            return Err(
                NoPreviousRelease(f"{layout.previous_link} not found, nothing to roll back to")
            )
        if not prev.target_exists:
            return Err(
                NoPreviousRelease(f"previous target does not exist: {prev.target}", prev.target)
            )

        self._console.step(f"Rolling back: {layout.current_link} -> {prev.target}")
        swapped = self._store.set_pointer(layout.current_link, prev.target)
        if isinstance(swapped, Err):
            return swapped
        return Ok(self._store.status())

    def _validate(self, version: str, dest: Path) -> Result[None, ValidationFailed]:
        entry = dest / self._entry_point
        if not entry.is_file():
            return Err(
                ValidationFailed(version, dest, f"{self._entry_point} not found in release")
            )
        if not os.access(entry, os.X_OK):
            return Err(ValidationFailed(version, dest, f"{self._entry_point} is not executable"))
        return Ok(None)

    def _lock_down(self, dest: Path) -> Result[None, StoreIOError]:
        """Hand the release to the privileged owner and drop all write bits.

        The service runs as a different, unprivileged account and must not be
        able to modify its own binaries.
        """
        try:
            if self._owner or self._group:
                for path in _tree(dest):
                    shutil.chown(path, user=self._owner, group=self._group)
            clear_write_bits(dest)
            entry = dest / self._entry_point
            os.chmod(entry, stat.S_IMODE(entry.stat().st_mode) | _EXEC_BITS)
        except (OSError, LookupError) as e:
            return Err(StoreIOError(dest, f"cannot set release ownership/permissions: {e}"))
        self._console.print(
            f"owner={self._owner or '-'} group={self._group or '-'} mode=a-w", Style.DIM
        )
        return Ok(None)


def _tree(root: Path) -> list[Path]:
    paths = [root]
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        paths.extend(base / name for name in dirnames + filenames)
    return [p for p in paths if not p.is_symlink()]
