"""Release artifact extraction.

Extracts .tar.gz/.tgz, .tar.xz/.txz and .zip archives into a release
directory, then optionally promotes a single nested top-level directory
(`core-1.0.0/bin/core` -> `bin/core`).

Only regular files and directories are extracted. Absolute paths, `..`
components, links and device entries are skipped and counted so the operator
can see that something was left out.
"""

from __future__ import annotations

import contextlib
import lzma
import os
import secrets
import shutil
import stat
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import IO

from gwops.core.result import Err, Ok, Result
from gwops.release.errors import ArtifactUnreadable

__all__ = [
    "ArchiveExtractor",
    "ExtractResult",
    "SUPPORTED_SUFFIXES",
    "flatten_nested",
    "is_supported_archive",
]

SUPPORTED_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".txz", ".zip")


@dataclass(frozen=True, slots=True)
class ExtractResult:
    """Attributes:
    dest: Directory the archive was extracted into
    files_count: Number of regular files written
    skipped: Member names that were not extracted
    """

    dest: Path
    files_count: int
    skipped: tuple[str, ...] = ()


def is_supported_archive(path: Path) -> bool:
    # Path.suffixes is unreliable for names like core-1.0.0.tar.gz
    return path.name.lower().endswith(SUPPORTED_SUFFIXES)


class ArchiveExtractor:
    """Archive extractor for release artifacts.

    Usage:
        extractor = ArchiveExtractor()
        match extractor.extract(artifact, release_dir):
            case Ok(res):
                print(f"{res.files_count} files")
            case Err(error):
                print(error.reason)

    The destination must already exist. Nothing is ever removed from it: on a
    failure mid-way the partial content stays for inspection.
    """

    def extract(self, archive: Path, dest: Path) -> Result[ExtractResult, ArtifactUnreadable]:
        name = archive.name.lower()

        if name.endswith((".tar.gz", ".tgz")):
            return self._extract_tar(archive, dest, "r:gz")
        if name.endswith((".tar.xz", ".txz")):
            return self._extract_tar(archive, dest, "r:xz")
        if name.endswith(".zip"):
            return self._extract_zip(archive, dest)
        return Err(
            ArtifactUnreadable(
                path=archive,
                reason="unsupported archive format (expected one of "
                f"{', '.join(SUPPORTED_SUFFIXES)})",
                release_dir=dest,
            )
        )

    def _safe_relative_path(self, member_name: str) -> Path | None:
        """Return a sanitized relative extraction path, or None if unsafe."""
        normalized = member_name.replace("\\", "/")
        if normalized.startswith("/"):
            return None

        parts = tuple(p for p in PurePosixPath(normalized).parts if p != ".")
        if not parts:
            return None
        if any(part in {"", ".."} for part in parts):
            return None
        if parts[0].endswith(":"):
            return None

        return Path(*parts)

    def _is_within_root(self, root: Path, target: Path) -> bool:
        try:
            return target.resolve().is_relative_to(root)
        except OSError:
            return False

    def _extract_tar(
        self, archive: Path, dest: Path, mode: str
    ) -> Result[ExtractResult, ArtifactUnreadable]:
        root = dest.resolve()
        files_count = 0
        skipped: list[str] = []
        dir_modes: list[tuple[Path, int]] = []

        try:
            with tarfile.open(archive, mode) as tar:
                for member in tar.getmembers():
                    rel_path = self._safe_relative_path(member.name)
                    if rel_path is None:
                        if member.name.strip("./"):
                            skipped.append(member.name)
                        continue

                    full_path = dest / rel_path
                    if not self._is_within_root(root, full_path):
                        skipped.append(member.name)
                        continue

                    if member.isdir():
                        full_path.mkdir(parents=True, exist_ok=True)
                        if member.mode & 0o777:
                            dir_modes.append((full_path, member.mode & 0o777))
                        continue

                    # Links, devices and fifos are never extracted
                    if not member.isreg():
                        skipped.append(member.name)
                        continue

                    src = tar.extractfile(member)
                    if src is None:
                        skipped.append(member.name)
                        continue

                    full_path.parent.mkdir(parents=True, exist_ok=True)
                    with src, open(full_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)

                    file_mode = member.mode & 0o777
                    if file_mode:
                        with contextlib.suppress(OSError):
                            os.chmod(full_path, file_mode)

                    files_count += 1

                # The gzip CRC and the xz check sit after the tar end marker.
                _drain(tar.fileobj)
        except tarfile.TarError as e:
            return Err(ArtifactUnreadable(archive, f"tar extraction failed: {e}", dest))
        except (lzma.LZMAError, zlib.error) as e:
            return Err(ArtifactUnreadable(archive, f"corrupt compressed data: {e}", dest))
        except (OSError, EOFError) as e:
            return Err(ArtifactUnreadable(archive, f"I/O error during extraction: {e}", dest))

        self._apply_dir_modes(dir_modes)
        return Ok(ExtractResult(dest=dest, files_count=files_count, skipped=tuple(skipped)))

    def _extract_zip(self, archive: Path, dest: Path) -> Result[ExtractResult, ArtifactUnreadable]:
        root = dest.resolve()
        files_count = 0
        skipped: list[str] = []
        dir_modes: list[tuple[Path, int]] = []

        try:
            with zipfile.ZipFile(archive, "r") as zf:
                for info in zf.infolist():
                    rel_path = self._safe_relative_path(info.filename)
                    if rel_path is None:
                        skipped.append(info.filename)
                        continue

                    full_path = dest / rel_path
                    if not self._is_within_root(root, full_path):
                        skipped.append(info.filename)
                        continue

                    unix_attrs = info.external_attr >> 16
                    if info.is_dir():
                        full_path.mkdir(parents=True, exist_ok=True)
                        if unix_attrs & 0o777:
                            dir_modes.append((full_path, unix_attrs & 0o777))
                        continue

                    if stat.S_IFMT(unix_attrs) == stat.S_IFLNK:
                        skipped.append(info.filename)
                        continue

                    full_path.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(full_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)

                    if unix_attrs & 0o777:
                        with contextlib.suppress(OSError):
                            os.chmod(full_path, unix_attrs & 0o777)

                    files_count += 1
        except zipfile.BadZipFile as e:
            return Err(ArtifactUnreadable(archive, f"invalid zip file: {e}", dest))
        except zlib.error as e:
            return Err(ArtifactUnreadable(archive, f"corrupt compressed data: {e}", dest))
        except OSError as e:
            return Err(ArtifactUnreadable(archive, f"I/O error during extraction: {e}", dest))

        self._apply_dir_modes(dir_modes)
        return Ok(ExtractResult(dest=dest, files_count=files_count, skipped=tuple(skipped)))

    @staticmethod
    def _apply_dir_modes(dir_modes: list[tuple[Path, int]]) -> None:
        # Applied last: a directory without u+w would block its own content.
        for path, mode in reversed(dir_modes):
            with contextlib.suppress(OSError):
                os.chmod(path, mode | stat.S_IWUSR | stat.S_IXUSR)


def _drain(fileobj: IO[bytes] | None) -> None:
    if fileobj is None:
        return
    while fileobj.read(1 << 16):
        pass


def flatten_nested(dest: Path, entry_point: str) -> Result[str | None, str]:
    """Promote a nested top-level directory that holds the entry point.

    Returns Ok(None) when the entry point is already at `dest/entry_point` or
    no nested candidate exists (validation reports that case), Ok(name) after
    promoting `dest/<name>/*` into `dest`, or Err(reason) if the layout is
    ambiguous or promoting would overwrite something.
    """
    if (dest / entry_point).is_file():
        return Ok(None)

    candidates = [
        child
        for child in sorted(dest.iterdir())
        if child.is_dir() and not child.is_symlink() and (child / entry_point).is_file()
    ]
    if not candidates:
        return Ok(None)
    if len(candidates) > 1:
        names = ", ".join(c.name for c in candidates)
        return Err(f"entry point found in several nested directories: {names}")

    top = candidates[0]
    clashes = sorted(
        item.name
        for item in top.iterdir()
        if item.name != top.name
        and ((dest / item.name).exists() or (dest / item.name).is_symlink())
    )
    if clashes:
        return Err(f"cannot flatten {top.name}/: {', '.join(clashes)} already exist at top level")

    # Move aside first: the nested dir may contain an entry named like itself.
    staging = dest / f".flatten-{secrets.token_hex(4)}"
    top.rename(staging)
    for item in sorted(staging.iterdir()):
        item.rename(dest / item.name)
    staging.rmdir()
    return Ok(top.name)
