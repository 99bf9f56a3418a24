"""Filesystem helpers.

Everything here that replaces an existing path does so with a single rename,
so a concurrent reader sees either the old or the new object, never a
half-written one.
"""

from __future__ import annotations

import os
import secrets
import stat
import tempfile
from pathlib import Path

__all__ = [
    "atomic_symlink",
    "atomic_write_text",
    "clear_write_bits",
    "restore_owner_write",
]

_WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def atomic_symlink(link: Path, target: Path) -> None:
    """Point link at target, replacing any existing link in one rename.

    The new link is fully created under a temporary name in the same
    directory, then renamed over `link`. rename(2) within one filesystem is
    atomic, so `link` never disappears or dangles halfway through.
    """
    link.parent.mkdir(parents=True, exist_ok=True)
    tmp = link.parent / f".{link.name}.{secrets.token_hex(6)}.tmp"
    os.symlink(target, tmp)
    try:
        os.replace(tmp, link)
    finally:
        if tmp.is_symlink():
            tmp.unlink(missing_ok=True)


def _walk(root: Path) -> list[Path]:
    paths = [root]
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        paths.extend(base / d for d in dirnames)
        paths.extend(base / f for f in filenames)
    return paths


def clear_write_bits(root: Path) -> None:
    """Recursively remove all write permission bits (chmod -R a-w).

    Symlinks are left alone.
    """
    # Children first so directories stay writable until their content is done.
    for path in reversed(_walk(root)):
        if path.is_symlink():
            continue
        mode = path.stat().st_mode
        os.chmod(path, stat.S_IMODE(mode) & ~_WRITE_BITS)


def restore_owner_write(root: Path) -> None:
    """Recursively give the owner write permission back (chmod -R u+w).

    Needed before a read-only release tree can be deleted.
    """
    if root.is_symlink() or not root.exists():
        return
    os.chmod(root, stat.S_IMODE(root.stat().st_mode) | stat.S_IWUSR)
    for path in _walk(root):
        if path.is_symlink():
            continue
        os.chmod(path, stat.S_IMODE(path.stat().st_mode) | stat.S_IWUSR)
