"""On-disk layout of the release store.

    <base_dir>/
        releases/<version>/    extracted, read-only release payloads
        current  -> releases/<version>
        previous -> releases/<version>
        releases.json          arrival metadata

The supervised unit is configured to execute from `<base_dir>/current`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

__all__ = ["ReleaseLayout"]


@dataclass(frozen=True, slots=True)
class ReleaseLayout:
    base_dir: Path

    @property
    def releases_dir(self) -> Path:
        return self.base_dir / "releases"

    @property
    def current_link(self) -> Path:
        """Pointer to the active release."""
        return self.base_dir / "current"

    @property
    def previous_link(self) -> Path:
        """Pointer to the release that was active before the last switch."""
        return self.base_dir / "previous"

    @property
    def metadata_path(self) -> Path:
        return self.base_dir / "releases.json"

    def release_dir(self, version: str) -> Path:
        return self.releases_dir / version

    def version_of(self, target: Path) -> str | None:
        """Return the version label if target is a direct child of releases/."""
        try:
            rel = target.relative_to(self.releases_dir.resolve())
        except ValueError:
            try:
                rel = target.relative_to(self.releases_dir)
            except ValueError:
                return None
        if len(rel.parts) != 1:
            return None
        return rel.parts[0]

    def __str__(self) -> str:
        return str(self.base_dir)
