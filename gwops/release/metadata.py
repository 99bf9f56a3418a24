"""Arrival metadata for releases.

Release directories are immutable once validated, so bookkeeping about them
(when they arrived, which artifact they came from) lives next to the store in
releases.json rather than inside the release.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

from gwops.core.structured import as_str_dict, get_str
from gwops.platform.files import atomic_write_text

__all__ = [
    "ReleaseRecord",
    "forget_releases",
    "load_metadata",
    "record_release",
    "save_metadata",
    "sha256_file",
]


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    """Metadata of one deployed release.

    Attributes:
        deployed_at: ISO timestamp of extraction
        artifact: Archive file name
        sha256: Archive checksum
    """

    deployed_at: str
    artifact: str
    sha256: str

    @classmethod
    def now(cls, artifact: Path, sha256: str) -> ReleaseRecord:
        return cls(
            deployed_at=datetime.now().isoformat(timespec="seconds"),
            artifact=artifact.name,
            sha256=sha256,
        )


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def load_metadata(path: Path) -> dict[str, ReleaseRecord]:
    """Load release metadata; a missing or corrupted file reads as empty."""
    if not path.exists():
        return {}

    try:
        data = as_str_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return {}
    if data is None:
        return {}

    records: dict[str, ReleaseRecord] = {}
    for version, raw in data.items():
        entry = as_str_dict(raw)
        if entry is None:
            continue
        deployed_at = get_str(entry, "deployed_at")
        if deployed_at is None:
            continue
        records[version] = ReleaseRecord(
            deployed_at=deployed_at,
            artifact=get_str(entry, "artifact") or "",
            sha256=get_str(entry, "sha256") or "",
        )
    return records


def save_metadata(path: Path, records: dict[str, ReleaseRecord]) -> None:
    data = {version: asdict(record) for version, record in records.items()}
    atomic_write_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n")


def record_release(path: Path, version: str, record: ReleaseRecord) -> None:
    records = load_metadata(path)
    records[version] = record
    save_metadata(path, records)


def forget_releases(path: Path, versions: list[str]) -> None:
    records = load_metadata(path)
    for version in versions:
        records.pop(version, None)
    save_metadata(path, records)
