"""Gateway status snapshot: pointers, services, database and disk."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from gwops.core.config import Config
from gwops.release.model import StoreStatus
from gwops.release.store import ReleaseStore
from gwops.services.supervisor import Supervisor


@dataclass(frozen=True, slots=True)
class ServiceState:
    unit: str
    state: str

    @property
    def active(self) -> bool:
        return self.state == "active"


@dataclass(frozen=True, slots=True)
class DiskUsage:
    path: Path
    total: int
    used: int
    free: int

    @property
    def used_pct(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.used * 100 / self.total)


@dataclass(frozen=True, slots=True)
class StatusReport:
    store: StoreStatus
    services: tuple[ServiceState, ...]
    db_path: Path
    db_exists: bool
    disk: DiskUsage | None


def disk_usage(path: Path) -> DiskUsage | None:
    """Usage of the filesystem holding path, falling back to /."""
    for candidate in (path, Path("/")):
        try:
            usage = shutil.disk_usage(candidate)
        except OSError:
            continue
        return DiskUsage(path=candidate, total=usage.total, used=usage.used, free=usage.free)
    return None


def collect_status(config: Config, store: ReleaseStore, supervisor: Supervisor) -> StatusReport:
    units = (*config.service.peers, config.service.name)
    return StatusReport(
        store=store.status(),
        services=tuple(ServiceState(unit, supervisor.is_active(unit)) for unit in units),
        db_path=config.data.db,
        db_exists=config.data.db.is_file(),
        disk=disk_usage(config.data.dir),
    )


def human_size(num: int) -> str:
    value = float(num)
    for unit in ("B", "K", "M", "G", "T"):
        if value < 1024 or unit == "T":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}T"
