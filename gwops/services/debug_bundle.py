"""Offline debug bundle.

Collects what is needed to diagnose a gateway that can't be reached
interactively into a single tar.gz the operator can carry away:

    system/    platform info, uptime, memory, kernel messages
    network/   addresses, routes, resolver, listening sockets
    services/  systemd state, unit file and drop-ins
    logs/      journal excerpts per unit, errors, current boot
    config/    redacted service environment, gwops and Mosquitto config
    runtime/   release pointers and metadata, database files
    sanity/    disk thresholds, ownership, DB lock holders, core health
    mqtt/      broker listeners

Never collected: the Mosquitto password file. Values of secret-looking keys
in the environment file are replaced with REDACTED. The Mosquitto persistence
database is only included on request since it can hold retained payloads.
"""

from __future__ import annotations

import grp
import json
import platform
import pwd
import re
import shutil
import socket
import stat
import sys
import tarfile
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from gwops import __version__
from gwops.core.config import Config
from gwops.core.errors import ErrorCode
from gwops.core.result import Err, Ok, Result
from gwops.output.console import ConsoleProtocol
from gwops.platform.http import HttpClient, UrllibHttpClient
from gwops.platform.process import NO_EXIT
from gwops.release.store import ReleaseStore
from gwops.services.status import disk_usage, human_size
from gwops.services.supervisor import Runner, Supervisor, default_runner

__all__ = ["BundleError", "DebugBundleService", "REDACTED", "describe_path", "redact_env"]

REDACTED = "REDACTED"

_SECRET_KEYS = {"SECRET_KEY_BASE", "MQTT_PASSWORD", "DATABASE_URL", "ERLANG_COOKIE"}
_SECRET_MARKERS = ("TOKEN", "PASSWORD")
_ASSIGNMENT_RE = re.compile(r"^(\s*(?:export\s+)?)([A-Za-z_][A-Za-z0-9_]*)(\s*=).*$")

_MQTT_PORT_RE = re.compile(r":(?:1883|8883)\b")
_PERSIST_FILES = ("mosquitto.db", "mosquitto.db.new", "mosquitto.db~")
BOOT_JOURNAL_LINES = 300
DMESG_LINES = 250
DISK_WARN_PCT = 85


@dataclass(frozen=True, slots=True)
class BundleError:
    message: str
    hint: str | None = None
    code: ErrorCode = ErrorCode.IO_ERROR


def _is_secret(key: str) -> bool:
    upper = key.upper()
    return upper in _SECRET_KEYS or any(m in upper for m in _SECRET_MARKERS)


def redact_env(text: str) -> str:
    """Replace the values of secret-looking KEY=value lines, keeping the keys."""
    out: list[str] = []
    for line in text.splitlines():
        m = _ASSIGNMENT_RE.match(line)
        if m and _is_secret(m.group(2)):
            out.append(f"{m.group(1)}{m.group(2)}{m.group(3)}{REDACTED}")
        else:
            out.append(line)
    return "\n".join(out) + ("\n" if text.endswith("\n") else "")


def _tail(text: str, lines: int) -> str:
    kept = text.splitlines()[-lines:]
    return "\n".join(kept) + ("\n" if kept else "")


def describe_path(path: Path) -> str:
    """One `ls -ld` style line: mode, owner:group, size, path."""
    try:
        st = path.lstat()
    except FileNotFoundError:
        return f"missing  {path}"
    try:
        owner = pwd.getpwuid(st.st_uid).pw_name
    except KeyError:
        owner = str(st.st_uid)
    try:
        group = grp.getgrgid(st.st_gid).gr_name
    except KeyError:
        group = str(st.st_gid)
    return f"{stat.filemode(st.st_mode)} {owner}:{group} {st.st_size:>10} {path}"


@dataclass
class _Staging:
    root: Path
    notes: list[str] = field(default_factory=list)

    def write(self, rel: str, content: str) -> None:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def collect(self, rel: str, producer: Callable[[], str]) -> None:
        """Write producer() to rel; a failing producer leaves an error note instead."""
        try:
            content = producer()
        except (OSError, ValueError) as e:
            content = f"collection failed: {e}\n"
            self.notes.append(f"{rel}: {e}")
        self.write(rel, content)

    def copy(self, rel: str, src: Path) -> bool:
        """Copy a file or directory tree as-is. Returns False if src is absent."""
        if not src.exists():
            return False
        dest = self.root / rel
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if src.is_dir():
                shutil.copytree(src, dest, symlinks=True)
            else:
                shutil.copy2(src, dest)
        except OSError as e:
            self.notes.append(f"{rel}: {e}")
        return True


class DebugBundleService:
    def __init__(
        self,
        *,
        config: Config,
        config_path: Path | None,
        store: ReleaseStore,
        supervisor: Supervisor,
        console: ConsoleProtocol,
        runner: Runner | None = None,
        http: HttpClient | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._config = config
        self._config_path = config_path
        self._store = store
        self._supervisor = supervisor
        self._console = console
        self._run = runner or default_runner
        self._http = http or UrllibHttpClient()
        self._now = now

    def bundle_path(self, stamp: datetime) -> Path:
        host = socket.gethostname().split(".")[0] or "unknown"
        name = f"gwops-debug-{host}-{stamp.strftime('%Y%m%d-%H%M%S')}.tar.gz"
        return self._config.debug.bundle_dir / name

    def create(
        self,
        *,
        since: str | None = None,
        max_journal_lines: int | None = None,
        health_url: str | None = None,
        include_mosquitto_persist: bool | None = None,
    ) -> Result[Path, BundleError]:
        debug = self._config.debug
        since = debug.since if since is None else since
        lines = debug.max_journal_lines if max_journal_lines is None else max_journal_lines
        health_url = debug.health_url if health_url is None else health_url
        if include_mosquitto_persist is None:
            include_mosquitto_persist = debug.include_mosquitto_persist

        if not since.strip():
            return Err(BundleError("--since cannot be empty", code=ErrorCode.USER_ERROR))
        if lines <= 0:
            return Err(
                BundleError("--max-journal-lines must be positive", code=ErrorCode.USER_ERROR)
            )
        if not health_url.strip():
            return Err(BundleError("--health-url cannot be empty", code=ErrorCode.USER_ERROR))

        stamp = self._now()
        out = self.bundle_path(stamp)
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(BundleError(f"cannot create {out.parent}: {e}", hint="run as root"))

        with tempfile.TemporaryDirectory(prefix="gwops-debug.") as tmp:
            staging = _Staging(Path(tmp))

            self._console.step("Collecting system info...")
            self._collect_system(staging, stamp)

            self._console.step("Collecting network info...")
            listeners = self._collect_network(staging)

            self._console.step("Collecting service info...")
            self._collect_services(staging)

            self._console.step(f"Collecting logs (since: {since})...")
            self._collect_logs(staging, since=since, lines=lines)

            self._console.step("Collecting configs (with redaction)...")
            self._collect_configs(staging)

            self._console.step("Collecting release layout...")
            self._collect_releases(staging)

            self._console.step("Running sanity checks...")
            self._sanity_checks(staging, health_url)

            self._console.step("Collecting MQTT snapshot...")
            mqtt = [line for line in listeners.splitlines() if _MQTT_PORT_RE.search(line)]
            staging.write("mqtt/listeners.txt", "\n".join(mqtt) + "\n" if mqtt else "none\n")
            staging.write(
                "mqtt/note.txt",
                "Auth-protected MQTT. For deeper tests, run mosquitto_sub/pub with credentials.\n",
            )

            if include_mosquitto_persist:
                self._console.step("Collecting mosquitto persistence...")
                self._collect_mosquitto_persistence(staging)

            if staging.notes:
                staging.write("NOTES.txt", "\n".join(staging.notes) + "\n")

            self._console.step(f"Creating debug bundle: {out}")
            try:
                with tarfile.open(out, "w:gz") as tar:
                    tar.add(staging.root, arcname=".")
                out.chmod(0o644)
            except (OSError, tarfile.TarError) as e:
                return Err(BundleError(f"cannot write bundle {out}: {e}"))

        for note in staging.notes:
            self._console.warning(note)
        return Ok(out)

    def _command(self, cmd: list[str]) -> str:
        match self._run(cmd):
            case Ok(out):
                return out
            case Err(e) if e.returncode == NO_EXIT:
                return f"{cmd[0]}: not available ({e.detail})\n"
            case Err(e):
                # lsof/fuser/ss exit non-zero when there is simply nothing to show
                return e.stdout + (e.stderr if e.stderr else f"(exit {e.returncode})\n")

    # -- collectors ---------------------------------------------------------

    def _collect_system(self, staging: _Staging, stamp: datetime) -> None:
        uname = platform.uname()
        staging.write(
            "system/info.txt",
            "\n".join(
                [
                    f"gwops={__version__}",
                    f"date={stamp.isoformat(timespec='seconds')}",
                    f"hostname={socket.gethostname()}",
                    f"system={uname.system} {uname.release}",
                    f"version={uname.version}",
                    f"machine={uname.machine}",
                    f"python={sys.version.split()[0]}",
                ]
            )
            + "\n",
        )
        if not staging.copy("system/os-release.txt", Path("/etc/os-release")):
            staging.write("system/os-release.txt", "not found: /etc/os-release\n")
        staging.write("system/uptime.txt", self._command(["uptime"]))
        staging.write("system/last-boot.txt", self._command(["who", "-b"]))
        staging.write("system/df.txt", self._command(["df", "-h"]))
        staging.write("system/df_inodes.txt", self._command(["df", "-ih"]))
        staging.write("system/free.txt", self._command(["free", "-h"]))
        staging.write("system/dmesg_tail.txt", _tail(self._command(["dmesg", "-T"]), DMESG_LINES))

    def _collect_network(self, staging: _Staging) -> str:
        staging.write("network/ip_addr.txt", self._command(["ip", "addr"]))
        staging.write("network/ip_route.txt", self._command(["ip", "route"]))
        if not staging.copy("network/resolv.conf.txt", Path("/etc/resolv.conf")):
            staging.write("network/resolv.conf.txt", "not found: /etc/resolv.conf\n")
        listeners = self._command(["ss", "-lntup"])
        staging.write("network/listeners.txt", listeners)
        return listeners

    def _collect_services(self, staging: _Staging) -> None:
        units = (*self._config.service.peers, self._config.service.name)
        active = [f"{unit}: {self._supervisor.is_active(unit)}" for unit in units]
        staging.write("services/is_active.txt", "\n".join(active) + "\n")
        enabled = [f"{unit}: {self._supervisor.is_enabled(unit)}" for unit in units]
        staging.write("services/is_enabled.txt", "\n".join(enabled) + "\n")

        for unit in units:
            staging.write(f"services/status_{unit}.txt", self._supervisor.status(unit))

        systemd_dir = self._config.debug.systemd_dir
        unit_name = f"{self._config.service.name}.service"
        staging.copy(f"services/{unit_name}", systemd_dir / unit_name)
        staging.copy(f"services/{unit_name}.d", systemd_dir / f"{unit_name}.d")

    def _collect_logs(self, staging: _Staging, *, since: str, lines: int) -> None:
        units = (*self._config.service.peers, self._config.service.name)
        for unit in units:
            staging.write(
                f"logs/journal_{unit}_since.txt",
                self._supervisor.journal(unit, lines=lines, since=since),
            )
        staging.write(
            "logs/journal_errors_since.txt",
            self._supervisor.journal(None, lines=lines, since=since, priority="err"),
        )
        # handy after a power loss
        staging.write(
            "logs/journal_boot_summary.txt",
            self._supervisor.journal(None, lines=BOOT_JOURNAL_LINES, boot=True),
        )

    def _collect_configs(self, staging: _Staging) -> None:
        env_file = self._config.debug.env_file
        if env_file.is_file():
            staging.collect(
                f"config/{env_file.name}.redacted",
                lambda: redact_env(env_file.read_text(encoding="utf-8")),
            )
        else:
            staging.write(f"config/{env_file.name}.missing", f"not found: {env_file}\n")
        staging.write(
            "config/env_dir_ls.txt",
            "\n".join(describe_path(p) for p in _listing(env_file.parent)) + "\n",
        )

        if self._config_path is not None and self._config_path.is_file():
            path = self._config_path
            staging.collect(f"config/{path.name}", lambda: path.read_text(encoding="utf-8"))

        mosquitto = self._config.debug.mosquitto_dir
        for name in ("mosquitto.conf", "acl"):
            if (mosquitto / name).is_file():
                staging.copy(f"config/mosquitto/{name}", mosquitto / name)

        passwd = mosquitto / "passwd"
        note = f"NOT INCLUDED: {passwd} (contains password hashes)\n"
        if passwd.exists():
            note += describe_path(passwd) + "\n"
        staging.write("config/mosquitto/passwd_note.txt", note)

    def _collect_releases(self, staging: _Staging) -> None:
        def layout_report() -> str:
            status = self._store.status()
            rows = [
                f"base_dir: {self._store.layout.base_dir}",
                f"current -> {status.current.describe()}",
                f"previous -> {status.previous.describe()}",
                "",
                "releases (oldest first):",
            ]
            for release in self._store.list_releases():
                rows.append(
                    f"  {release.version}  deployed_at={release.deployed_at or '?'}  "
                    f"artifact={release.artifact or '?'}"
                )
            return "\n".join(rows) + "\n"

        staging.collect("runtime/releases.txt", layout_report)

        metadata = self._store.layout.metadata_path
        if metadata.is_file():
            staging.collect(
                "runtime/releases.json",
                lambda: json.dumps(json.loads(metadata.read_text("utf-8")), indent=2) + "\n",
            )

        db = self._config.data.db
        staging.write(
            "runtime/db.txt",
            f"{db}: {'exists' if db.is_file() else 'missing'}\n"
            + "".join(
                f"{aux}: present\n"
                for aux in (db.with_name(db.name + "-wal"), db.with_name(db.name + "-shm"))
                if aux.exists()
            ),
        )

    def _sanity_checks(self, staging: _Staging, health_url: str) -> None:
        data_dir = self._config.data.dir
        db = self._config.data.db

        def disk_report() -> str:
            rows: list[str] = []
            for path in (Path("/"), data_dir):
                usage = disk_usage(path)
                if usage is None:
                    rows.append(f"{path}: unavailable")
                    continue
                rows.append(
                    f"{usage.path}: total={human_size(usage.total)} used={human_size(usage.used)} "
                    f"free={human_size(usage.free)} used_pct={usage.used_pct}%"
                )
            rows.append("")
            rows.append(
                f"If usage > {DISK_WARN_PCT}%, expect issues (DB locks, crashes, failed backups)."
            )
            return "\n".join(rows) + "\n"

        staging.collect("sanity/disk_thresholds.txt", disk_report)

        staging.write(
            "sanity/permissions.txt",
            f"{data_dir} ownership:\n"
            + "".join(
                describe_path(p) + "\n" for p in (data_dir, db.parent, data_dir / "backups")
            )
            + "\nDB file ownership:\n"
            + describe_path(db)
            + "\n",
        )

        if db.is_file():
            lock_hints = (
                f"DB exists: {db}\n\n"
                f"Open file handles to DB (lsof):\n{self._command(['lsof', str(db)])}\n"
                f"Potential locks (fuser):\n{self._command(['fuser', '-v', str(db)])}"
            )
        else:
            lock_hints = f"DB missing: {db}\n"
        staging.write("sanity/db_lock_hints.txt", lock_hints)

        match self._http.get_text(health_url):
            case Ok(body):
                health = f"Health URL: {health_url}\n{body}\n"
            case Err(e):
                health = f"Health URL: {health_url}\nFAILED: {e}\n{e.body}"
        staging.write("sanity/core_health.txt", health)

    def _collect_mosquitto_persistence(self, staging: _Staging) -> None:
        data_dir = self._config.debug.mosquitto_data_dir
        copied: list[str] = []
        for name in _PERSIST_FILES:
            if (data_dir / name).is_file():
                staging.copy(f"mosquitto-persist/{name}", data_dir / name)
                copied.append(name)
        if copied:
            note = (
                "Included mosquitto persistence DB file(s): "
                f"{', '.join(copied)}. May contain retained payloads or queued "
                "messages (no passwords).\n"
            )
        else:
            note = (
                f"No mosquitto persistence DB found in {data_dir}. "
                "Check persistence_location in mosquitto.conf.\n"
            )
        staging.write("mosquitto-persist/note.txt", note)


def _listing(directory: Path) -> list[Path]:
    try:
        return [directory, *sorted(directory.iterdir())]
    except OSError:
        return [directory]
