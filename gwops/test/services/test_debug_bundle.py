from __future__ import annotations

import tarfile
from datetime import datetime
from pathlib import Path

import pytest

from gwops.core.config import Config, DataConfig, DebugConfig, ReleaseConfig
from gwops.core.errors import ErrorCode
from gwops.core.layout import ReleaseLayout
from gwops.core.result import Err, Ok
from gwops.platform.http import HttpError
from gwops.platform.process import ProcessError
from gwops.output.console import MockConsole
from gwops.release.metadata import ReleaseRecord
from gwops.release.store import ReleaseStore
from gwops.services.debug_bundle import REDACTED, DebugBundleService, describe_path, redact_env

from ._fakes import FakeHttp, FakeSupervisor, ScriptedRunner

ENV = """\
# core service environment
PHX_HOST=gateway.local
SECRET_KEY_BASE=abc123
export MQTT_PASSWORD=hunter2
DATABASE_URL=ecto://user:pw@localhost/db
API_TOKEN = t0k3n
ADMIN_PASSWORD_HASH=xyz
"""


class TestRedactEnv:
    def test_secret_values_are_replaced(self) -> None:
        redacted = redact_env(ENV)

        assert "abc123" not in redacted
        assert "hunter2" not in redacted
        assert "user:pw" not in redacted
        assert "t0k3n" not in redacted
        assert "xyz" not in redacted
        assert f"SECRET_KEY_BASE={REDACTED}" in redacted
        assert f"export MQTT_PASSWORD={REDACTED}" in redacted
        assert f"API_TOKEN ={REDACTED}" in redacted

    def test_other_lines_are_kept(self) -> None:
        redacted = redact_env(ENV)

        assert "PHX_HOST=gateway.local" in redacted
        assert "# core service environment" in redacted
        assert redacted.endswith("\n")

    def test_no_trailing_newline(self) -> None:
        assert redact_env("A=1") == "A=1"


SS_OUTPUT = """\
Netid State  Recv-Q Send-Q Local Address:Port  Peer Address:Port Process
tcp   LISTEN 0      100          0.0.0.0:1883       0.0.0.0:*     users:(("mosquitto",pid=412))
tcp   LISTEN 0      100          0.0.0.0:18830      0.0.0.0:*     users:(("other",pid=9))
tcp   LISTEN 0      128        127.0.0.1:4000       0.0.0.0:*     users:(("beam.smp",pid=733))
"""


@pytest.fixture
def config(tmp_path: Path) -> Config:
    env_file = tmp_path / "etc" / "core.env"
    env_file.parent.mkdir()
    env_file.write_text(ENV, encoding="utf-8")
    return Config(
        release=ReleaseConfig(base_dir=tmp_path / "core", owner=None, group=None),
        data=DataConfig(dir=tmp_path / "data", db=tmp_path / "data" / "db" / "db.sqlite3"),
        debug=DebugConfig(
            bundle_dir=tmp_path / "bundles",
            env_file=env_file,
            since="2 hours ago",
            max_journal_lines=42,
            health_url="http://127.0.0.1:4000/health",
            mosquitto_dir=tmp_path / "mosquitto",
            mosquitto_data_dir=tmp_path / "mosquitto-data",
            systemd_dir=tmp_path / "systemd",
        ),
    )


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner(
        {
            ("ss",): Ok(SS_OUTPUT),
            ("ip", "addr"): Ok("1: lo: <LOOPBACK,UP> mtu 65536\n"),
            ("lsof",): Err(
                ProcessError(("lsof",), -1, "", "[Errno 2] No such file or directory: 'lsof'")
            ),
            ("fuser",): Err(ProcessError(("fuser",), 1, "", "")),
        }
    )


def _service(
    config: Config,
    supervisor: FakeSupervisor,
    console: MockConsole,
    config_path: Path | None,
    *,
    runner: ScriptedRunner | None = None,
    http: FakeHttp | None = None,
) -> DebugBundleService:
    store = ReleaseStore(ReleaseLayout(config.release.base_dir))
    release = store.layout.release_dir("1.0")
    release.mkdir(parents=True)
    store.record("1.0", ReleaseRecord("2026-01-15T10:00:00", "core-1.0.tgz", "ab"))
    store.set_pointer(store.layout.current_link, release)
    return DebugBundleService(
        config=config,
        config_path=config_path,
        store=store,
        supervisor=supervisor,
        console=console,
        runner=runner or ScriptedRunner(),
        http=http or FakeHttp(),
        now=lambda: datetime(2026, 1, 15, 10, 30, 0),
    )


def _members(bundle: Path) -> dict[str, str]:
    out: dict[str, str] = {}
    with tarfile.open(bundle, "r:gz") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            f = tar.extractfile(member)
            assert f is not None
            out[member.name.removeprefix("./")] = f.read().decode("utf-8", errors="replace")
    return out


def test_bundle_contents(config: Config, runner: ScriptedRunner, tmp_path: Path) -> None:
    supervisor = FakeSupervisor(states={"core": "active", "mosquitto": "active"})
    console = MockConsole()
    config_file = tmp_path / "gwops.toml"
    config_file.write_text("[service]\nname = 'core'\n", encoding="utf-8")

    result = _service(config, supervisor, console, config_file, runner=runner).create()

    assert isinstance(result, Ok)
    bundle = result.value
    assert bundle.parent == tmp_path / "bundles"
    assert bundle.name.startswith("gwops-debug-")
    assert bundle.name.endswith("-20260115-103000.tar.gz")

    members = _members(bundle)
    assert "system/info.txt" in members
    assert "system/uptime.txt" in members
    assert "sanity/disk_thresholds.txt" in members
    assert members["services/is_active.txt"] == "mosquitto: active\ncore: active\n"
    assert members["services/is_enabled.txt"] == "mosquitto: enabled\ncore: enabled\n"
    assert "services/status_core.txt" in members
    assert "logs/journal_core_since.txt" in members
    assert "logs/journal_errors_since.txt" in members
    assert members["logs/journal_boot_summary.txt"] == "boot log\n"
    assert "config/gwops.toml" in members
    assert "runtime/releases.json" in members
    assert "current -> " in members["runtime/releases.txt"]
    assert "1.0  deployed_at=2026-01-15T10:00:00" in members["runtime/releases.txt"]
    assert "missing" in members["runtime/db.txt"]

    env = members["config/core.env.redacted"]
    assert "hunter2" not in env
    assert "PHX_HOST=gateway.local" in env
    assert "core.env" in members["config/env_dir_ls.txt"]

    assert ("journal", "core", "42", "2 hours ago", "-") in supervisor.calls
    assert ("journal", "-", "42", "2 hours ago", "err") in supervisor.calls
    assert ("journal-boot", "300") in supervisor.calls
    assert console.find("Collecting network info...")
    assert console.find("Running sanity checks...")
    assert console.find("Creating debug bundle")


def test_network_and_mqtt_listeners(config: Config, runner: ScriptedRunner) -> None:
    result = _service(config, FakeSupervisor(), MockConsole(), None, runner=runner).create()

    assert isinstance(result, Ok)
    members = _members(result.value)
    assert members["network/ip_addr.txt"].startswith("1: lo:")
    assert members["network/listeners.txt"] == SS_OUTPUT
    assert "network/ip_route.txt" in members
    assert "network/resolv.conf.txt" in members
    mqtt = members["mqtt/listeners.txt"]
    assert "0.0.0.0:1883 " in mqtt
    assert ":18830" not in mqtt
    assert ":4000" not in mqtt
    assert ["ss", "-lntup"] in runner.commands


def test_mosquitto_config_is_copied_without_passwords(config: Config) -> None:
    mosquitto = config.debug.mosquitto_dir
    mosquitto.mkdir()
    (mosquitto / "mosquitto.conf").write_text("listener 1883\n", encoding="utf-8")
    (mosquitto / "acl").write_text("user core\ntopic readwrite #\n", encoding="utf-8")
    (mosquitto / "passwd").write_text("core:$7$101$secret-hash\n", encoding="utf-8")

    result = _service(config, FakeSupervisor(), MockConsole(), None).create()

    assert isinstance(result, Ok)
    members = _members(result.value)
    assert members["config/mosquitto/mosquitto.conf"] == "listener 1883\n"
    assert "topic readwrite #" in members["config/mosquitto/acl"]
    note = members["config/mosquitto/passwd_note.txt"]
    assert note.startswith("NOT INCLUDED:")
    assert str(mosquitto / "passwd") in note
    assert not any("secret-hash" in content for content in members.values())
    assert "config/mosquitto/passwd" not in members


def test_unit_file_and_drop_ins(config: Config) -> None:
    systemd = config.debug.systemd_dir
    (systemd / "core.service.d").mkdir(parents=True)
    (systemd / "core.service").write_text("[Service]\nExecStart=/opt/core/current/bin/core\n")
    (systemd / "core.service.d" / "override.conf").write_text("[Service]\nMemoryMax=512M\n")

    result = _service(config, FakeSupervisor(), MockConsole(), None).create()

    assert isinstance(result, Ok)
    members = _members(result.value)
    assert "ExecStart=" in members["services/core.service"]
    assert "MemoryMax=512M" in members["services/core.service.d/override.conf"]


class TestSanityChecks:
    def test_db_lock_hints_when_db_exists(self, config: Config, runner: ScriptedRunner) -> None:
        db = config.data.db
        db.parent.mkdir(parents=True)
        db.write_bytes(b"SQLite format 3\x00")

        result = _service(config, FakeSupervisor(), MockConsole(), None, runner=runner).create()

        assert isinstance(result, Ok)
        members = _members(result.value)
        hints = members["sanity/db_lock_hints.txt"]
        assert hints.startswith(f"DB exists: {db}")
        assert "lsof: not available" in hints
        assert "(exit 1)" in hints
        assert ["fuser", "-v", str(db)] in runner.commands
        assert str(db) in members["sanity/permissions.txt"]
        assert f"missing  {config.data.dir / 'backups'}" in members["sanity/permissions.txt"]

    def test_db_lock_hints_when_db_missing(self, config: Config, runner: ScriptedRunner) -> None:
        result = _service(config, FakeSupervisor(), MockConsole(), None, runner=runner).create()

        assert isinstance(result, Ok)
        hints = _members(result.value)["sanity/db_lock_hints.txt"]
        assert hints == f"DB missing: {config.data.db}\n"
        assert not any(cmd[0] in ("lsof", "fuser") for cmd in runner.commands)

    def test_core_health_ok(self, config: Config) -> None:
        http = FakeHttp(Ok('{"status":"ok"}'))

        result = _service(config, FakeSupervisor(), MockConsole(), None, http=http).create()

        assert isinstance(result, Ok)
        health = _members(result.value)["sanity/core_health.txt"]
        assert health == 'Health URL: http://127.0.0.1:4000/health\n{"status":"ok"}\n'
        assert http.urls == ["http://127.0.0.1:4000/health"]

    def test_core_health_failure_is_recorded(self, config: Config) -> None:
        url = "http://127.0.0.1:4000/health"
        http = FakeHttp(Err(HttpError(url, 503, "Service Unavailable", '{"db":"locked"}')))

        result = _service(config, FakeSupervisor(), MockConsole(), None, http=http).create(
            health_url=url
        )

        assert isinstance(result, Ok)
        health = _members(result.value)["sanity/core_health.txt"]
        assert "FAILED: HTTP 503" in health
        assert '{"db":"locked"}' in health


class TestMosquittoPersistence:
    def _seed(self, config: Config) -> None:
        data = config.debug.mosquitto_data_dir
        data.mkdir()
        (data / "mosquitto.db").write_bytes(b"\x00\x01retained")

    def test_off_by_default(self, config: Config) -> None:
        self._seed(config)

        result = _service(config, FakeSupervisor(), MockConsole(), None).create()

        assert isinstance(result, Ok)
        assert not any(n.startswith("mosquitto-persist/") for n in _members(result.value))

    def test_included_on_request(self, config: Config) -> None:
        self._seed(config)

        result = _service(config, FakeSupervisor(), MockConsole(), None).create(
            include_mosquitto_persist=True
        )

        assert isinstance(result, Ok)
        members = _members(result.value)
        assert "mosquitto-persist/mosquitto.db" in members
        assert "mosquitto.db" in members["mosquitto-persist/note.txt"]

    def test_nothing_to_include(self, config: Config) -> None:
        result = _service(config, FakeSupervisor(), MockConsole(), None).create(
            include_mosquitto_persist=True
        )

        assert isinstance(result, Ok)
        note = _members(result.value)["mosquitto-persist/note.txt"]
        assert note.startswith("No mosquitto persistence DB found")


def test_overrides(config: Config) -> None:
    supervisor = FakeSupervisor()

    result = _service(config, supervisor, MockConsole(), None).create(
        since="10 min ago", max_journal_lines=7
    )

    assert isinstance(result, Ok)
    assert ("journal", "core", "7", "10 min ago", "-") in supervisor.calls


def test_missing_env_file(config: Config) -> None:
    config.debug.env_file.unlink()

    result = _service(config, FakeSupervisor(), MockConsole(), None).create()

    assert isinstance(result, Ok)
    assert "config/core.env.missing" in _members(result.value)


def test_describe_path(tmp_path: Path) -> None:
    target = tmp_path / "db.sqlite3"
    target.write_bytes(b"1234")

    line = describe_path(target)

    assert line.startswith("-rw")
    assert line.endswith(f"4 {target}")
    assert describe_path(tmp_path / "absent") == f"missing  {tmp_path / 'absent'}"


@pytest.mark.parametrize(
    ("since", "lines", "health_url"),
    [("   ", None, None), (None, 0, None), (None, -5, None), (None, None, " ")],
)
def test_invalid_options(
    config: Config, since: str | None, lines: int | None, health_url: str | None
) -> None:
    result = _service(config, FakeSupervisor(), MockConsole(), None).create(
        since=since, max_journal_lines=lines, health_url=health_url
    )

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.USER_ERROR
