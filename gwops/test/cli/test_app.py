from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from gwops import __version__
from gwops.cli.app import app
from gwops.cli.commands._helpers import SKIP_ROOT_CHECK_ENV
from gwops.core.config import CONFIG_ENV_VAR
from gwops.core.errors import ErrorCode

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env() -> Iterator[None]:
    # The app callback writes to os.environ directly.
    with patch.dict(os.environ):
        os.environ.pop(CONFIG_ENV_VAR, None)
        os.environ.pop(SKIP_ROOT_CHECK_ENV, None)
        yield


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_commands_are_registered() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for name in ("deploy", "switch", "rollback", "status", "releases", "prune", "debug-bundle"):
        assert name in result.output


def test_missing_config_file_is_user_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(tmp_path / "nope.toml"), "releases"])

    assert result.exit_code == int(ErrorCode.USER_ERROR)


def test_broken_config_is_env_error(tmp_path: Path) -> None:
    config = tmp_path / "gwops.toml"
    config.write_text("[release\n", encoding="utf-8")

    result = runner.invoke(app, ["--config", str(config), "releases"])

    assert result.exit_code == int(ErrorCode.ENV_ERROR)


def test_config_and_root_flags_reach_commands(tmp_path: Path) -> None:
    config = tmp_path / "gwops.toml"
    config.write_text(
        f'[release]\nbase_dir = "{tmp_path / "core"}"\nowner = ""\ngroup = ""\n',
        encoding="utf-8",
    )

    result = runner.invoke(
        app, ["--config", str(config), "--no-root-check", "rollback", "--no-restart"]
    )

    assert result.exit_code == int(ErrorCode.NO_PREVIOUS_RELEASE)
    assert os.environ.get(SKIP_ROOT_CHECK_ENV) == "1"
