"""Command line interface tests driven through Typer's ``CliRunner``."""

from __future__ import annotations

import json
import os
import sys

import pytest
from typer.testing import CliRunner

from PropsAgent.PropertyLoad import __version__
from PropsAgent.PropertyLoad.cache import cache_path_for, promote_snapshot, write_snapshot
from PropsAgent.PropertyLoad.cli import app


@pytest.fixture
def runner(cache_dir, monkeypatch) -> CliRunner:
    monkeypatch.setenv("PROPSAGENT_CACHE_DIR", str(cache_dir))
    return CliRunner()


@pytest.fixture
def base_args(tmp_path):
    return ["--log-dir", str(tmp_path / "logs")]


def test_version(runner):
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"propsagent {__version__}" in result.stdout


def test_load_prints_properties(runner, base_args, write_source):
    a = write_source("a.properties", "x=1\n")
    b = write_source("b.properties", "x=2\ny=caf\xe9\n")

    result = runner.invoke(app, [*base_args, "load", f"!{a},{b}"])

    assert result.exit_code == 0, result.output
    assert result.stdout == "x=1\ny=caf\\u00e9\n"


def test_load_json(runner, base_args, write_source):
    source = write_source("a.properties", "b=2\na=1\n")
    result = runner.invoke(app, [*base_args, "load", "--json", str(source)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"a": "1", "b": "2"}


def test_load_env_skips_existing_variables(runner, base_args, write_source, monkeypatch):
    monkeypatch.setenv("PROPSAGENT_TEST_PRESET", "from-env")
    source = write_source("a.properties", "PROPSAGENT_TEST_PRESET=remote\nother=1\n")
    result = runner.invoke(app, [*base_args, "load", "--json", "--env", str(source)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"other": "1"}


def test_load_unreachable_source_succeeds_with_nothing(runner, base_args, tmp_path):
    result = runner.invoke(app, [*base_args, "-v", "load", "--json", str(tmp_path / "missing")])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {}


def test_bad_config_exits_with_code_2(runner, tmp_path):
    config = tmp_path / "bad.yaml"
    config.write_text("encoding: nope\n")
    result = runner.invoke(app, ["--config", str(config), "cache", "list"])
    assert result.exit_code == 2


def test_bad_log_level_exits_with_code_2(runner, base_args):
    result = runner.invoke(app, [*base_args, "--log-level", "chatty", "cache", "list"])
    assert result.exit_code == 2


def test_cache_commands(runner, base_args, cache_dir):
    location = "https://config.test/app.properties"
    path = cache_path_for(location, cache_dir)
    promote_snapshot(write_snapshot([b"k=v\n"], path), path)

    result = runner.invoke(app, [*base_args, "cache", "path", location])
    assert result.exit_code == 0
    assert result.stdout.strip() == str(path)

    result = runner.invoke(app, [*base_args, "cache", "show", "--raw", location])
    assert result.exit_code == 0
    assert result.stdout == "k=v\n"

    result = runner.invoke(app, [*base_args, "cache", "list"])
    assert result.exit_code == 0
    assert "https___config" in result.stdout

    result = runner.invoke(app, [*base_args, "cache", "clear", location])
    assert result.exit_code == 0
    assert not path.exists()

    result = runner.invoke(app, [*base_args, "cache", "show", location])
    assert result.exit_code == 1


def test_run_exports_properties_to_child(runner, base_args, write_source):
    key = "PROPSAGENT_TEST_CHILD_VALUE"
    source = write_source("child.properties", f"{key}=from-file\n")
    script = f"import os, sys; sys.exit(0 if os.environ.get({key!r}) == 'from-file' else 3)"
    try:
        result = runner.invoke(
            app, [*base_args, "run", f"!{source}", "--", sys.executable, "-c", script]
        )
    finally:
        os.environ.pop(key, None)
    assert result.exit_code == 0, result.output


def test_run_missing_command(runner, base_args, tmp_path):
    result = runner.invoke(
        app, [*base_args, "run", str(tmp_path / "none"), "--", str(tmp_path / "no-such-binary")]
    )
    assert result.exit_code == 127


def test_scalar_settings_section_exits_with_code_2(runner, tmp_path):
    config = tmp_path / "scalar.yaml"
    config.write_text("http: 5\n")
    result = runner.invoke(app, ["--config", str(config), "cache", "list"])
    assert result.exit_code == 2


def test_cache_clear_reports_unremovable_snapshot(runner, base_args, cache_dir):
    location = "https://config.test/locked.properties"
    cache_path_for(location, cache_dir).mkdir()

    result = runner.invoke(app, [*base_args, "cache", "clear", location])

    assert result.exit_code == 1
    assert "Traceback" not in result.output
