"""Start-up hook entry points."""

from __future__ import annotations

import logging
import tempfile

import pytest

from PropsAgent.PropertyLoad.hook import agentmain, install_from_environment, premain


@pytest.mark.parametrize("entry", [premain, agentmain])
def test_entry_points_load_sources(entry, loader_settings, store, write_source):
    a = write_source("a.properties", "x=1\n")
    b = write_source("b.properties", "x=2\ny=3\n")

    outcomes = entry(f"!{a},{b}", store, loader_settings)

    assert len(outcomes) == 2
    assert store.snapshot() == {"x": "1", "y": "3"}


@pytest.mark.parametrize("args", [None, ""])
def test_entry_points_without_arguments_do_nothing(args, loader_settings, store):
    assert premain(args, store, loader_settings) == []
    assert agentmain(args, store, loader_settings) == []
    assert len(store) == 0


def test_install_from_environment(loader_settings, store, write_source):
    source = write_source("env.properties", "from.env=yes\n")
    outcomes = install_from_environment(
        {"PROPSAGENT_SOURCES": str(source)}, store, loader_settings
    )
    assert [o.applied for o in outcomes] == [["from.env"]]
    assert store.get("from.env") == "yes"


def test_install_from_process_environment(loader_settings, store, write_source, monkeypatch):
    source = write_source("proc.properties", "p=1\n")
    monkeypatch.setenv("PROPSAGENT_SOURCES", f"!{source}")
    install_from_environment(namespace=store, settings=loader_settings)
    assert store.get("p") == "1"


def test_install_from_environment_unset(loader_settings, store):
    assert install_from_environment({}, store, loader_settings) == []


def test_invalid_environment_settings_do_not_abort_startup(
    cache_dir, store, write_source, monkeypatch, caplog
):
    source = write_source("startup.properties", "still.loaded=yes\n")
    monkeypatch.setenv("PROPSAGENT_TIMEOUT_SEC", "not-a-number")
    monkeypatch.setattr(tempfile, "tempdir", str(cache_dir))

    with caplog.at_level(logging.ERROR, logger="PropsAgent.PropertyLoad.hook"):
        outcomes = premain(str(source), store)

    assert store.get("still.loaded") == "yes"
    assert outcomes[0].cache_path.parent == cache_dir.absolute()
    (record,) = [r for r in caplog.records if r.name == "PropsAgent.PropertyLoad.hook"]
    assert record.stage == "hook"
    assert "PROPSAGENT_TIMEOUT_SEC" in record.error
