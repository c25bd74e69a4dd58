"""Shared fixtures for the property_load test suite."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

import pytest

from PropsAgent.PropertyLoad import net as net_mod
from PropsAgent.PropertyLoad.logging_utils import LOGGER_NAME
from PropsAgent.PropertyLoad.namespace import PropertyStore
from PropsAgent.PropertyLoad.settings import (
    HttpConfiguration,
    LoaderSettings,
    LoggingConfiguration,
    invalidate_default_settings,
)


@pytest.fixture(autouse=True)
def _isolate_shared_state(monkeypatch):
    """Keep the shared HTTP client and memoised settings per-test."""

    for name in list(os.environ):
        if name.startswith("PROPSAGENT_"):
            monkeypatch.delenv(name, raising=False)
    net_mod.reset_http_client()
    invalidate_default_settings()
    yield
    net_mod.reset_http_client()
    invalidate_default_settings()
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_propsagent_managed", False):
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def loader_settings(cache_dir: Path, tmp_path: Path) -> LoaderSettings:
    return LoaderSettings(
        cache_dir=cache_dir,
        http=HttpConfiguration(timeout_sec=2.0, connect_timeout_sec=1.0),
        logging=LoggingConfiguration(log_dir=tmp_path / "logs"),
    )


@pytest.fixture
def store() -> PropertyStore:
    return PropertyStore()


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[..., Path]:
    """Write a properties source file under ``tmp_path/sources``."""

    root = tmp_path / "sources"
    root.mkdir()

    def _write(name: str, content: str) -> Path:
        path = root / name
        path.write_bytes(content.encode("iso-8859-1"))
        return path

    return _write
