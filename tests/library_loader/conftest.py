"""Shared fixtures for the library_loader test suite."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from NativeBridge.LibraryLoader.api import reset_load_state
from NativeBridge.LibraryLoader.cache import CacheStore
from NativeBridge.LibraryLoader.descriptor import PlatformDescriptor
from NativeBridge.LibraryLoader.logging_utils import LOGGER_NAME
from NativeBridge.LibraryLoader.net import reset_http_client
from NativeBridge.LibraryLoader.settings import (
    ENV_PREFIX,
    LoaderSettings,
    invalidate_default_settings_cache,
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Strip loader variables and reset process-wide state around every test."""

    for name in list(os.environ):
        if name.upper().startswith(ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)
    for name in ("PYTORCH_LIBRARY_PATH", "LD_LIBRARY_PATH", "DYLD_LIBRARY_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    invalidate_default_settings_cache()
    reset_load_state()
    yield
    reset_load_state()
    reset_http_client()
    invalidate_default_settings_cache()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def linux_host() -> PlatformDescriptor:
    return PlatformDescriptor(os_family="linux", arch="x86_64")


@pytest.fixture
def win_host() -> PlatformDescriptor:
    return PlatformDescriptor(os_family="win", arch="x86_64")


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def settings(cache_root: Path) -> LoaderSettings:
    return LoaderSettings(cache_dir=cache_root, download_base_url="https://example.org/pytorch-{version}")


@pytest.fixture
def linux_cache(cache_root: Path) -> CacheStore:
    return CacheStore(cache_root, "torch", "linux")

