"""Environment overrides, YAML loading, and settings defaults."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from NativeBridge.LibraryLoader.errors import ConfigurationError
from NativeBridge.LibraryLoader.settings import (
    LoaderSettings,
    get_default_settings,
    invalidate_default_settings_cache,
    load_raw_yaml,
    load_settings,
)


def test_defaults_describe_pytorch():
    cfg = LoaderSettings()

    assert cfg.product == "pytorch"
    assert cfg.native_library == "torch"
    assert cfg.entry_library == "torch"
    assert cfg.override_env == "PYTORCH_LIBRARY_PATH"
    assert cfg.timeout_sec is None
    assert cfg.layout.load_last() == ["fbgemm", "torch_cpu", "c10_cuda", "torch_cuda"]


def test_default_cache_dir_lives_under_home(tmp_path: Path):
    assert LoaderSettings().resolved_cache_dir() == tmp_path / "home" / ".pytorch" / "cache"
    assert LoaderSettings(product="onnx").resolved_cache_dir().parent.name == ".onnx"


@pytest.mark.parametrize(
    "os_family,expected",
    [("win", "PATH"), ("osx", "DYLD_LIBRARY_PATH"), ("linux", "LD_LIBRARY_PATH"), ("aix", "LD_LIBRARY_PATH")],
)
def test_search_path_variable_per_os(os_family, expected):
    assert LoaderSettings().resolved_search_path_env(os_family) == expected


def test_explicit_search_path_variable_wins():
    assert LoaderSettings(search_path_env="MY_LIBS").resolved_search_path_env("win") == "MY_LIBS"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    monkeypatch.setenv("NATIVEBRIDGE_FLAVOR", "cu117")
    monkeypatch.setenv("NATIVEBRIDGE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("NATIVEBRIDGE_BUNDLE_PATHS", os.pathsep.join([str(first), str(second)]))
    monkeypatch.setenv("NATIVEBRIDGE_BUNDLE_PACKAGES", "pkg_one, pkg_two")
    monkeypatch.setenv("NATIVEBRIDGE_LOGGING__LEVEL", "debug")
    monkeypatch.setenv("NATIVEBRIDGE_BINDING_LIBRARY", "djl_torch")

    cfg = LoaderSettings()

    assert cfg.flavor == "cu117"
    assert cfg.resolved_cache_dir() == tmp_path / "cache"
    assert cfg.bundle_paths == [first, second]
    assert cfg.bundle_packages == ["pkg_one", "pkg_two"]
    assert cfg.logging.level == "DEBUG"
    assert cfg.entry_library == "djl_torch"


@pytest.mark.parametrize("value,expected", [("Ordered", "ordered"), ("auto", "auto"), ("", None)])
def test_load_policy_is_normalised(value, expected):
    assert LoaderSettings(load_policy=value).load_policy == expected


def test_invalid_load_policy_is_rejected():
    with pytest.raises(ValueError):
        LoaderSettings(load_policy="lazy")


def test_invalid_logging_level_is_rejected():
    with pytest.raises(ValueError):
        LoaderSettings(logging={"level": "chatty"})


def test_default_settings_are_memoised(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NATIVEBRIDGE_PRODUCT", "first")
    first = get_default_settings()
    monkeypatch.setenv("NATIVEBRIDGE_PRODUCT", "second")

    assert get_default_settings() is first
    invalidate_default_settings_cache()
    assert get_default_settings().product == "second"


def test_invalid_environment_raises_configuration_error(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NATIVEBRIDGE_LOAD_POLICY", "sometimes")

    with pytest.raises(ConfigurationError):
        get_default_settings()


def test_yaml_settings_merge_with_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    config = tmp_path / "loader.yaml"
    config.write_text(
        "native_library: onnxruntime\n"
        "product: onnx\n"
        "layout:\n"
        "  intermediates: []\n"
        "  gpu_runtime: []\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("NATIVEBRIDGE_FLAVOR", "cu118")

    cfg = load_settings(config)

    assert cfg.native_library == "onnxruntime"
    assert cfg.layout.load_last() == []
    assert cfg.flavor == "cu118"


def test_empty_yaml_yields_defaults(tmp_path: Path):
    config = tmp_path / "empty.yaml"
    config.write_text("", encoding="utf-8")

    assert load_raw_yaml(config) == {}
    assert load_settings(config).product == "pytorch"


@pytest.mark.parametrize(
    "content",
    ["- just\n- a list\n", "key: [unclosed\n"],
)
def test_malformed_yaml_raises(tmp_path: Path, content: str):
    config = tmp_path / "bad.yaml"
    config.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config)


def test_missing_yaml_raises(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        load_raw_yaml(tmp_path / "missing.yaml")


def test_invalid_yaml_values_raise(tmp_path: Path):
    config = tmp_path / "loader.yaml"
    config.write_text("timeout_sec: -5\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config)
