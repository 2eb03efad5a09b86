# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.settings",
#   "purpose": "Define typed loader settings, environment overrides, and YAML configuration loading",
#   "sections": [
#     {"id": "models", "name": "Configuration Models", "anchor": "MOD", "kind": "api"},
#     {"id": "settings", "name": "LoaderSettings", "anchor": "SET", "kind": "api"},
#     {"id": "loading", "name": "Configuration Loading", "anchor": "LOA", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for native library resolution.

Settings describe *which* native library is being resolved (product, library
and binding names), *where* to look for it (override variables, bundle
sources, cache root), and *how* to fetch and load it (download URL template,
load policy, ordered-load layout).  Every field can be overridden through
``NATIVEBRIDGE_*`` environment variables; nested models use ``__`` as the
delimiter (for example ``NATIVEBRIDGE_LOGGING__LEVEL=DEBUG``).  Defaults
describe the PyTorch native runtime.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Annotated, Any, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigurationError

__all__ = [
    "ENV_PREFIX",
    "LoggingConfiguration",
    "OrderedLoadLayout",
    "LoaderSettings",
    "get_default_settings",
    "invalidate_default_settings_cache",
    "load_raw_yaml",
    "load_settings",
]

ENV_PREFIX = "NATIVEBRIDGE_"

_DEFAULT_SEARCH_PATH_ENV = {
    "win": "PATH",
    "osx": "DYLD_LIBRARY_PATH",
}

# --- Configuration Models ---


class LoggingConfiguration(BaseModel):
    """Logging-related configuration for the loader and CLI."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[Path] = Field(
        default=None, description="Optional JSON-lines log file written alongside console output"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    model_config = {"validate_assignment": True}


class OrderedLoadLayout(BaseModel):
    """Library names loaded in a fixed order on platforms without transitive resolution."""

    intermediates: List[str] = Field(
        default_factory=lambda: ["fbgemm", "torch_cpu"],
        description="Dependencies loaded after the directory sweep, in this order",
    )
    gpu_runtime: List[str] = Field(
        default_factory=lambda: ["c10_cuda", "torch_cuda"],
        description="GPU libraries loaded in order when the first one is present",
    )

    def load_last(self) -> List[str]:
        """Return every library name excluded from the directory sweep."""

        return [*self.intermediates, *self.gpu_runtime]

    model_config = {"validate_assignment": True, "extra": "ignore"}


# --- LoaderSettings ---


class LoaderSettings(BaseSettings):
    """Settings for resolving, caching, and loading one native library family."""

    product: str = Field(default="pytorch", min_length=1, description="Product name used for cache and manifests")
    native_library: str = Field(default="torch", min_length=1, description="Unmapped main native library name")
    binding_library: Optional[str] = Field(
        default=None,
        description="Unmapped binding (glue) library installed next to the native library",
    )
    override_env: str = Field(
        default="PYTORCH_LIBRARY_PATH",
        description="Environment variable naming override directories or files",
    )
    search_path_env: Optional[str] = Field(
        default=None,
        description="Generic library search path variable; defaults per operating system",
    )
    cache_dir: Optional[Path] = Field(
        default=None, description="Cache root; defaults to ~/.<product>/cache"
    )
    download_base_url: str = Field(
        default="https://djl-ai.s3.amazonaws.com/publish/pytorch-{version}",
        description="Version-scoped base URL template for remote native files",
    )
    flavor: str = Field(default="", description="Accelerator flavor of the host (empty means cpu)")
    load_policy: Optional[str] = Field(
        default=None, description="Force 'ordered' or 'auto'; detected from the host when unset"
    )
    bundle_paths: Annotated[List[Path], NoDecode] = Field(
        default_factory=list, description="Directories holding bundled native artefacts"
    )
    bundle_packages: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Installed packages holding bundled native artefacts"
    )
    timeout_sec: Optional[float] = Field(
        default=None, gt=0.0, description="HTTP timeout; unset means wait indefinitely"
    )
    user_agent: str = Field(default="nativebridge/0.1", description="User-Agent sent with downloads")
    layout: OrderedLoadLayout = Field(default_factory=OrderedLoadLayout)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    @field_validator("bundle_paths", "bundle_packages", mode="before")
    @classmethod
    def split_path_list(cls, value: Any) -> Any:
        """Accept ``os.pathsep`` or comma separated strings from the environment."""

        if isinstance(value, str):
            separators = {os.pathsep, ","}
            items = [value]
            for sep in separators:
                items = [part for item in items for part in item.split(sep)]
            return [item.strip() for item in items if item.strip()]
        return value

    @field_validator("load_policy")
    @classmethod
    def validate_load_policy(cls, value: Optional[str]) -> Optional[str]:
        """Restrict forced load policies to the supported values."""

        if value is None or not value.strip():
            return None
        lowered = value.strip().lower()
        if lowered not in {"ordered", "auto"}:
            raise ValueError("load_policy must be 'ordered' or 'auto'")
        return lowered

    def resolved_cache_dir(self) -> Path:
        """Return the cache root, falling back to ``~/.<product>/cache``."""

        if self.cache_dir is not None:
            return self.cache_dir.expanduser()
        return Path.home() / f".{self.product}" / "cache"

    def resolved_search_path_env(self, os_family: str) -> str:
        """Return the generic library search path variable for ``os_family``."""

        if self.search_path_env:
            return self.search_path_env
        return _DEFAULT_SEARCH_PATH_ENV.get(os_family, "LD_LIBRARY_PATH")

    @property
    def entry_library(self) -> str:
        """Library name the override probe searches for and the loader loads last."""

        return self.binding_library or self.native_library


# --- Configuration Loading ---

_DEFAULT_SETTINGS: Optional[LoaderSettings] = None
_DEFAULT_SETTINGS_LOCK = threading.Lock()


def get_default_settings() -> LoaderSettings:
    """Return a memoised :class:`LoaderSettings` built from the environment."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        if _DEFAULT_SETTINGS is None:
            try:
                _DEFAULT_SETTINGS = LoaderSettings()
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid {ENV_PREFIX}* environment settings: {exc}") from exc
        return _DEFAULT_SETTINGS


def invalidate_default_settings_cache() -> None:
    """Invalidate the cached default settings."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        _DEFAULT_SETTINGS = None


def load_raw_yaml(config_path: Path) -> Mapping[str, object]:
    """Read a YAML configuration file and return its top-level mapping."""

    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Configuration file '{path}' contains invalid YAML") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration file must contain a mapping at the root")
    return data


def load_settings(config_path: Path) -> LoaderSettings:
    """Load and validate settings from YAML; environment variables fill the gaps."""

    raw = load_raw_yaml(config_path)
    try:
        return LoaderSettings(**dict(raw))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc
