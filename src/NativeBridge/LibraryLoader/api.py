# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.api",
#   "purpose": "Resolve and load the native library through override, bundle, cache, and download tiers",
#   "sections": [
#     {"id": "results", "name": "Result Types", "anchor": "RES", "kind": "api"},
#     {"id": "resolve", "name": "Resolution Pipeline", "anchor": "RSV", "kind": "api"},
#     {"id": "load", "name": "Once-only Load", "anchor": "LOD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Public entry points for native library resolution.

:func:`resolve_library` walks the tiers in order and stops at the first hit:

1. an override file found by :class:`~.probe.PathProbe`,
2. a bundled artefact matching the host, copied into the cache,
3. a placeholder bundle, satisfied from the cache or by downloading.

:func:`load_library` resolves and then loads the result exactly once per
process.  After a successful load, later calls return the same
:class:`~.loader.LoadedLibrary` without touching the filesystem, network, or
dynamic loader; a failed call does not latch, so callers may retry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

import httpx

from .bundles import BundleLocator, sources_from_settings
from .cache import CacheStore
from .descriptor import PlatformDescriptor, map_library_name
from .download import Downloader
from .errors import NativeLoadError
from .loader import LoadedLibrary, LoadPolicy, NativeLoader
from .probe import PathProbe
from .settings import LoaderSettings, get_default_settings

__all__ = [
    "ResolvedLibrary",
    "build_loader",
    "load_library",
    "reset_load_state",
    "resolve_library",
]

LOGGER = logging.getLogger("NativeBridge.LibraryLoader")

_LOAD_LOCK = threading.Lock()
_LOADED: Optional[LoadedLibrary] = None

# --- Result Types ---


@dataclass(frozen=True)
class ResolvedLibrary:
    """Where the entry library was found and which tier produced it."""

    source: str
    directory: Path
    entry: Path
    descriptor: Optional[PlatformDescriptor] = None


# --- Resolution Pipeline ---


def _host_descriptor(settings: LoaderSettings, host: Optional[PlatformDescriptor]) -> PlatformDescriptor:
    if host is not None:
        return host
    return PlatformDescriptor.from_host(settings.flavor)


def resolve_library(
    settings: Optional[LoaderSettings] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    host: Optional[PlatformDescriptor] = None,
    client: Optional[httpx.Client] = None,
) -> ResolvedLibrary:
    """Find or materialise the native library directory without loading it."""

    cfg = settings or get_default_settings()
    host = _host_descriptor(cfg, host)

    probe = PathProbe(
        cfg.entry_library,
        host.os_family,
        variables=[cfg.override_env, cfg.resolved_search_path_env(host.os_family)],
        env=env,
    )
    override = probe.find_override()
    if override is not None:
        LOGGER.info("using override native library", extra={"stage": "resolve", "path": str(override)})
        return ResolvedLibrary("override", override.parent, override)

    locator = BundleLocator(sources_from_settings(cfg.bundle_paths, cfg.bundle_packages), cfg.product)
    match = locator.discover(host)
    if match is None:
        raise NativeLoadError(
            f"Native library not found: set {cfg.override_env} or install a native bundle"
        )

    cache = CacheStore(cfg.resolved_cache_dir(), cfg.native_library, host.os_family)
    if match.is_placeholder:
        directory = Downloader(cfg, cache, client=client).fetch(match.descriptor, host)
        source = "download"
    else:
        directory = locator.materialize(match, cache)
        source = "bundled"

    if cfg.binding_library:
        entry = locator.install_binding(directory, host, cfg.binding_library)
    else:
        entry = directory / map_library_name(cfg.native_library, host.os_family)
    LOGGER.info(
        "resolved native library",
        extra={"stage": "resolve", "source": source, "path": str(entry)},
    )
    return ResolvedLibrary(source, directory, entry, match.descriptor)


def build_loader(
    settings: LoaderSettings,
    host: PlatformDescriptor,
    **kwargs,
) -> NativeLoader:
    """Return a :class:`NativeLoader` whose policy is decided once from ``host``."""

    return NativeLoader(
        settings.native_library,
        host.os_family,
        policy=LoadPolicy.for_os(host.os_family, settings.load_policy),
        layout=settings.layout,
        binding_library=settings.binding_library,
        **kwargs,
    )


# --- Once-only Load ---


def load_library(
    settings: Optional[LoaderSettings] = None,
    *,
    loader: Optional[NativeLoader] = None,
    env: Optional[Mapping[str, str]] = None,
    host: Optional[PlatformDescriptor] = None,
    client: Optional[httpx.Client] = None,
) -> LoadedLibrary:
    """Resolve and load the native library; a no-op after the first success."""

    global _LOADED  # noqa: PLW0603

    with _LOAD_LOCK:
        if _LOADED is not None:
            LOGGER.debug("native library already loaded", extra={"stage": "load", "path": str(_LOADED.entry)})
            return _LOADED

        cfg = settings or get_default_settings()
        host = _host_descriptor(cfg, host)
        resolved = resolve_library(cfg, env=env, host=host, client=client)
        native_loader = loader or build_loader(cfg, host)
        loaded = native_loader.load(resolved.directory, resolved.entry)
        _LOADED = replace(loaded, source=resolved.source)
        return _LOADED


def reset_load_state() -> None:
    """Forget a previous successful load (test helper; does not unload anything)."""

    global _LOADED  # noqa: PLW0603

    with _LOAD_LOCK:
        _LOADED = None
