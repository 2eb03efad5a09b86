# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader",
#   "purpose": "Package initialization for NativeBridge.LibraryLoader",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for resolving, caching, and loading platform-specific native libraries.

This facade exposes the single ``load_library`` entry point together with the
components it wires together, so embedders can either take the default
pipeline or assemble the tiers themselves.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

__version__ = "0.1.0"

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "load_library": (".api", "load_library"),
    "resolve_library": (".api", "resolve_library"),
    "reset_load_state": (".api", "reset_load_state"),
    "ResolvedLibrary": (".api", "ResolvedLibrary"),
    "LoadedLibrary": (".loader", "LoadedLibrary"),
    "LoadPolicy": (".loader", "LoadPolicy"),
    "NativeLoader": (".loader", "NativeLoader"),
    "PlatformDescriptor": (".descriptor", "PlatformDescriptor"),
    "PathProbe": (".probe", "PathProbe"),
    "BundleLocator": (".bundles", "BundleLocator"),
    "CacheKey": (".cache", "CacheKey"),
    "CacheStore": (".cache", "CacheStore"),
    "Downloader": (".download", "Downloader"),
    "LoaderSettings": (".settings", "LoaderSettings"),
    "NativeLibraryError": (".errors", "NativeLibraryError"),
    "ConfigurationError": (".errors", "ConfigurationError"),
    "VersionFormatError": (".errors", "VersionFormatError"),
    "PlatformMismatchError": (".errors", "PlatformMismatchError"),
    "ManifestParseError": (".errors", "ManifestParseError"),
    "DownloadError": (".errors", "DownloadError"),
    "NativeLoadError": (".errors", "NativeLoadError"),
}

__all__ = [*_EXPORTS, "__version__"]


def __getattr__(name: str) -> Any:
    """Lazily import API exports to keep ``import`` free of httpx/pydantic start-up cost."""

    spec = _EXPORTS.get(name)
    if spec is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module = import_module(spec[0], __name__)
    value = getattr(module, spec[1])
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted({*globals(), *__all__})
