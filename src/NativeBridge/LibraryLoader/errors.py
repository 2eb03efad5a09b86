# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.errors",
#   "purpose": "Define the exception hierarchy used across native library resolution and loading",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "manifest", "name": "Manifest & Platform Errors", "anchor": "MAN", "kind": "api"},
#     {"id": "download", "name": "Download Errors", "anchor": "DWN", "kind": "api"},
#     {"id": "load", "name": "Load Errors", "anchor": "LOD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across native library resolution and loading.

Resolution walks several tiers (override paths, bundled artefacts, the local
cache, and remote downloads) before the dynamic loader ever runs.  Absence at
any single tier is a normal outcome and never raises; the classes below cover
the failures that end a ``load_library`` call.  Callers can catch
:class:`NativeLibraryError` to handle every terminal failure in one place.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

__all__ = [
    "NativeLibraryError",
    "ConfigurationError",
    "VersionFormatError",
    "PlatformMismatchError",
    "ManifestParseError",
    "DownloadError",
    "NativeLoadError",
]


class NativeLibraryError(RuntimeError):
    """Base exception for native library resolution, download, or load failures."""


class ConfigurationError(NativeLibraryError):
    """Raised when loader settings or configuration files are invalid."""


class VersionFormatError(NativeLibraryError):
    """Raised when a version string cannot be normalised into a download version."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Unexpected version: {version!r}")
        self.version = version


class PlatformMismatchError(NativeLibraryError):
    """Raised when bundled artefacts exist but none fit the host platform."""


class ManifestParseError(NativeLibraryError):
    """Raised when a native artefact manifest is unreadable or incomplete."""

    def __init__(self, message: str, *, location: Optional[object] = None) -> None:
        if location is not None:
            message = f"{message} ({location})"
        super().__init__(message)
        self.location = location


class DownloadError(NativeLibraryError):
    """Raised when the remote index or a native file cannot be fetched."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class NativeLoadError(NativeLibraryError):
    """Raised when a required native file is missing or the dynamic load fails."""

    def __init__(self, message: str, *, path: Optional[Union[str, Path]] = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None
