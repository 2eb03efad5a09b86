# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.bundles",
#   "purpose": "Discover bundled native artefacts and classify them against the host platform",
#   "sections": [
#     {"id": "sources", "name": "Manifest Sources", "anchor": "SRC", "kind": "helpers"},
#     {"id": "match", "name": "BundleMatch", "anchor": "MAT", "kind": "api"},
#     {"id": "locator", "name": "BundleLocator", "anchor": "LOC", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Bundled native artefact discovery.

A *manifest source* is a directory (or an installed package's resource root)
laid out as::

    native/lib/<product>.properties     # platform manifest
    native/lib/<library files...>       # files listed by the manifest
    bindings/<classifier>/<flavor>/<product>.properties
    bindings/<classifier>/<flavor>/<mapped binding library>

Sources are injected explicitly and scanned in the order given, so discovery
is deterministic.  An exact platform match is copied into the cache; a
placeholder manifest hands over to the downloader.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .cache import CacheKey, CacheStore
from .descriptor import PlatformDescriptor, map_library_name, normalize_flavor
from .errors import ManifestParseError, NativeLoadError, PlatformMismatchError

__all__ = ["BundleMatch", "BundleLocator", "sources_from_settings"]

LOGGER = logging.getLogger("NativeBridge.LibraryLoader.bundles")

# --- Manifest Sources ---


def sources_from_settings(paths: Iterable[Path], packages: Iterable[str]) -> List[object]:
    """Return manifest sources for configured directories and installed packages."""

    sources: List[object] = [Path(path).expanduser() for path in paths]
    for package in packages:
        try:
            sources.append(resources.files(package))
        except ModuleNotFoundError:
            LOGGER.warning(
                "bundle package not installed",
                extra={"stage": "discover", "package": package},
            )
    return sources


# --- BundleMatch ---


@dataclass(frozen=True)
class BundleMatch:
    """A discovered manifest together with the source it came from."""

    descriptor: PlatformDescriptor
    source: object

    @property
    def is_placeholder(self) -> bool:
        return self.descriptor.placeholder

    @property
    def library_dir(self):
        return self.source / "native" / "lib"


# --- BundleLocator ---


class BundleLocator:
    """Enumerate manifest sources and pick the artefact to use for the host."""

    def __init__(self, sources: Sequence[object], product: str) -> None:
        self.sources = list(sources)
        self.product = product
        self.manifest_name = f"{product}.properties"

    def manifests(self) -> List[tuple]:
        """Return ``(source, manifest)`` pairs for every source that ships a manifest."""

        found = []
        for source in self.sources:
            manifest = source / "native" / "lib" / self.manifest_name
            if manifest.is_file():
                found.append((source, manifest))
        return found

    def discover(self, host: PlatformDescriptor) -> Optional[BundleMatch]:
        """Return the exact match for ``host``, else the first placeholder.

        ``None`` means no bundled artefacts are present at all.  When manifests
        exist but none match and none is a placeholder,
        :class:`PlatformMismatchError` is raised.
        """

        candidates = self.manifests()
        if not candidates:
            return None

        placeholder: Optional[BundleMatch] = None
        seen: List[str] = []
        for source, manifest in candidates:
            try:
                descriptor = PlatformDescriptor.from_manifest_resource(manifest)
            except ManifestParseError as exc:
                LOGGER.warning(
                    "skipping unreadable native manifest",
                    extra={"stage": "discover", "manifest": str(manifest), "error": str(exc)},
                )
                seen.append(f"{manifest} (invalid)")
                continue
            if descriptor.placeholder:
                if placeholder is None:
                    placeholder = BundleMatch(descriptor, source)
                continue
            if descriptor.matches(host):
                LOGGER.debug(
                    "bundled native library matches host",
                    extra={"stage": "discover", "manifest": str(manifest)},
                )
                return BundleMatch(descriptor, source)
            seen.append(f"{descriptor.normalized_flavor}-{descriptor.classifier}")

        if placeholder is not None:
            return placeholder
        raise PlatformMismatchError(
            f"Bundled native libraries {seen} do not match host "
            f"{host.normalized_flavor}-{host.classifier}. Install the artefact built for this "
            "platform or a placeholder bundle that downloads it."
        )

    def materialize(self, match: BundleMatch, cache: CacheStore) -> Path:
        """Copy an exact match's library files into the cache and return the entry."""

        descriptor = match.descriptor
        key = CacheKey(descriptor.version, descriptor.flavor, descriptor.classifier)
        hit = cache.lookup(key)
        if hit is not None:
            return hit

        library_dir = match.library_dir
        try:
            with cache.staging(key) as staging:
                for name in descriptor.libraries:
                    source = library_dir / name
                    with source.open("rb") as reader, (staging / name).open("wb") as writer:
                        shutil.copyfileobj(reader, writer)
                if not (staging / cache.library_file).is_file():
                    raise NativeLoadError(
                        f"Bundle does not contain {cache.library_file}",
                        path=cache.entry_dir(key) / cache.library_file,
                    )
        except OSError as exc:
            raise NativeLoadError(f"Failed to extract native library: {exc}") from exc
        return cache.entry_dir(key).absolute()

    def install_binding(
        self, native_dir: Path, host: PlatformDescriptor, binding_library: str
    ) -> Path:
        """Copy the binding library for ``host`` into ``native_dir`` and return its path."""

        flavor = host.normalized_flavor
        mapped = map_library_name(binding_library, host.os_family)
        for source in self.sources:
            binding_dir = source / "bindings" / host.classifier / flavor
            manifest = binding_dir / self.manifest_name
            if not manifest.is_file():
                continue
            descriptor = PlatformDescriptor.from_manifest_resource(manifest)
            target = Path(native_dir) / f"{descriptor.version}{flavor}{mapped}"
            if target.is_file():
                return target.absolute()
            part = target.with_name(target.name + ".part")
            try:
                with (binding_dir / mapped).open("rb") as reader, part.open("wb") as writer:
                    shutil.copyfileobj(reader, writer)
                os.replace(part, target)
            except OSError as exc:
                part.unlink(missing_ok=True)
                raise NativeLoadError(f"Cannot copy binding library: {exc}", path=target) from exc
            LOGGER.info(
                "binding library installed",
                extra={"stage": "binding", "path": str(target)},
            )
            return target.absolute()
        raise NativeLoadError(
            f"Cannot find binding manifest bindings/{host.classifier}/{flavor}/{self.manifest_name}"
        )
