# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.descriptor",
#   "purpose": "Describe host and artefact platforms and parse native artefact manifests",
#   "sections": [
#     {"id": "naming", "name": "Library Naming Helpers", "anchor": "NAM", "kind": "helpers"},
#     {"id": "parsing", "name": "Manifest Parsing", "anchor": "PAR", "kind": "helpers"},
#     {"id": "descriptor", "name": "PlatformDescriptor", "anchor": "DES", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Platform descriptors for native artefact matching.

A :class:`PlatformDescriptor` names an operating system family, a CPU
architecture, an accelerator flavor, and (for artefacts) a version plus the
library files that make up one load unit.  Descriptors come from two places:
the live host (:meth:`PlatformDescriptor.from_host`) and the small
``key=value`` manifests shipped next to bundled artefacts
(:meth:`PlatformDescriptor.from_manifest_resource`).  Descriptors are
immutable and only ever compared through :meth:`PlatformDescriptor.matches`.
"""

from __future__ import annotations

import platform as _platform
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .errors import ManifestParseError, VersionFormatError

__all__ = [
    "DEFAULT_FLAVOR",
    "PlatformDescriptor",
    "map_library_name",
    "normalize_flavor",
    "parse_properties",
    "parse_manifest",
]

DEFAULT_FLAVOR = "cpu"

_VERSION_PATTERN = re.compile(
    r"(?P<release>\d+\.\d+\.\d+(?:-(?!SNAPSHOT\b)[A-Za-z]\w*)?)(?:-SNAPSHOT)?(?:-\d+)?"
)
_GENERIC_CLASSIFIERS = {"", "*", "any"}
_FALSE_VALUES = {"false", "0", "no"}

_SYSTEM_ALIASES = {
    "windows": "win",
    "darwin": "osx",
    "linux": "linux",
}
_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86-64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
}

# --- Library Naming Helpers ---


def map_library_name(name: str, os_family: str) -> str:
    """Return the platform file name for the shared library ``name``."""

    if os_family == "win":
        return f"{name}.dll"
    if os_family == "osx":
        return f"lib{name}.dylib"
    return f"lib{name}.so"


def normalize_flavor(flavor: Optional[str]) -> str:
    """Map the empty flavor onto the ``cpu`` sentinel used in cache keys and URLs."""

    stripped = (flavor or "").strip()
    return stripped or DEFAULT_FLAVOR


# --- Manifest Parsing ---


def parse_properties(text: str) -> Dict[str, str]:
    """Parse Java-properties style ``key=value`` text into a dictionary."""

    values: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue
        match = re.match(r"([^=:\s]+)\s*[=:]?\s*(.*)", line)
        if match is None:
            continue
        values[match.group(1)] = match.group(2).strip()
    return values


def _split_classifier(classifier: str, location: object) -> Tuple[str, str, str]:
    tokens = classifier.split("-", 2)
    if len(tokens) == 3:
        return tokens[0], tokens[1], tokens[2]
    if len(tokens) == 2:
        return "", tokens[0], tokens[1]
    raise ManifestParseError(f"Unexpected classifier {classifier!r}", location=location)


def parse_manifest(text: str, *, location: object = None) -> "PlatformDescriptor":
    """Build a descriptor from manifest ``text``; ``location`` only labels errors."""

    props = parse_properties(text)
    version = props.get("version", "").strip()
    if not version:
        raise ManifestParseError("version key is required in native manifest", location=location)

    libraries = tuple(name.strip() for name in props.get("libraries", "").split(",") if name.strip())
    classifier = props.get("classifier", "").strip()
    flagged = "placeholder" in props and props["placeholder"].strip().lower() not in _FALSE_VALUES
    generic = classifier.lower() in _GENERIC_CLASSIFIERS

    if flagged or generic:
        if libraries:
            raise ManifestParseError("placeholder manifest must not list libraries", location=location)
        return PlatformDescriptor(
            os_family="any",
            arch="any",
            flavor=props.get("flavor", "").strip(),
            version=version,
            placeholder=True,
        )

    flavor, os_family, arch = _split_classifier(classifier, location)
    if not os_family or not arch:
        raise ManifestParseError(f"Unexpected classifier {classifier!r}", location=location)
    return PlatformDescriptor(
        os_family=os_family,
        arch=arch,
        flavor=flavor or props.get("flavor", "").strip(),
        version=version,
        libraries=libraries,
    )


# --- PlatformDescriptor ---


@dataclass(frozen=True)
class PlatformDescriptor:
    """Immutable description of a runtime platform or native artefact."""

    os_family: str
    arch: str
    flavor: str = ""
    version: str = ""
    libraries: Tuple[str, ...] = field(default_factory=tuple)
    placeholder: bool = False

    @classmethod
    def from_host(
        cls,
        flavor: Optional[str] = None,
        *,
        system: Optional[str] = None,
        machine: Optional[str] = None,
    ) -> "PlatformDescriptor":
        """Describe the platform this process runs on; never raises."""

        system_name = (system if system is not None else _platform.system()).strip().lower()
        os_family = _SYSTEM_ALIASES.get(system_name, system_name or "unknown")
        machine_name = (machine if machine is not None else _platform.machine()).strip().lower()
        arch = _ARCH_ALIASES.get(machine_name, machine_name or "unknown")
        return cls(os_family=os_family, arch=arch, flavor=(flavor or "").strip())

    @classmethod
    def from_manifest_resource(cls, location) -> "PlatformDescriptor":
        """Parse the manifest at ``location`` (a path or resource traversable)."""

        try:
            text = location.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ManifestParseError(f"Cannot read native manifest: {exc}", location=location) from exc
        return parse_manifest(text, location=location)

    @property
    def classifier(self) -> str:
        """Return the ``os-arch`` tag used in cache directory names."""

        return f"{self.os_family}-{self.arch}"

    @property
    def normalized_flavor(self) -> str:
        return normalize_flavor(self.flavor)

    def matches(self, other: "PlatformDescriptor") -> bool:
        """Return ``True`` when OS, architecture, and normalised flavor agree."""

        return (
            self.os_family == other.os_family
            and self.arch == other.arch
            and self.normalized_flavor == other.normalized_flavor
        )

    def normalized_version(self) -> str:
        """Return ``MAJOR.MINOR.PATCH(-suffix)`` without snapshot or build numbers."""

        match = _VERSION_PATTERN.fullmatch(self.version.strip())
        if match is None:
            raise VersionFormatError(self.version)
        return match.group("release")
