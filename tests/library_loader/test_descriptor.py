"""Platform descriptor parsing, host detection, matching, and version normalisation."""

from __future__ import annotations

from pathlib import Path

import pytest

from NativeBridge.LibraryLoader.descriptor import (
    PlatformDescriptor,
    map_library_name,
    normalize_flavor,
    parse_manifest,
    parse_properties,
)
from NativeBridge.LibraryLoader.errors import ManifestParseError, VersionFormatError


@pytest.mark.parametrize(
    ("system", "machine", "os_family", "arch"),
    [
        ("Windows", "AMD64", "win", "x86_64"),
        ("Darwin", "arm64", "osx", "aarch64"),
        ("Linux", "x86_64", "linux", "x86_64"),
        ("Linux", "aarch64", "linux", "aarch64"),
        ("SunOS", "sparc", "sunos", "sparc"),
        ("", "", "unknown", "unknown"),
    ],
)
def test_from_host_maps_system_and_machine(system, machine, os_family, arch):
    host = PlatformDescriptor.from_host(system=system, machine=machine)

    assert (host.os_family, host.arch) == (os_family, arch)
    assert host.classifier == f"{os_family}-{arch}"
    assert host.placeholder is False


def test_from_host_uses_live_platform_without_failing():
    host = PlatformDescriptor.from_host("cu117")

    assert host.os_family
    assert host.arch
    assert host.flavor == "cu117"


def test_normalize_flavor_maps_empty_to_cpu():
    assert normalize_flavor("") == "cpu"
    assert normalize_flavor(None) == "cpu"
    assert normalize_flavor("cu117") == "cu117"


def test_matches_is_symmetric_and_ignores_version():
    a = PlatformDescriptor("linux", "x86_64", flavor="", version="1.8.1")
    b = PlatformDescriptor("linux", "x86_64", flavor="cpu", version="1.9.0", libraries=("libtorch.so",))
    c = PlatformDescriptor("linux", "x86_64", flavor="cu117", version="1.9.0")
    d = PlatformDescriptor("osx", "x86_64", flavor="cpu", version="1.9.0")

    assert a.matches(b) and b.matches(a)
    assert not a.matches(c) and not c.matches(a)
    assert not b.matches(d) and not d.matches(b)


@pytest.mark.parametrize(
    ("version", "expected"),
    [
        ("1.9.0-cpu-SNAPSHOT-3", "1.9.0-cpu"),
        ("1.9.0", "1.9.0"),
        ("1.9.0-SNAPSHOT", "1.9.0"),
        ("1.9.0-SNAPSHOT-12", "1.9.0"),
        ("1.9.0-7", "1.9.0"),
        ("1.13.1-cu117", "1.13.1-cu117"),
    ],
)
def test_normalized_version_strips_build_metadata(version, expected):
    assert PlatformDescriptor("any", "any", version=version).normalized_version() == expected


@pytest.mark.parametrize("version", ["abc", "", "1.9", "1.9.0-cpu-extra-stuff"])
def test_normalized_version_rejects_malformed_input(version):
    with pytest.raises(VersionFormatError):
        PlatformDescriptor("any", "any", version=version).normalized_version()


def test_map_library_name_per_os():
    assert map_library_name("torch", "linux") == "libtorch.so"
    assert map_library_name("torch", "osx") == "libtorch.dylib"
    assert map_library_name("torch", "win") == "torch.dll"


def test_parse_properties_skips_comments_and_accepts_colons():
    props = parse_properties("# comment\n! other\n\nversion=1.9.0\nclassifier: cpu-linux-x86_64\n")

    assert props == {"version": "1.9.0", "classifier": "cpu-linux-x86_64"}


def test_parse_manifest_with_flavor_prefixed_classifier():
    descriptor = parse_manifest(
        "version=1.9.0\nclassifier=cu117-linux-x86_64\nlibraries=libtorch.so,libc10.so\n"
    )

    assert descriptor.os_family == "linux"
    assert descriptor.arch == "x86_64"
    assert descriptor.flavor == "cu117"
    assert descriptor.libraries == ("libtorch.so", "libc10.so")
    assert descriptor.placeholder is False


def test_parse_manifest_with_separate_flavor_key():
    descriptor = parse_manifest("version=1.9.0\nclassifier=osx-aarch64\nflavor=cpu\nlibraries=libtorch.dylib\n")

    assert (descriptor.os_family, descriptor.arch, descriptor.flavor) == ("osx", "aarch64", "cpu")


@pytest.mark.parametrize(
    "text",
    [
        "version=1.9.0\nplaceholder=true\n",
        "version=1.9.0\nclassifier=*\n",
        "version=1.9.0\n",
    ],
)
def test_parse_manifest_detects_placeholders(text):
    descriptor = parse_manifest(text)

    assert descriptor.placeholder is True
    assert descriptor.libraries == ()


@pytest.mark.parametrize(
    "text",
    [
        "classifier=cpu-linux-x86_64\nlibraries=libtorch.so\n",
        "version=\nclassifier=cpu-linux-x86_64\n",
        "version=1.9.0\nplaceholder=true\nlibraries=libtorch.so\n",
        "version=1.9.0\nclassifier=linux\nlibraries=libtorch.so\n",
        "version=1.9.0\nlibraries=libtorch.so\n",
    ],
)
def test_parse_manifest_rejects_invalid_manifests(text):
    with pytest.raises(ManifestParseError):
        parse_manifest(text)


def test_from_manifest_resource_reads_file(tmp_path: Path):
    manifest = tmp_path / "pytorch.properties"
    manifest.write_text("version=1.9.0\nclassifier=cpu-win-x86_64\nlibraries=torch.dll\n")

    descriptor = PlatformDescriptor.from_manifest_resource(manifest)

    assert descriptor.classifier == "win-x86_64"
    assert descriptor.version == "1.9.0"


def test_from_manifest_resource_missing_file_raises(tmp_path: Path):
    with pytest.raises(ManifestParseError) as excinfo:
        PlatformDescriptor.from_manifest_resource(tmp_path / "missing.properties")

    assert excinfo.value.location == tmp_path / "missing.properties"
