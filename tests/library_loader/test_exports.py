"""Lazy package-level exports."""

from __future__ import annotations

import pytest

import NativeBridge.LibraryLoader as library_loader
from NativeBridge.LibraryLoader.api import load_library
from NativeBridge.LibraryLoader.errors import NativeLibraryError


def test_exports_resolve_lazily():
    assert library_loader.load_library is load_library
    assert library_loader.NativeLibraryError is NativeLibraryError
    assert "resolve_library" in dir(library_loader)


def test_unknown_attribute_raises():
    with pytest.raises(AttributeError):
        library_loader.not_a_real_export  # noqa: B018
