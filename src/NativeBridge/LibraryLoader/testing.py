"""Testing utilities for exercising native library resolution without real binaries.

Provides helpers that lay out bundle directories on disk, install an HTTPX
client backed by a mock transport, and record load order instead of calling
the dynamic loader.
"""

from __future__ import annotations

import contextlib
import gzip
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

import httpx

from .net import configure_http_client, reset_http_client

__all__ = [
    "RecordingLoadFunction",
    "gzip_bytes",
    "use_mock_http_client",
    "write_binding",
    "write_bundle",
]


@contextlib.contextmanager
def use_mock_http_client(transport: httpx.BaseTransport, **client_kwargs) -> Iterator[httpx.Client]:
    """Temporarily install an HTTPX client backed by ``transport``."""

    client = httpx.Client(transport=transport, **client_kwargs)
    configure_http_client(client)
    try:
        yield client
    finally:
        reset_http_client()


def gzip_bytes(payload: bytes) -> bytes:
    return gzip.compress(payload)


def _write_properties(path: Path, values: Mapping[str, str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"{key}={value}" for key, value in values.items()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_bundle(
    root: Path,
    *,
    product: str = "pytorch",
    version: str = "1.9.0",
    classifier: Optional[str] = None,
    files: Optional[Dict[str, bytes]] = None,
    placeholder: bool = False,
    extra: Optional[Mapping[str, str]] = None,
) -> Path:
    """Lay out ``root/native/lib`` with a manifest and library files; return the manifest."""

    lib_dir = Path(root) / "native" / "lib"
    values: Dict[str, str] = {"version": version}
    if placeholder:
        values["placeholder"] = "true"
    if classifier is not None:
        values["classifier"] = classifier
    if files:
        values["libraries"] = ",".join(files)
    values.update(extra or {})
    manifest = _write_properties(lib_dir / f"{product}.properties", values)
    for name, payload in (files or {}).items():
        (lib_dir / name).write_bytes(payload)
    return manifest


def write_binding(
    root: Path,
    file_name: str,
    *,
    classifier: str,
    flavor: str = "cpu",
    product: str = "pytorch",
    version: str = "0.12.0",
    payload: bytes = b"binding",
) -> Path:
    """Lay out ``root/bindings/<classifier>/<flavor>`` with a binding library."""

    binding_dir = Path(root) / "bindings" / classifier / flavor
    _write_properties(binding_dir / f"{product}.properties", {"version": version})
    target = binding_dir / file_name
    target.write_bytes(payload)
    return target


class RecordingLoadFunction:
    """Load callable that records paths instead of opening them."""

    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        self.calls: List[Path] = []
        self._fail_on = set(fail_on)

    def __call__(self, path: Path) -> str:
        if path.name in self._fail_on:
            raise OSError(f"cannot load {path.name}")
        self.calls.append(Path(path))
        return path.name

    @property
    def names(self) -> List[str]:
        return [path.name for path in self.calls]
