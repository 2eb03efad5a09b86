# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.cache",
#   "purpose": "Version-keyed local cache of native library directories with atomic installs",
#   "sections": [
#     {"id": "keys", "name": "Cache Keys", "anchor": "KEY", "kind": "api"},
#     {"id": "store", "name": "CacheStore", "anchor": "STO", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Local cache of materialised native library directories.

Entries live under ``<cache root>/<version><flavor>-<classifier>`` and are
either absent or complete.  Writers never touch the final directory: they
fill a private ``.staging-*`` directory and publish it with a rename, so a
reader that sees the entry name also sees every file in it.  Stale entries
are never evicted here.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .descriptor import map_library_name, normalize_flavor

__all__ = ["CacheKey", "CacheStore"]

LOGGER = logging.getLogger("NativeBridge.LibraryLoader.cache")

_STAGING_PREFIX = ".staging-"
_RETIRED_PREFIX = ".retired-"
_COPY_CHUNK = 1 << 20

# --- Cache Keys ---


@dataclass(frozen=True)
class CacheKey:
    """Identify one cache entry by version, flavor, and platform classifier."""

    version: str
    flavor: str
    classifier: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "flavor", normalize_flavor(self.flavor))

    @property
    def dirname(self) -> str:
        return f"{self.version}{self.flavor}-{self.classifier}"


# --- CacheStore ---


class CacheStore:
    """Answer cache lookups and publish new entries atomically."""

    def __init__(self, root: Path, library_name: str, os_family: str) -> None:
        self.root = Path(root)
        self.library_file = map_library_name(library_name, os_family)

    def entry_dir(self, key: CacheKey) -> Path:
        return self.root / key.dirname

    def lookup(self, key: CacheKey) -> Optional[Path]:
        """Return the entry directory when its main library exists, else ``None``."""

        directory = self.entry_dir(key)
        if (directory / self.library_file).is_file():
            return directory.absolute()
        return None

    def entries(self) -> List[Path]:
        """List published entry directories, skipping staging leftovers."""

        if not self.root.is_dir():
            return []
        return sorted(
            path
            for path in self.root.iterdir()
            if path.is_dir() and not path.name.startswith((_STAGING_PREFIX, _RETIRED_PREFIX))
        )

    @contextlib.contextmanager
    def staging(self, key: CacheKey) -> Iterator[Path]:
        """Yield a private staging directory and publish it on clean exit.

        Any exception raised inside the block removes the staging directory and
        propagates; the published entry for ``key`` is left as it was.
        """

        self.root.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=_STAGING_PREFIX, dir=self.root))
        try:
            yield staging
            self._publish(key, staging)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def install(self, key: CacheKey, sources: Iterable) -> Path:
        """Copy ``sources`` (paths or resource traversables) into a new entry for ``key``."""

        with self.staging(key) as staging:
            for source in sources:
                with source.open("rb") as reader, (staging / source.name).open("wb") as writer:
                    shutil.copyfileobj(reader, writer, _COPY_CHUNK)
        return self.entry_dir(key).absolute()

    def _publish(self, key: CacheKey, staging: Path) -> None:
        target = self.entry_dir(key)
        retired: Optional[Path] = None
        if target.exists():
            retired = self.root / f"{_RETIRED_PREFIX}{uuid.uuid4().hex[:12]}"
            try:
                os.replace(target, retired)
            except FileNotFoundError:
                retired = None
        try:
            os.replace(staging, target)
        except OSError:
            if retired is not None and not target.exists():
                os.replace(retired, target)
                retired = None
                raise
            # A concurrent installer published first; keep its complete entry.
            if self.lookup(key) is None:
                raise
            LOGGER.info(
                "cache entry published concurrently",
                extra={"stage": "cache", "entry": str(target)},
            )
        else:
            LOGGER.info(
                "cache entry installed",
                extra={"stage": "cache", "entry": str(target)},
            )
        finally:
            if retired is not None:
                shutil.rmtree(retired, ignore_errors=True)
