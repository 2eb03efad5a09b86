# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.loader",
#   "purpose": "Load a resolved native library directory into the process in platform order",
#   "sections": [
#     {"id": "policy", "name": "LoadPolicy", "anchor": "POL", "kind": "api"},
#     {"id": "result", "name": "LoadedLibrary", "anchor": "RES", "kind": "api"},
#     {"id": "loader", "name": "NativeLoader", "anchor": "LDR", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""In-process loading of native libraries.

Most dynamic linkers resolve sibling dependencies on their own, so loading the
entry library is enough.  The Windows loader does not resolve them
transitively from the library's directory; there every dependency is loaded
explicitly before the main library, in this order:

1. every other regular file in the directory (sorted by name),
2. the fixed intermediate libraries,
3. the GPU runtime pair, only when present,
4. the main native library, then the binding library if one is used.
"""

from __future__ import annotations

import ctypes
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from .descriptor import map_library_name
from .errors import NativeLoadError
from .settings import OrderedLoadLayout

__all__ = ["LoadPolicy", "LoadedLibrary", "NativeLoader", "dlopen"]

LOGGER = logging.getLogger("NativeBridge.LibraryLoader.loader")

LoadFunction = Callable[[Path], Any]

# --- LoadPolicy ---


class LoadPolicy(str, enum.Enum):
    """How dependencies of the entry library get loaded."""

    ORDERED = "ordered"
    AUTO_RESOLVE = "auto"

    @classmethod
    def for_os(cls, os_family: str, forced: Optional[str] = None) -> "LoadPolicy":
        """Pick the policy once per process; ``forced`` wins over detection."""

        if forced:
            return cls(forced)
        return cls.ORDERED if os_family == "win" else cls.AUTO_RESOLVE


def dlopen(path: Path) -> ctypes.CDLL:
    """Load ``path`` with global symbol visibility."""

    return ctypes.CDLL(str(path), mode=getattr(ctypes, "RTLD_GLOBAL", 0))


# --- LoadedLibrary ---


@dataclass(frozen=True)
class LoadedLibrary:
    """Outcome of a successful load."""

    entry: Path
    directory: Path
    order: Tuple[Path, ...]
    handles: Tuple[Any, ...]
    source: Optional[str] = None


# --- NativeLoader ---


class NativeLoader:
    """Load a native library directory using one :class:`LoadPolicy`."""

    def __init__(
        self,
        native_library: str,
        os_family: str,
        *,
        policy: LoadPolicy,
        layout: Optional[OrderedLoadLayout] = None,
        binding_library: Optional[str] = None,
        load_fn: LoadFunction = dlopen,
    ) -> None:
        self.os_family = os_family
        self.policy = policy
        self.layout = layout or OrderedLoadLayout()
        self.main_file = map_library_name(native_library, os_family)
        self.binding_file = (
            map_library_name(binding_library, os_family) if binding_library else None
        )
        self._load_fn = load_fn

    def _mapped(self, name: str) -> str:
        return map_library_name(name, self.os_family)

    def plan(self, directory: Path, entry: Optional[Path] = None) -> List[Path]:
        """Return the files :meth:`load` would load, in order."""

        directory = Path(directory)
        entry = Path(entry) if entry is not None else directory / self.main_file
        if self.policy is LoadPolicy.AUTO_RESOLVE:
            self._require(entry)
            return [entry]

        if not directory.is_dir():
            raise NativeLoadError(f"Native library directory does not exist: {directory}", path=directory)

        main = directory / self.main_file
        load_last = {self._mapped(name) for name in self.layout.load_last()}
        load_last.add(self.main_file)

        order: List[Path] = []
        for path in sorted(directory.iterdir(), key=lambda item: item.name):
            name = path.name
            if name in load_last or not path.is_file():
                continue
            if self.binding_file is not None and name.endswith(self.binding_file):
                continue
            if path == entry or name.endswith(".part"):
                continue
            order.append(path)

        for name in self.layout.intermediates:
            order.append(self._require(directory / self._mapped(name)))

        gpu = [directory / self._mapped(name) for name in self.layout.gpu_runtime]
        if gpu and gpu[0].is_file():
            order.extend(self._require(path) for path in gpu)
        elif gpu:
            LOGGER.debug(
                "gpu runtime absent, skipping",
                extra={"stage": "load", "path": str(gpu[0])},
            )

        order.append(self._require(main))
        if entry != main:
            order.append(self._require(entry))
        return order

    def load(self, directory: Path, entry: Optional[Path] = None) -> LoadedLibrary:
        """Load ``entry`` (default: the main library) from ``directory``."""

        order = self.plan(directory, entry)
        handles = []
        for path in order:
            LOGGER.debug("loading native library", extra={"stage": "load", "path": str(path)})
            try:
                handles.append(self._load_fn(path))
            except OSError as exc:
                raise NativeLoadError(f"Failed to load {path}: {exc}", path=path) from exc
        LOGGER.info(
            "native library loaded",
            extra={"stage": "load", "path": str(order[-1]), "policy": self.policy.value},
        )
        return LoadedLibrary(
            entry=order[-1],
            directory=Path(directory),
            order=tuple(order),
            handles=tuple(handles),
        )

    @staticmethod
    def _require(path: Path) -> Path:
        if not path.is_file():
            raise NativeLoadError(f"Required native library is missing: {path}", path=path)
        return path
