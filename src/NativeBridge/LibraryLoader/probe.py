# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.probe",
#   "purpose": "Locate an explicitly overridden native library on the search path",
#   "sections": [
#     {"id": "pathprobe", "name": "PathProbe", "anchor": "PRB", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Override search for a preinstalled native library.

The first resolution tier honours operators who already have the library on
disk: the override variable (``PYTORCH_LIBRARY_PATH`` by default) is checked
first, then the platform's generic library search path.  Each variable holds
``os.pathsep`` separated roots; a root may be the library file itself or a
directory containing it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, List, Mapping, Optional

from .descriptor import map_library_name

__all__ = ["PathProbe"]

LOGGER = logging.getLogger("NativeBridge.LibraryLoader.probe")


class PathProbe:
    """Search override roots for the mapped entry library file."""

    def __init__(
        self,
        library_name: str,
        os_family: str,
        *,
        variables: List[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.mapped_name = map_library_name(library_name, os_family)
        self.variables = list(variables)
        self._env = env if env is not None else os.environ

    def candidate_roots(self) -> Iterator[Path]:
        """Yield non-empty roots from each variable, in precedence order."""

        for variable in self.variables:
            value = self._env.get(variable)
            if not value:
                continue
            for entry in value.split(os.pathsep):
                entry = entry.strip()
                if entry:
                    yield Path(entry)

    def find_override(self) -> Optional[Path]:
        """Return the first matching library path, or ``None`` when nothing matches."""

        for root in self.candidate_roots():
            if not root.exists():
                continue
            if root.is_file() and root.name.endswith(self.mapped_name):
                LOGGER.debug(
                    "override library found",
                    extra={"stage": "probe", "path": str(root)},
                )
                return root.absolute()
            candidate = root / self.mapped_name
            if candidate.is_file():
                LOGGER.debug(
                    "override library found",
                    extra={"stage": "probe", "path": str(candidate)},
                )
                return candidate.absolute()
        return None
