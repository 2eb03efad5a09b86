# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest configuration for the suite",
#   "sections": [
#     {
#       "id": "globals",
#       "name": "Globals",
#       "anchor": "GLOB",
#       "kind": "constants"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Makes ``src`` importable when the package is not installed in editable mode.
Fixtures for the loader live in ``tests/library_loader/conftest.py``.
"""

from __future__ import annotations

import sys
from pathlib import Path

# --- Globals ---

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
