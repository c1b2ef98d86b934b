# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Put src/ and the repository root on sys.path for the suite",
#   "sections": []
# }
# === /NAVMAP ===

"""
Pytest Configuration

Makes ``CatalogBrowser`` importable from ``src`` without an editable install,
and makes the ``tests`` package (shared helpers) importable from test files.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))
