"""
Put `src` on sys.path so pytest can import `expectation_collapse` without installing it.
"""
from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).parent.resolve()
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))
