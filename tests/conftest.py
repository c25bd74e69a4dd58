"""
Pytest Configuration

This module configures shared pytest behaviour: it puts ``src`` on ``sys.path``
so the suite runs from a plain checkout, and points ``pystow`` at a throwaway
directory before the package computes its default data paths.

Usage:
    pytest tests/property_load
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

os.environ.setdefault("PYSTOW_HOME", tempfile.mkdtemp(prefix="propsagent-pystow-"))
