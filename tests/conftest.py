"""
Pytest configuration for the thermia-exporter test suite.

We keep tests importing `thermia_exporter...` normally (no importlib file loaders).
To make that work in a fresh checkout without requiring an editable install,
we add the local `src` directory to `sys.path`.
"""

from __future__ import annotations

import sys
from pathlib import Path


def pytest_configure() -> None:
    """
    Ensure the local `thermia_exporter` package is importable for tests.

    This is intentionally minimal and only affects the test runtime.
    """

    project_root = Path(__file__).resolve().parent.parent
    src = project_root / "src"

    if src.is_dir():
        # Prepend so local sources win over any globally installed package.
        sys.path.insert(0, str(src))
