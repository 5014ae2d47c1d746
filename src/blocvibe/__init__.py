"""
BlocVibe - visual page-builder core.

A document tree of styled elements, the mutation engine that edits it, the
render pipeline that turns it into canvas markup, and the sync protocol that
keeps the tree and the canvas consistent.
"""

from __future__ import annotations

import re
from importlib.metadata import version as _metadata_version
from pathlib import Path as _Path

from .core import DocumentTree, MutationEngine, Node
from .core.errors import BlocVibeError, ConfigError, PayloadError, PersistenceError


def _get_version() -> str:
    """Get version from pyproject.toml (editable) or importlib.metadata (installed)."""
    pyproject = _Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        content = pyproject.read_text()
        if match := re.search(r'^version\s*=\s*["\']([^"\']+)["\']', content, re.MULTILINE):
            return match.group(1)

    try:
        return _metadata_version("blocvibe")
    except Exception:
        return "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    "BlocVibeError",
    "ConfigError",
    "DocumentTree",
    "MutationEngine",
    "Node",
    "PayloadError",
    "PersistenceError",
]
