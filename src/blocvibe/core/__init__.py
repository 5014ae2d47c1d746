"""
BlocVibe core: the document model and its mutation engine.

- node.py: Node model and wire schema
- tree.py: DocumentTree (lookup, traversal, JSON round trip)
- engine.py: MutationEngine (move, delete, duplicate, wrap, reparent)
- palette.py: factories for palette drops
- errors.py: exception hierarchy
"""

from blocvibe.core.engine import DEFAULT_WRAPPER_STYLES, MutationEngine
from blocvibe.core.errors import (
    BlocVibeError,
    ConfigError,
    ErrorContext,
    PayloadError,
    PersistenceError,
)
from blocvibe.core.node import Node, new_node_id
from blocvibe.core.palette import create_from_palette
from blocvibe.core.tree import ROOT, DocumentTree, Location, index_of, is_root_target

__all__ = [
    "BlocVibeError",
    "ConfigError",
    "DEFAULT_WRAPPER_STYLES",
    "DocumentTree",
    "ErrorContext",
    "Location",
    "MutationEngine",
    "Node",
    "PayloadError",
    "PersistenceError",
    "ROOT",
    "create_from_palette",
    "index_of",
    "is_root_target",
    "new_node_id",
]
