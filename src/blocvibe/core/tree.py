"""
Document tree - the ordered forest of root nodes.

Owns lookup, traversal and the JSON wire format. Topology changes go through
:class:`blocvibe.core.engine.MutationEngine`; the tree itself only offers
queries, whole-forest replacement and parent-reference repair.

Wire format: a JSON array of node objects, or a single node object which is
normalized to a one-element array before anything else looks at it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from blocvibe.core.errors import PayloadError, make_payload_error
from blocvibe.core.node import RESERVED_IDS, Node

logger = logging.getLogger(__name__)

# Parent ids that address the root list rather than a node
ROOT = "root"
ROOT_SENTINELS = RESERVED_IDS

_FOREST_ADAPTER = TypeAdapter(list[Node])


def is_root_target(parent_id: str | None) -> bool:
    """True if ``parent_id`` denotes the root list."""
    return parent_id is None or parent_id in ROOT_SENTINELS


@dataclass
class Location:
    """Where a node sits: its owning sibling list, index, and parent (None at root)."""

    node: Node
    siblings: list[Node]
    index: int
    parent: Node | None

    @property
    def parent_id(self) -> str | None:
        return self.parent.id if self.parent is not None else None


def index_of(siblings: list[Node], node: Node) -> int:
    """Position of ``node`` (by identity) in ``siblings``, or -1 if absent."""
    for i, candidate in enumerate(siblings):
        if candidate is node:
            return i
    return -1


class DocumentTree:
    """
    Ordered forest of root nodes.

    Lookups are depth-first and pre-order, so a node is always found before
    any of its descendants.
    """

    def __init__(self, roots: list[Node] | None = None) -> None:
        self.roots: list[Node] = roots if roots is not None else []

    # =========================================================================
    # Lookup & traversal
    # =========================================================================

    def all_nodes(self) -> Iterator[Node]:
        """Pre-order traversal of the whole forest. Do not mutate while iterating."""
        for root in self.roots:
            yield from root.walk()

    def find_by_id(self, node_id: str | None) -> Node | None:
        """First node (pre-order) with the given id."""
        if node_id is None:
            return None
        for node in self.all_nodes():
            if node.id == node_id:
                return node
        return None

    def locate(self, node_id: str | None) -> Location | None:
        """Find a node together with its sibling list and parent."""
        if node_id is None:
            return None
        return self._locate_in(self.roots, None, node_id)

    def _locate_in(self, siblings: list[Node], parent: Node | None, node_id: str) -> Location | None:
        for i, node in enumerate(siblings):
            if node.id == node_id:
                return Location(node=node, siblings=siblings, index=i, parent=parent)
            found = self._locate_in(node.children, node, node_id)
            if found is not None:
                return found
        return None

    def contains(self, node_id: str) -> bool:
        return self.find_by_id(node_id) is not None

    def parent_of(self, node_id: str) -> Node | None:
        """Owning parent of a node, or None for roots and unknown ids."""
        loc = self.locate(node_id)
        return loc.parent if loc is not None else None

    def siblings_of(self, node_id: str) -> list[Node] | None:
        """Sibling list a node lives in (the root list for roots)."""
        loc = self.locate(node_id)
        return loc.siblings if loc is not None else None

    def children_of(self, parent_id: str | None) -> list[Node] | None:
        """Child list of a parent id, the root list for root sentinels, None if unknown."""
        if is_root_target(parent_id):
            return self.roots
        parent = self.find_by_id(parent_id)
        return parent.children if parent is not None else None

    def depth(self, node_id: str) -> int:
        """Depth of a node (roots are 0), or -1 if not found."""

        def visit(nodes: list[Node], level: int) -> int:
            for node in nodes:
                if node.id == node_id:
                    return level
                found = visit(node.children, level + 1)
                if found >= 0:
                    return found
            return -1

        return visit(self.roots, 0)

    def node_count(self) -> int:
        return sum(1 for _ in self.all_nodes())

    @property
    def selected(self) -> Node | None:
        """The currently selected node, if any."""
        for node in self.all_nodes():
            if node.selected:
                return node
        return None

    def find_by_tag(self, tag: str) -> list[str]:
        """Ids of every node with the given tag, in document order."""
        tag = tag.strip()
        if not tag:
            return []
        return [node.id for node in self.all_nodes() if node.tag == tag]

    def find_by_property(self, name: str, value: str | None = None) -> list[str]:
        """
        Ids of nodes having ``name`` as a style or attribute.

        When ``value`` is given the style/attribute must also equal it.
        """
        name = name.strip()
        if not name:
            return []
        found: list[str] = []
        for node in self.all_nodes():
            for mapping in (node.styles, node.attributes):
                if name in mapping and (value is None or mapping[name] == value):
                    found.append(node.id)
                    break
        return found

    # =========================================================================
    # Consistency
    # =========================================================================

    def rebuild_parent_refs(self) -> int:
        """Rewrite every ``parent_ref`` from tree position. Returns how many changed."""
        fixed = 0

        def visit(nodes: list[Node], parent_id: str | None) -> None:
            nonlocal fixed
            for node in nodes:
                if node.parent_ref != parent_id:
                    fixed += 1
                    node.parent_ref = parent_id
                visit(node.children, node.id)

        visit(self.roots, None)
        if fixed:
            logger.debug("Rebuilt %d parent reference(s)", fixed)
        return fixed

    def validate(self) -> list[str]:
        """
        Check the tree invariants.

        Returns:
            Human-readable violations; empty when the tree is consistent.
        """
        problems: list[str] = []
        seen_ids: set[str] = set()
        seen_objects: set[int] = set()
        selected: list[str] = []

        def visit(nodes: list[Node], parent_id: str | None) -> None:
            for node in nodes:
                if id(node) in seen_objects:
                    problems.append(f"node {node.id} appears more than once in the tree")
                    continue
                seen_objects.add(id(node))
                if node.id in seen_ids:
                    problems.append(f"duplicate id {node.id}")
                seen_ids.add(node.id)
                if node.parent_ref != parent_id:
                    problems.append(
                        f"node {node.id} has parentRef {node.parent_ref!r}, expected {parent_id!r}"
                    )
                if node.selected:
                    selected.append(node.id)
                visit(node.children, node.id)

        visit(self.roots, None)
        if len(selected) > 1:
            problems.append(f"{len(selected)} nodes selected: {', '.join(selected)}")
        return problems

    def replace_with(self, other: DocumentTree) -> None:
        """Adopt another tree's forest wholesale (last writer wins)."""
        self.roots = other.roots

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_data(self) -> list[dict[str, Any]]:
        return [root.to_data() for root in self.roots]

    def to_json(self, indent: int | None = None) -> str:
        """Serialize the forest. The selection flag is never written."""
        return json.dumps(self.to_data(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_data(cls, data: Any) -> DocumentTree:
        """
        Build a tree from already-decoded JSON data.

        Accepts a single node object or a list of node objects. Parent
        references are rebuilt from position and selection is cleared.

        Raises:
            PayloadError: on shape/type violations or duplicate ids
        """
        if isinstance(data, dict):
            items: list[Any] = [data]
        elif isinstance(data, list):
            items = data
        else:
            raise PayloadError(
                f"Expected a node object or an array of nodes, got {type(data).__name__}"
            )

        try:
            roots = _FOREST_ADAPTER.validate_python(items)
        except RecursionError as e:
            raise PayloadError("Payload nested too deeply") from e
        except PydanticValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(part) for part in first["loc"])
            raise PayloadError(
                f"Invalid node at {where or 'top level'}: {first['msg']} "
                f"({e.error_count()} error(s))"
            ) from e

        tree = cls(roots)
        ids: set[str] = set()
        try:
            for node in tree.all_nodes():
                if node.id in ids:
                    raise PayloadError(f"Duplicate node id: {node.id}")
                ids.add(node.id)
                node.selected = False
            tree.rebuild_parent_refs()
        except RecursionError as e:
            raise PayloadError("Payload nested too deeply") from e
        return tree

    @classmethod
    def from_json(cls, payload: str | bytes | None, source: str | None = None) -> DocumentTree:
        """
        Decode a tree from its JSON wire form.

        Raises:
            PayloadError: on empty, unparsable or schema-violating payloads
        """
        if payload is None:
            raise PayloadError("Empty payload")
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise PayloadError(f"Payload is not valid UTF-8: {e}") from e
        if not payload.strip():
            raise PayloadError("Empty payload")

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise make_payload_error(f"Malformed JSON: {e.msg}", payload, e.lineno, e.colno, source) from e
        except RecursionError as e:
            raise PayloadError("Payload nested too deeply") from e

        return cls.from_data(data)

    def __len__(self) -> int:
        return len(self.roots)

    def __repr__(self) -> str:
        return f"DocumentTree(roots={len(self.roots)}, nodes={self.node_count()})"
