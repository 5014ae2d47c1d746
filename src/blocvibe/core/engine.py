"""
Mutation engine - the only component that changes tree topology.

Every operation is addressed by node id and reports its outcome as a return
value: ``True``/``False`` for in-place changes, the produced node or ``None``
for operations that create one. "Not found", "invalid position" and
"invalid structure" are expected outcomes and never raise.

Each operation validates everything it needs before touching the tree, so a
failed call leaves the tree exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from blocvibe.core.node import Node
from blocvibe.core.tree import ROOT, DocumentTree, index_of, is_root_target

logger = logging.getLogger(__name__)

# Styles given to containers created by wrap_in_div
DEFAULT_WRAPPER_STYLES: dict[str, str] = {
    "padding": "10px",
    "border": "1px dashed #999",
    "margin": "5px",
}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


class MutationEngine:
    """
    Invariant-preserving operations over a :class:`DocumentTree`.

    Args:
        tree: The tree to mutate in place.
        wrapper_styles: Styles applied to containers created by ``wrap_in_div``.
    """

    def __init__(
        self,
        tree: DocumentTree,
        wrapper_styles: Mapping[str, str] | None = None,
    ) -> None:
        self.tree = tree
        self.wrapper_styles = dict(
            DEFAULT_WRAPPER_STYLES if wrapper_styles is None else wrapper_styles
        )

    # =========================================================================
    # Sibling ordering
    # =========================================================================

    def move_up(self, node_id: str) -> bool:
        """Swap a node with its previous sibling. Fails if first or unknown."""
        loc = self.tree.locate(node_id)
        if loc is None:
            logger.warning("move_up: node not found: %s", node_id)
            return False
        if loc.index == 0:
            logger.debug("move_up: %s is already first", node_id)
            return False
        siblings, i = loc.siblings, loc.index
        siblings[i - 1], siblings[i] = siblings[i], siblings[i - 1]
        return True

    def move_down(self, node_id: str) -> bool:
        """Swap a node with its next sibling. Fails if last or unknown."""
        loc = self.tree.locate(node_id)
        if loc is None:
            logger.warning("move_down: node not found: %s", node_id)
            return False
        if loc.index >= len(loc.siblings) - 1:
            logger.debug("move_down: %s is already last", node_id)
            return False
        siblings, i = loc.siblings, loc.index
        siblings[i + 1], siblings[i] = siblings[i], siblings[i + 1]
        return True

    def swap(self, first_id: str, second_id: str) -> bool:
        """Exchange the positions of two siblings sharing the same parent."""
        if first_id == second_id:
            return False
        first = self.tree.locate(first_id)
        second = self.tree.locate(second_id)
        if first is None or second is None:
            logger.warning("swap: node not found: %s / %s", first_id, second_id)
            return False
        if first.siblings is not second.siblings:
            logger.warning("swap: %s and %s have different parents", first_id, second_id)
            return False
        siblings = first.siblings
        siblings[first.index], siblings[second.index] = second.node, first.node
        return True

    def move_within_parent(self, node_id: str, new_index: int) -> bool:
        """Reorder a node among its siblings; the index is clamped to the list."""
        loc = self.tree.locate(node_id)
        if loc is None:
            logger.warning("move_within_parent: node not found: %s", node_id)
            return False
        target = _clamp(new_index, 0, len(loc.siblings) - 1)
        if target == loc.index:
            return True
        node = loc.siblings.pop(loc.index)
        loc.siblings.insert(target, node)
        return True

    # =========================================================================
    # Structure
    # =========================================================================

    def delete(self, node_id: str) -> bool:
        """Detach a node and its whole subtree. Clears the selection if it was inside."""
        loc = self.tree.locate(node_id)
        if loc is None:
            logger.warning("delete: node not found: %s", node_id)
            return False
        del loc.siblings[loc.index]
        node = loc.node
        node.parent_ref = None
        for removed in node.walk():
            removed.selected = False
        return True

    def duplicate(self, node_id: str) -> Node | None:
        """
        Deep-clone a subtree with fresh ids and insert it right after the original.

        Returns:
            The clone, or None if ``node_id`` is unknown.
        """
        loc = self.tree.locate(node_id)
        if loc is None:
            logger.warning("duplicate: node not found: %s", node_id)
            return None
        clone = loc.node.clone(parent_ref=loc.parent_id)
        loc.siblings.insert(loc.index + 1, clone)
        return clone

    def move_to_parent(self, node_id: str, new_parent_id: str | None, index: int) -> bool:
        """
        Reparent a node under ``new_parent_id`` (or the root list) at ``index``.

        The index is clamped to ``[0, len(children)]``. Moving a node under
        itself or one of its descendants is refused.
        """
        loc = self.tree.locate(node_id)
        if loc is None:
            logger.warning("move_to_parent: node not found: %s", node_id)
            return False

        if is_root_target(new_parent_id):
            new_parent: Node | None = None
            target_list = self.tree.roots
        else:
            new_parent = self.tree.find_by_id(new_parent_id)
            if new_parent is None:
                logger.warning("move_to_parent: parent not found: %s", new_parent_id)
                return False
            if loc.node.contains(new_parent.id):
                logger.warning(
                    "move_to_parent: refusing to move %s under its own subtree (%s)",
                    node_id,
                    new_parent_id,
                )
                return False
            target_list = new_parent.children

        node = loc.siblings.pop(loc.index)
        position = _clamp(index, 0, len(target_list))
        target_list.insert(position, node)
        node.parent_ref = new_parent.id if new_parent is not None else None
        logger.debug(
            "Moved %s -> %s @ %d", node_id, new_parent.id if new_parent else ROOT, position
        )
        return True

    def wrap_in_div(self, node_ids: Iterable[str]) -> Node | None:
        """
        Wrap sibling nodes in a new ``div`` container.

        All nodes must share the same parent (the root list counts as one).
        They keep their document order inside the wrapper, whatever order the
        ids were given in, and the wrapper takes the position of the first.

        Returns:
            The wrapper, or None if an id is unknown or parents differ.
        """
        ids = list(dict.fromkeys(node_ids))
        if not ids:
            return None

        locations = []
        for node_id in ids:
            loc = self.tree.locate(node_id)
            if loc is None:
                logger.warning("wrap_in_div: node not found: %s", node_id)
                return None
            locations.append(loc)

        siblings = locations[0].siblings
        if any(loc.siblings is not siblings for loc in locations):
            logger.warning("wrap_in_div: nodes do not share a parent: %s", ", ".join(ids))
            return None

        locations.sort(key=lambda loc: loc.index)
        parent_id = locations[0].parent_id
        wrapper = Node(tag="div", styles=dict(self.wrapper_styles), parent_ref=parent_id)

        for loc in reversed(locations):
            del siblings[loc.index]
        for loc in locations:
            loc.node.parent_ref = wrapper.id
            wrapper.children.append(loc.node)
        siblings.insert(locations[0].index, wrapper)
        return wrapper

    def insert(self, node: Node, parent_id: str | None = ROOT, index: int | None = None) -> bool:
        """
        Insert a new, detached subtree (e.g. a palette drop).

        Appends when ``index`` is None, otherwise clamps it. Refuses subtrees
        whose ids collide with ids already in the tree.
        """
        target_list = self.tree.children_of(parent_id)
        if target_list is None:
            logger.warning("insert: parent not found: %s", parent_id)
            return False
        existing = {n.id for n in self.tree.all_nodes()}
        if existing & node.subtree_ids():
            logger.warning("insert: node %s (or a descendant) is already in the tree", node.id)
            return False

        position = len(target_list) if index is None else _clamp(index, 0, len(target_list))
        node.parent_ref = None if is_root_target(parent_id) else parent_id
        for parent in node.walk():
            for child in parent.children:
                child.parent_ref = parent.id
            parent.selected = False
        target_list.insert(position, node)
        return True

    # =========================================================================
    # Field edits
    # =========================================================================

    def update_text(self, node_id: str, text: str | None) -> bool:
        node = self.tree.find_by_id(node_id)
        if node is None:
            logger.warning("update_text: node not found: %s", node_id)
            return False
        node.text = text or ""
        return True

    def set_style(self, node_id: str, name: str, value: str | None) -> bool:
        """Set a style property; an empty value removes it."""
        return self._set_entry(node_id, "styles", name, value)

    def set_attribute(self, node_id: str, name: str, value: str | None) -> bool:
        """Set an attribute; an empty value removes it."""
        return self._set_entry(node_id, "attributes", name, value)

    def _set_entry(self, node_id: str, field: str, name: str, value: str | None) -> bool:
        name = name.strip()
        if not name:
            return False
        node = self.tree.find_by_id(node_id)
        if node is None:
            logger.warning("set %s: node not found: %s", field, node_id)
            return False
        mapping: dict[str, str] = getattr(node, field)
        if value:
            mapping[name] = value
        else:
            mapping.pop(name, None)
        return True

    # =========================================================================
    # Selection
    # =========================================================================

    def select(self, node_id: str | None) -> bool:
        """
        Make ``node_id`` the single selected node; None clears the selection.

        An unknown id fails and leaves the current selection untouched.
        """
        target = None
        if node_id is not None:
            target = self.tree.find_by_id(node_id)
            if target is None:
                logger.warning("select: node not found: %s", node_id)
                return False
        for node in self.tree.all_nodes():
            node.selected = False
        if target is not None:
            target.selected = True
        return True
