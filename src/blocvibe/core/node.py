"""
Node - the atomic element of a BlocVibe document.

A node owns its children. ``parent_ref`` is only a back-reference (the id of
the owning parent, or None for a root) and is rebuilt from tree position on
every decode; it is never trusted as an ownership edge.

``selected`` is a transient editor flag. It is excluded from the wire format
and from node equality.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

DEFAULT_TAG = "div"

# Ids that address the root list; no node may carry one
RESERVED_IDS = frozenset({"root", "body", ""})


def new_node_id() -> str:
    """Generate a fresh opaque node identifier."""
    return str(uuid.uuid4())


class Node(BaseModel):
    """
    A single element of the document tree.

    Example:
        Node(tag="button", text="Click Me", styles={"color": "red"})
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        default_factory=new_node_id,
        validation_alias=AliasChoices("id", "elementId"),
        description="Unique, immutable node id",
    )
    tag: str = Field(default=DEFAULT_TAG, description="Element kind (div, p, button, ...)")
    text: str = Field(
        default="",
        validation_alias=AliasChoices("text", "textContent"),
        description="Inline text content",
    )
    styles: dict[str, str] = Field(default_factory=dict, description="Inline style properties")
    attributes: dict[str, str] = Field(default_factory=dict, description="Element attributes")
    children: list[Node] = Field(default_factory=list, description="Owned child nodes, in order")
    parent_ref: str | None = Field(
        default=None,
        validation_alias=AliasChoices("parent_ref", "parentRef", "parentId"),
        serialization_alias="parentRef",
        description="Id of the owning parent (informational back-reference)",
    )
    selected: bool = Field(default=False, exclude=True, description="Transient UI selection")

    @field_validator("id")
    @classmethod
    def _id_not_reserved(cls, value: str) -> str:
        if not value.strip() or value in RESERVED_IDS:
            raise ValueError(f"id {value!r} is reserved for the root list")
        return value

    @field_validator("text", mode="before")
    @classmethod
    def _none_text_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("styles", "attributes", "children", mode="before")
    @classmethod
    def _none_collection_is_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "children" else {}
        return value

    @field_validator("tag")
    @classmethod
    def _tag_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tag must not be empty")
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.to_data() == other.to_data()

    def to_data(self) -> dict[str, Any]:
        """Wire representation of this node and its subtree (no selection flag)."""
        return self.model_dump(by_alias=True)

    def walk(self) -> Iterator[Node]:
        """Traverse this subtree pre-order, yielding self before descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def subtree_ids(self) -> set[str]:
        """Ids of this node and every descendant."""
        return {node.id for node in self.walk()}

    def contains(self, node_id: str) -> bool:
        """True if ``node_id`` is this node or one of its descendants."""
        return any(node.id == node_id for node in self.walk())

    def clone(self, parent_ref: str | None = None) -> Node:
        """
        Deep copy of this subtree where every node gets a new id.

        Tag, text, styles, attributes and child order are copied exactly.
        The copy is never selected.
        """
        copy = Node(
            tag=self.tag,
            text=self.text,
            styles=dict(self.styles),
            attributes=dict(self.attributes),
            parent_ref=parent_ref,
        )
        copy.children = [child.clone(parent_ref=copy.id) for child in self.children]
        return copy

    def __repr__(self) -> str:
        return f"Node(id={self.id!r}, tag={self.tag!r}, children={len(self.children)})"


Node.model_rebuild()
