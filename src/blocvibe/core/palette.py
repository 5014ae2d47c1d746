"""
Palette factories for nodes dropped onto the canvas.

Each palette entry maps a tag to a factory producing a fresh, parentless
node with sensible starter content.
"""

from __future__ import annotations

from collections.abc import Callable

from blocvibe.core.node import Node


def create_heading(text: str = "Heading", level: int = 2) -> Node:
    """Heading node ``h1``..``h6``; out-of-range levels are clamped."""
    level = max(1, min(level, 6))
    return Node(tag=f"h{level}", text=text)


def create_paragraph(text: str = "Paragraph text") -> Node:
    return Node(tag="p", text=text)


def create_button(text: str = "Click Me") -> Node:
    return Node(tag="button", text=text)


def create_div() -> Node:
    return Node(tag="div")


def create_link(text: str = "Link", href: str = "#") -> Node:
    return Node(tag="a", text=text, attributes={"href": href})


def create_image(src: str = "", alt: str = "Image") -> Node:
    return Node(tag="img", attributes={"src": src, "alt": alt})


PALETTE: dict[str, Callable[[], Node]] = {
    "h1": lambda: create_heading(level=1),
    "h2": create_heading,
    "h3": lambda: create_heading(level=3),
    "p": create_paragraph,
    "button": create_button,
    "div": create_div,
    "a": create_link,
    "img": create_image,
}


def create_from_palette(tag: str) -> Node:
    """
    Build the node for a palette drop.

    Unknown tags still produce a node: an element of that tag whose text is
    the upper-cased tag name, matching what the canvas shows for ad-hoc drops.
    """
    tag = tag.strip().lower()
    factory = PALETTE.get(tag)
    if factory is not None:
        return factory()
    return Node(tag=tag or "div", text=tag.upper())
