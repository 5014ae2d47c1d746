"""
Render pipeline: document tree -> markup.

Pure and stateless. Each node becomes an element carrying its node id in
``data-bloc-id``, followed by its own attributes, an inline style string,
its escaped text and its rendered children.

Selection is not baked into the markup. When a node is selected the
pipeline emits a separate :class:`HighlightDirective` that the surface
applies after loading the markup, so re-selecting never needs a re-render.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from markupsafe import escape

from blocvibe.core.node import Node
from blocvibe.core.tree import DocumentTree

logger = logging.getLogger(__name__)

NODE_ID_ATTR = "data-bloc-id"
DEFAULT_HIGHLIGHT_COLOR = "#0D6EFD"

VOID_TAGS = frozenset({"img", "br", "hr", "input", "meta", "link"})

_TAG_RE = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")
_ATTR_RE = re.compile(r"^[^\s\"'>/=]+$")


@dataclass(frozen=True)
class HighlightDirective:
    """Post-render instruction: outline a node and scroll it into view."""

    node_id: str
    color: str = DEFAULT_HIGHLIGHT_COLOR
    scroll_into_view: bool = True

    def to_script(self) -> str:
        """JavaScript the surface evaluates to apply the highlight."""
        node_id = json.dumps(self.node_id)
        color = json.dumps(self.color)
        lines = [
            "(function() {",
            "  document.querySelectorAll('.bloc-selected').forEach(function(el) {",
            "    el.classList.remove('bloc-selected'); el.style.outline = '';",
            "  });",
            f"  var id = {node_id}, el = null;",
            f"  document.querySelectorAll('[{NODE_ID_ATTR}]').forEach(function(c) {{",
            f"    if (!el && c.getAttribute('{NODE_ID_ATTR}') === id) {{ el = c; }}",
            "  });",
            "  if (!el) { return; }",
            "  el.classList.add('bloc-selected');",
            f"  el.style.outline = '2px solid ' + {color};",
        ]
        if self.scroll_into_view:
            lines.append("  el.scrollIntoView({ behavior: 'smooth', block: 'center' });")
        lines.append("})();")
        return "\n".join(lines)


@dataclass(frozen=True)
class RenderResult:
    """Markup for the surface plus the optional highlight to apply afterwards."""

    markup: str
    highlight: HighlightDirective | None = None


def style_string(styles: Mapping[str, str]) -> str:
    """Inline style text, e.g. ``color: red; padding: 10px``."""
    return "; ".join(f"{name}: {value}" for name, value in styles.items() if name)


def _safe_tag(tag: str) -> str:
    if _TAG_RE.match(tag):
        return tag.lower()
    logger.warning("Rendering invalid tag %r as div", tag)
    return "div"


def render_node(node: Node) -> str:
    """Render one node and its subtree."""
    tag = _safe_tag(node.tag)
    parts = [f"<{tag}", f' {NODE_ID_ATTR}="{escape(node.id)}"']

    for name, value in node.attributes.items():
        if name == NODE_ID_ATTR or name.lower() == "style" or not _ATTR_RE.match(name):
            continue
        parts.append(f' {name}="{escape(value)}"')

    styles = style_string(node.styles)
    if styles:
        parts.append(f' style="{escape(styles)}"')
    parts.append(">")

    if tag in VOID_TAGS:
        return "".join(parts)

    if node.text:
        parts.append(str(escape(node.text)))
    parts.extend(render_node(child) for child in node.children)
    parts.append(f"</{tag}>")
    return "".join(parts)


def render_markup(roots: Iterable[Node]) -> str:
    """Render a sequence of root nodes in document order."""
    return "".join(render_node(root) for root in roots)


def highlight_for(
    tree: DocumentTree, color: str = DEFAULT_HIGHLIGHT_COLOR
) -> HighlightDirective | None:
    """Highlight directive for the tree's current selection, if any."""
    selected = tree.selected
    if selected is None:
        return None
    return HighlightDirective(node_id=selected.id, color=color)


def render(tree: DocumentTree, highlight_color: str = DEFAULT_HIGHLIGHT_COLOR) -> RenderResult:
    """Render the whole tree and attach the selection highlight."""
    return RenderResult(
        markup=render_markup(tree.roots),
        highlight=highlight_for(tree, highlight_color),
    )
