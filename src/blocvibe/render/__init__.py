"""
BlocVibe render pipeline.

- markup.py: tree -> markup plus selection highlight directive
- page.py: Jinja2 page shell around the markup
"""

from blocvibe.render.markup import (
    DEFAULT_HIGHLIGHT_COLOR,
    NODE_ID_ATTR,
    HighlightDirective,
    RenderResult,
    highlight_for,
    render,
    render_markup,
    render_node,
    style_string,
)
from blocvibe.render.page import render_page, render_page_result

__all__ = [
    "DEFAULT_HIGHLIGHT_COLOR",
    "HighlightDirective",
    "NODE_ID_ATTR",
    "RenderResult",
    "highlight_for",
    "render",
    "render_markup",
    "render_node",
    "render_page",
    "render_page_result",
    "style_string",
]
