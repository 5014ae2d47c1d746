"""
Jinja2 page shell for the rendering surface.

Wraps the tree markup in a complete HTML document: viewport meta, base
editor CSS, project CSS, optional editor scripts and the selection
highlight script.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from blocvibe.core.tree import ROOT, DocumentTree
from blocvibe.render.markup import DEFAULT_HIGHLIGHT_COLOR, RenderResult, render

# Template directory
TEMPLATES_DIR = Path(__file__).parent / "templates"

PAGE_TEMPLATE = "canvas.html"


def create_jinja_env(project_templates_dir: Path | None = None) -> Environment:
    """Create and configure the Jinja2 environment.

    Args:
        project_templates_dir: Optional directory whose ``canvas.html``
            overrides the built-in page shell.
    """
    loaders = [FileSystemLoader(str(TEMPLATES_DIR))]
    if project_templates_dir and project_templates_dir.is_dir():
        loaders.insert(0, FileSystemLoader(str(project_templates_dir)))

    return Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


# Module-level singleton
_env: Environment | None = None


def get_jinja_env() -> Environment:
    """Get the shared Jinja2 environment (lazy singleton)."""
    global _env
    if _env is None:
        _env = create_jinja_env()
    return _env


def configure_project_templates(project_templates_dir: Path) -> None:
    """Reconfigure the environment so project templates override the page shell."""
    global _env
    _env = create_jinja_env(project_templates_dir)


def _raw_block(source: str) -> Markup:
    """Trusted CSS/JS for a <style>/<script> block; cannot close the block early."""
    return Markup(source.replace("</", "<\\/"))


def render_page_result(
    result: RenderResult,
    *,
    css: str = "",
    title: str = "BlocVibe Canvas",
    highlight_color: str = DEFAULT_HIGHLIGHT_COLOR,
    scripts: list[str] | None = None,
) -> str:
    """
    Wrap an already-rendered :class:`RenderResult` in the page shell.

    Args:
        result: Markup and highlight produced by the pipeline.
        css: Project CSS appended after the editor base styles.
        title: Document title.
        highlight_color: Colour used by the ``.bloc-selected`` rule.
        scripts: Editor script URLs loaded after the markup.

    Returns:
        Complete HTML document.
    """
    template = get_jinja_env().get_template(PAGE_TEMPLATE)
    highlight_script = result.highlight.to_script() if result.highlight else ""
    return template.render(
        title=title,
        css=_raw_block(css) if css else "",
        highlight_color=highlight_color,
        root_id=ROOT,
        markup=Markup(result.markup),
        scripts=scripts or [],
        highlight_script=_raw_block(highlight_script) if highlight_script else "",
    )


def render_page(
    tree: DocumentTree,
    *,
    css: str = "",
    title: str = "BlocVibe Canvas",
    highlight_color: str = DEFAULT_HIGHLIGHT_COLOR,
    scripts: list[str] | None = None,
) -> str:
    """Render a tree straight to a complete HTML document."""
    return render_page_result(
        render(tree, highlight_color),
        css=css,
        title=title,
        highlight_color=highlight_color,
        scripts=scripts,
    )
