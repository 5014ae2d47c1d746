"""
BlocVibe command line.

Commands:
- render: Render a document (JSON) to canvas markup or a full page
- validate: Check a document's structure
- apply: Apply one mutation to a document and write the result
- project new/list/show: Manage stored projects
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from blocvibe import __version__
from blocvibe.config import EditorConfig, load_config
from blocvibe.core.engine import MutationEngine
from blocvibe.core.errors import BlocVibeError
from blocvibe.core.tree import DocumentTree
from blocvibe.logging import setup_logging
from blocvibe.persistence.store import ProjectRecord, ProjectStore
from blocvibe.render.markup import render
from blocvibe.render.page import render_page

app = typer.Typer(
    help="BlocVibe page-builder core",
    no_args_is_help=True,
)
project_app = typer.Typer(help="Manage stored projects", no_args_is_help=True)
app.add_typer(project_app, name="project")

console = Console()
err_console = Console(stderr=True)

OPERATIONS = ("move-up", "move-down", "delete", "duplicate", "move", "wrap")


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def _config() -> EditorConfig:
    try:
        return load_config()
    except BlocVibeError as e:
        raise _fail(str(e)) from e


def _load_document(path: Path) -> DocumentTree:
    try:
        payload = path.read_text(encoding="utf-8")
    except OSError as e:
        raise _fail(f"Cannot read {path}: {e}") from e
    try:
        return DocumentTree.from_json(payload, source=str(path))
    except BlocVibeError as e:
        raise _fail(str(e)) from e


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"blocvibe {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write JSONL logs to the configured log_dir"
    ),
) -> None:
    config = _config()
    level = "DEBUG" if verbose else config.logging.level
    # Console logs go to stderr; stdout carries command output.
    setup_logging(
        log_dir=config.logging.log_dir if log_file else None,
        level=level,
        stream=sys.stderr,
    )


@app.command("render")
def render_command(
    document: Path = typer.Argument(..., help="Document JSON file"),
    page: bool = typer.Option(False, "--page", help="Wrap the markup in the canvas page"),
    select: str | None = typer.Option(None, "--select", help="Node id to highlight"),
    title: str = typer.Option("BlocVibe Canvas", "--title", help="Page title (with --page)"),
) -> None:
    """Render a document to markup."""
    tree = _load_document(document)
    config = _config()
    if select is not None and not MutationEngine(tree).select(select):
        raise _fail(f"Element not found: {select}")

    color = config.render.highlight_color
    if page:
        typer.echo(render_page(tree, css=config.render.page_css, title=title, highlight_color=color))
        return

    result = render(tree, color)
    typer.echo(result.markup)
    if result.highlight is not None:
        typer.echo(result.highlight.to_script())


@app.command("validate")
def validate_command(
    document: Path = typer.Argument(..., help="Document JSON file"),
) -> None:
    """Check a document for structural problems."""
    tree = _load_document(document)
    problems = tree.validate()
    if problems:
        for problem in problems:
            err_console.print(f"[yellow]-[/yellow] {escape(problem)}")
        raise _fail(f"{len(problems)} problem(s) in {document}")
    console.print(
        f"[green]OK[/green] {document.name}: {len(tree)} root(s), {tree.node_count()} node(s)"
    )


@app.command("apply")
def apply_command(
    document: Path = typer.Argument(..., help="Document JSON file"),
    operation: str = typer.Argument(..., help=f"One of: {', '.join(OPERATIONS)}"),
    args: list[str] = typer.Argument(None, help="Operation arguments (node ids, parent, index)"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write here instead of overwriting DOCUMENT"
    ),
) -> None:
    """
    Apply one mutation and write the resulting document.

    \b
    move-up ID | move-down ID | delete ID | duplicate ID
    move ID PARENT INDEX   (PARENT may be 'root')
    wrap ID [ID ...]
    """
    args = args or []
    tree = _load_document(document)
    engine = MutationEngine(tree, _config().wrap.styles)

    if operation not in OPERATIONS:
        raise _fail(f"Unknown operation '{operation}'. Expected one of: {', '.join(OPERATIONS)}")

    if operation == "move":
        if len(args) != 3:
            raise _fail("move takes ID PARENT INDEX")
        try:
            index = int(args[2])
        except ValueError as e:
            raise _fail(f"Invalid index: {args[2]}") from e
        ok = engine.move_to_parent(args[0], args[1], index)
    elif operation == "wrap":
        if not args:
            raise _fail("wrap takes at least one ID")
        wrapper = engine.wrap_in_div(args)
        ok = wrapper is not None
        if wrapper is not None:
            console.print(f"Wrapper: {wrapper.id}")
    else:
        if len(args) != 1:
            raise _fail(f"{operation} takes exactly one ID")
        node_id = args[0]
        if operation == "move-up":
            ok = engine.move_up(node_id)
        elif operation == "move-down":
            ok = engine.move_down(node_id)
        elif operation == "delete":
            ok = engine.delete(node_id)
        else:
            clone = engine.duplicate(node_id)
            ok = clone is not None
            if clone is not None:
                console.print(f"Duplicate: {clone.id}")

    if not ok:
        raise _fail(f"{operation} could not be applied")

    target = output or document
    target.write_text(tree.to_json(indent=2) + "\n", encoding="utf-8")
    console.print(f"[green]{operation}[/green] applied -> {target}")


@project_app.command("new")
def project_new_command(
    name: str = typer.Argument(..., help="Project name"),
    document: Path | None = typer.Option(
        None, "--from", help="Seed the project with this document"
    ),
) -> None:
    """Create a project in the store."""
    config = _config()
    elements_json = "[]"
    if document is not None:
        elements_json = _load_document(document).to_json()
    record = ProjectRecord(name=name, elements_json=elements_json, css=config.render.page_css)
    try:
        ProjectStore(config.persistence.store_dir).put(record)
    except BlocVibeError as e:
        raise _fail(str(e)) from e
    console.print(f"[green]Created project[/green] {record.name} ({record.id})")


@project_app.command("list")
def project_list_command() -> None:
    """List stored projects, most recently modified first."""
    records = ProjectStore(_config().persistence.store_dir).list()
    if not records:
        console.print("No projects yet.")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Elements", justify="right")
    table.add_column("Modified", style="dim")
    for record in records:
        try:
            count = DocumentTree.from_json(record.elements_json).node_count()
        except BlocVibeError:
            count = "?"
        table.add_row(record.id, record.name, str(count), record.last_modified_label())
    console.print(table)


@project_app.command("show")
def project_show_command(
    project_id: str = typer.Argument(..., help="Project id"),
    page: bool = typer.Option(False, "--page", help="Print the rendered page"),
) -> None:
    """Show a stored project."""
    config = _config()
    try:
        record = ProjectStore(config.persistence.store_dir).get(project_id)
        if record is None:
            raise _fail(f"Project not found: {project_id}")
        tree = DocumentTree.from_json(record.elements_json, source=record.id)
    except BlocVibeError as e:
        raise _fail(str(e)) from e

    if page:
        typer.echo(
            render_page(
                tree,
                css=record.css,
                title=record.name,
                highlight_color=config.render.highlight_color,
            )
        )
        return

    console.print(f"[bold]{record.name}[/bold] ({record.id})")
    console.print(record.last_modified_label())
    typer.echo(tree.to_json(indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
