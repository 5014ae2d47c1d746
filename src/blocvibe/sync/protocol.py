"""
Sync protocol between the native document tree and the rendering surface.

Two inbound message families reach a :class:`SyncSession`:

1. Full-tree replace (``on_dom_updated``): the surface asserts it is
   authoritative; the payload supersedes the native tree (last writer wins).
2. Discrete commands (move, delete, duplicate, wrap, selection, text and
   property edits): applied by the mutation engine against the current tree.

Both families go through one serialized entry point, so messages are handled
strictly in arrival order and the tree is only ever touched by one thread at
a time. Each successful message ends the same way: tree mutated, render
scheduled, save scheduled.

State machine::

    Idle -> Replacing | Mutating -> Rendering -> Idle

Saves run on the persistence gate's worker and never gate the return to Idle.
Reparenting moves (issued at high rate during drags) render through a
trailing debounce; everything else renders immediately.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from blocvibe.config import EditorConfig
from blocvibe.core.engine import MutationEngine
from blocvibe.core.errors import PayloadError
from blocvibe.core.palette import create_from_palette
from blocvibe.core.tree import ROOT, DocumentTree
from blocvibe.render.markup import HighlightDirective, RenderResult, highlight_for, render
from blocvibe.sync.debounce import Debouncer, Scheduler
from blocvibe.sync.surface import LoggingNotifier, Notifier, RenderingSurface

if TYPE_CHECKING:
    from blocvibe.persistence.gate import PersistenceGate

logger = logging.getLogger(__name__)

_HISTORY_LIMIT = 200


class SyncState(StrEnum):
    IDLE = "idle"
    REPLACING = "replacing"
    MUTATING = "mutating"
    RENDERING = "rendering"
    PERSISTING = "persisting"


class RenderMode(StrEnum):
    NOW = "now"
    DEBOUNCED = "debounced"
    HIGHLIGHT = "highlight"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one inbound message. Never raised; always returned."""

    ok: bool
    message: str = ""
    node_id: str | None = None


class SyncSession:
    """
    One editing session: owns the tree and mediates every change to it.

    Args:
        surface: Outbound bridge to the canvas.
        tree: Initial document (default: empty).
        config: Editor configuration (default: built-in defaults).
        gate: Persistence gate; None disables saving.
        notifier: User notification channel.
        scheduler: Timer source for the render debounce.
    """

    def __init__(
        self,
        surface: RenderingSurface,
        *,
        tree: DocumentTree | None = None,
        config: EditorConfig | None = None,
        gate: PersistenceGate | None = None,
        notifier: Notifier | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.surface = surface
        self.config = config or EditorConfig()
        self.tree = tree if tree is not None else DocumentTree()
        self.engine = MutationEngine(self.tree, self.config.wrap.styles)
        self.gate = gate
        self.notifier = notifier or LoggingNotifier()

        self._lock = threading.RLock()
        self._state = SyncState.IDLE
        self.history: deque[tuple[SyncState, SyncState]] = deque(maxlen=_HISTORY_LIMIT)
        self._ready = False
        self._render_wanted = False
        self._closed = False
        self.render_count = 0
        self._render_debouncer = Debouncer(
            self._debounced_render,
            self.config.debounce_seconds,
            scheduler,
            name="render",
        )

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> SyncState:
        """
        Control-thread state; ``PERSISTING`` while idle with a save in flight.

        Saves never hold the control thread, so any inbound message may run
        while the state reads ``PERSISTING``.
        """
        if self._state is SyncState.IDLE and self.persisting:
            return SyncState.PERSISTING
        return self._state

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def persisting(self) -> bool:
        """True while a background save is queued or running."""
        return self.gate is not None and self.gate.in_flight

    @property
    def render_pending(self) -> bool:
        return self._render_debouncer.pending

    def _transition(self, new_state: SyncState) -> None:
        if new_state == self._state:
            return
        self.history.append((self._state, new_state))
        logger.debug("sync: %s -> %s", self._state, new_state)
        self._state = new_state

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _dispatch(
        self,
        label: str,
        phase: SyncState,
        action: Callable[[], SyncResult],
        render_mode: RenderMode,
        persist: bool = True,
    ) -> SyncResult:
        """Run one inbound message under the session lock, then render and save."""
        with self._lock:
            if self._closed:
                logger.warning("%s ignored: session is closed", label)
                return SyncResult(False, "Session closed")

            self._transition(phase)
            try:
                result = action()
                if result.ok:
                    if render_mode is RenderMode.NOW:
                        self._render_now()
                    elif render_mode is RenderMode.DEBOUNCED:
                        self._render_debouncer.trigger()
                    elif render_mode is RenderMode.HIGHLIGHT:
                        self._push_highlight()
                    if persist:
                        self._schedule_save()
                else:
                    logger.warning("%s rejected: %s", label, result.message)
                    self.notifier.notify("warning", result.message)
            except Exception:
                logger.exception("%s failed unexpectedly", label)
                self.notifier.notify("error", f"{label} failed")
                result = SyncResult(False, f"{label} failed")
            finally:
                self._transition(SyncState.IDLE)
            return result

    def _render_now(self) -> None:
        # An immediate render supersedes any pending debounced one.
        self._render_debouncer.cancel()
        if not self._ready:
            self._render_wanted = True
            logger.debug("Render deferred until the surface is ready")
            return
        self._transition(SyncState.RENDERING)
        result = render(self.tree, self.config.render.highlight_color)
        self.surface.load(result)
        self.render_count += 1
        self._render_wanted = False

    def _debounced_render(self) -> None:
        # Runs on the scheduler's thread.
        with self._lock:
            if self._closed:
                return
            try:
                self._render_now()
            except Exception:
                logger.exception("Debounced render failed")
                self.notifier.notify("error", "Canvas refresh failed")
            finally:
                self._transition(SyncState.IDLE)

    def _push_highlight(self) -> None:
        if not self._ready:
            return
        directive = highlight_for(self.tree, self.config.render.highlight_color)
        self.surface.highlight(directive)

    def _schedule_save(self) -> None:
        if self.gate is None:
            return
        self.gate.schedule(self.tree)

    def current_render(self) -> RenderResult:
        """Render the tree as it is now, without touching the surface."""
        with self._lock:
            return render(self.tree, self.config.render.highlight_color)

    # =========================================================================
    # Surface lifecycle
    # =========================================================================

    def on_page_ready(self) -> SyncResult:
        """The surface finished initializing; performs the first render."""
        with self._lock:
            if self._closed:
                return SyncResult(False, "Session closed")
            if self._ready:
                logger.debug("Surface ready signalled again; ignoring")
                return SyncResult(True, "Already ready")
            self._ready = True
            logger.info(
                "Surface ready%s", " (applying deferred changes)" if self._render_wanted else ""
            )
            try:
                self._render_now()
            except Exception:
                logger.exception("Initial render failed")
                self.notifier.notify("error", "Canvas failed to load")
                return SyncResult(False, "Initial render failed")
            finally:
                self._transition(SyncState.IDLE)
            return SyncResult(True, "Canvas ready")

    def close(self) -> None:
        """Tear the session down: cancel the pending render, then flush saves."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._render_debouncer.cancel():
                logger.debug("Cancelled pending render on teardown")
        if self.gate is not None:
            self.gate.close()
        logger.info("Sync session closed")

    def __enter__(self) -> SyncSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Full-tree replace
    # =========================================================================

    def on_dom_updated(self, payload: str | None) -> SyncResult:
        """Replace the whole tree with the surface's view of it."""

        def action() -> SyncResult:
            try:
                incoming = DocumentTree.from_json(payload, source="surface")
            except PayloadError as e:
                return SyncResult(False, f"Rejected DOM update: {e.message}")
            selected = self.tree.selected
            self.tree.replace_with(incoming)
            if selected is not None and self.tree.contains(selected.id):
                self.engine.select(selected.id)
            logger.info("DOM synced: %d root(s), %d node(s)", len(self.tree), self.tree.node_count())
            return SyncResult(True, "DOM synced")

        return self._dispatch("DOM update", SyncState.REPLACING, action, RenderMode.NOW)

    # =========================================================================
    # Discrete commands
    # =========================================================================

    def on_element_selected(self, node_id: str | None) -> SyncResult:
        """Select a node (None or empty clears). No structural change, no save."""
        target = node_id or None

        def action() -> SyncResult:
            if not self.engine.select(target):
                return SyncResult(False, f"Element not found: {target}", target)
            return SyncResult(True, "Selected" if target else "Selection cleared", target)

        return self._dispatch(
            "Select", SyncState.MUTATING, action, RenderMode.HIGHLIGHT, persist=False
        )

    def on_element_text_changed(self, node_id: str, text: str | None) -> SyncResult:
        def action() -> SyncResult:
            if not self.engine.update_text(node_id, text):
                return SyncResult(False, f"Element not found: {node_id}", node_id)
            return SyncResult(True, "Text updated", node_id)

        return self._dispatch("Text change", SyncState.MUTATING, action, RenderMode.NOW)

    def on_element_property_changed(self, node_id: str, prop: str, value: str | None) -> SyncResult:
        """
        Update a style or attribute.

        ``prop`` is ``style.<name>`` or ``attr.<name>``; a bare name is a style.
        """
        kind, _, name = prop.partition(".")
        if not name:
            kind, name = "style", prop
        setter = {
            "style": self.engine.set_style,
            "attr": self.engine.set_attribute,
            "attribute": self.engine.set_attribute,
        }.get(kind)

        def action() -> SyncResult:
            if setter is None or not name.strip():
                return SyncResult(False, f"Unknown property: {prop}", node_id)
            if not setter(node_id, name, value):
                return SyncResult(False, f"Element not found: {node_id}", node_id)
            return SyncResult(True, f"{prop} updated", node_id)

        return self._dispatch("Property change", SyncState.MUTATING, action, RenderMode.NOW)

    def on_element_moved(self, node_id: str, new_parent_id: str | None, index: int) -> SyncResult:
        """Drag-and-drop reparent; renders through the debounce."""

        def action() -> SyncResult:
            if not self.engine.move_to_parent(node_id, new_parent_id, index):
                return SyncResult(False, "Cannot move element there", node_id)
            return SyncResult(True, "Element moved", node_id)

        return self._dispatch("Move", SyncState.MUTATING, action, RenderMode.DEBOUNCED)

    def on_element_move_up(self, node_id: str) -> SyncResult:
        def action() -> SyncResult:
            if not self.engine.move_up(node_id):
                return SyncResult(False, "Cannot move up - already at top", node_id)
            return SyncResult(True, "Element moved up", node_id)

        return self._dispatch("Move up", SyncState.MUTATING, action, RenderMode.NOW)

    def on_element_move_down(self, node_id: str) -> SyncResult:
        def action() -> SyncResult:
            if not self.engine.move_down(node_id):
                return SyncResult(False, "Cannot move down - already at bottom", node_id)
            return SyncResult(True, "Element moved down", node_id)

        return self._dispatch("Move down", SyncState.MUTATING, action, RenderMode.NOW)

    def on_element_delete(self, node_id: str) -> SyncResult:
        def action() -> SyncResult:
            if not self.engine.delete(node_id):
                return SyncResult(False, "Failed to delete element", node_id)
            return SyncResult(True, "Element deleted", node_id)

        return self._dispatch("Delete", SyncState.MUTATING, action, RenderMode.NOW)

    def on_element_duplicate(self, node_id: str) -> SyncResult:
        def action() -> SyncResult:
            clone = self.engine.duplicate(node_id)
            if clone is None:
                return SyncResult(False, "Failed to duplicate element", node_id)
            return SyncResult(True, "Element duplicated", clone.id)

        return self._dispatch("Duplicate", SyncState.MUTATING, action, RenderMode.NOW)

    def on_elements_wrap_in_div(self, ids_json: str) -> SyncResult:
        """Wrap the given sibling ids (a JSON array) in a container and select it."""

        def action() -> SyncResult:
            try:
                ids = json.loads(ids_json)
            except (TypeError, ValueError):
                return SyncResult(False, "Invalid element id list")
            if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
                return SyncResult(False, "Invalid element id list")
            wrapper = self.engine.wrap_in_div(ids)
            if wrapper is None:
                return SyncResult(False, "Failed to wrap elements")
            self.engine.select(wrapper.id)
            return SyncResult(True, "Elements wrapped in container", wrapper.id)

        return self._dispatch("Wrap", SyncState.MUTATING, action, RenderMode.NOW)

    def on_palette_drop(
        self, tag: str, parent_id: str | None = ROOT, index: int | None = None
    ) -> SyncResult:
        """Create a node from the palette and insert it."""

        def action() -> SyncResult:
            node = create_from_palette(tag)
            if not self.engine.insert(node, parent_id, index):
                return SyncResult(False, f"Cannot drop {tag} there")
            return SyncResult(True, f"Added <{node.tag}>", node.id)

        return self._dispatch("Palette drop", SyncState.MUTATING, action, RenderMode.NOW)

    def highlight_directive(self) -> HighlightDirective | None:
        with self._lock:
            return highlight_for(self.tree, self.config.render.highlight_color)
