"""Shared fixtures for BlocVibe unit tests.

Time and threads are replaced with deterministic fakes: a manual scheduler
that only fires timers when a test advances it, and an executor that runs
submitted work inline.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future
from typing import Any

import pytest

from blocvibe.core.node import Node
from blocvibe.core.tree import DocumentTree
from blocvibe.render.markup import HighlightDirective, RenderResult


class _Handle:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when the test calls :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[_Handle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        handle = _Handle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[_Handle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> int:
        """Move the clock forward and fire due timers. Returns how many fired."""
        self.now += seconds
        fired = 0
        for handle in sorted(self.active, key=lambda h: h.due):
            if handle.due <= self.now:
                handle.cancelled = True
                handle.callback()
                fired += 1
        return fired


class InlineExecutor(Executor):
    """Runs submitted callables immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        self.submitted += 1
        future: Future[Any] = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class HeldExecutor(Executor):
    """Queues submitted work until :meth:`run_all` is called."""

    def __init__(self) -> None:
        self.queue: list[tuple[Future[Any], Callable[[], Any]]] = []

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        self.queue.append((future, lambda: fn(*args, **kwargs)))
        return future

    def run_all(self) -> None:
        queue, self.queue = self.queue, []
        for future, work in queue:
            future.set_result(work())


class FakeSurface:
    """Rendering surface that records what it was asked to show."""

    def __init__(self) -> None:
        self.loads: list[RenderResult] = []
        self.highlights: list[HighlightDirective | None] = []

    def load(self, result: RenderResult) -> None:
        self.loads.append(result)

    def highlight(self, directive: HighlightDirective | None) -> None:
        self.highlights.append(directive)

    @property
    def last_markup(self) -> str:
        return self.loads[-1].markup


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def levels(self) -> list[str]:
        return [level for level, _ in self.messages]


def build_tree() -> DocumentTree:
    """
    Sample document::

        A (div)
          A1 (p)
          A2 (button)
        B (h2)
        C (div)
          C1 (div)
            C1a (span)
    """
    tree = DocumentTree(
        [
            Node(
                id="A",
                tag="div",
                children=[
                    Node(id="A1", tag="p", text="first"),
                    Node(id="A2", tag="button", text="Click Me"),
                ],
            ),
            Node(id="B", tag="h2", text="Title"),
            Node(
                id="C",
                tag="div",
                children=[
                    Node(id="C1", tag="div", children=[Node(id="C1a", tag="span", text="deep")]),
                ],
            ),
        ]
    )
    tree.rebuild_parent_refs()
    return tree


@pytest.fixture()
def tree() -> DocumentTree:
    return build_tree()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture()
def held_executor() -> HeldExecutor:
    return HeldExecutor()


@pytest.fixture(autouse=True)
def reset_blocvibe_logging():
    """Drop handlers installed by setup_logging so streams never leak between tests."""
    yield
    root = logging.getLogger("blocvibe")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
