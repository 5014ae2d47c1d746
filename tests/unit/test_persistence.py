"""Tests for the project store and the persistence gate."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from blocvibe.config import EditorConfig
from blocvibe.core.errors import PersistenceError
from blocvibe.core.node import Node
from blocvibe.core.tree import DocumentTree
from blocvibe.persistence.gate import PersistenceGate
from blocvibe.persistence.store import ProjectRecord, ProjectStore

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR


@pytest.fixture()
def store(tmp_path: Path) -> ProjectStore:
    return ProjectStore(tmp_path / "projects")


# ---------------------------------------------------------------------------
# ProjectRecord
# ---------------------------------------------------------------------------


class TestProjectRecord:
    def test_defaults(self) -> None:
        record = ProjectRecord(name="Landing")
        assert len(record.id) == 12
        assert record.elements_json == "[]"
        assert record.css == ""
        assert record.last_modified > 0

    @pytest.mark.parametrize(
        ("age", "label"),
        [
            (0, "Just now"),
            (5 * MINUTE, "5 minutes ago"),
            (1 * MINUTE, "1 minute ago"),
            (3 * HOUR, "3 hours ago"),
            (1 * DAY, "Yesterday"),
            (4 * DAY, "4 days ago"),
            (14 * DAY, "2 weeks ago"),
            (45 * DAY, "Over a month ago"),
        ],
    )
    def test_last_modified_label(self, age: int, label: str) -> None:
        record = ProjectRecord(name="p", last_modified=10 * 365 * DAY)
        assert record.last_modified_label(now_ms=10 * 365 * DAY + age) == f"Last modified: {label}"

    def test_future_timestamp_is_just_now(self) -> None:
        record = ProjectRecord(name="p", last_modified=2 * DAY)
        assert record.last_modified_label(now_ms=DAY) == "Last modified: Just now"


# ---------------------------------------------------------------------------
# ProjectStore
# ---------------------------------------------------------------------------


class TestProjectStore:
    def test_put_and_get(self, store: ProjectStore) -> None:
        record = ProjectRecord(id="p1", name="One", elements_json='[{"id": "a"}]', css="p{}")
        store.put(record)
        loaded = store.get("p1")
        assert loaded == record
        assert (store.root / "p1.json").exists()

    def test_get_missing(self, store: ProjectStore) -> None:
        assert store.get("nope") is None

    def test_put_overwrites_without_leftovers(self, store: ProjectStore) -> None:
        store.put(ProjectRecord(id="p1", name="One"))
        store.put(ProjectRecord(id="p1", name="Renamed"))
        assert store.get("p1").name == "Renamed"
        assert sorted(p.name for p in store.root.iterdir()) == ["p1.json"]

    def test_delete(self, store: ProjectStore) -> None:
        store.put(ProjectRecord(id="p1", name="One"))
        assert store.delete("p1")
        assert not store.delete("p1")
        assert store.get("p1") is None

    def test_list_newest_first(self, store: ProjectStore) -> None:
        store.put(ProjectRecord(id="old", name="Old", last_modified=1_000))
        store.put(ProjectRecord(id="new", name="New", last_modified=3_000))
        store.put(ProjectRecord(id="mid", name="Mid", last_modified=2_000))
        assert [r.id for r in store.list()] == ["new", "mid", "old"]

    def test_list_empty_when_no_dir(self, tmp_path: Path) -> None:
        assert ProjectStore(tmp_path / "absent").list() == []

    def test_corrupt_file(self, store: ProjectStore) -> None:
        store.put(ProjectRecord(id="good", name="Good"))
        (store.root / "bad.json").write_text("{oops")
        assert [r.id for r in store.list()] == ["good"]
        with pytest.raises(PersistenceError, match="Corrupt project file"):
            store.get("bad")

    @pytest.mark.parametrize("project_id", ["", "../escape", "a/b", ".hidden"])
    def test_invalid_ids(self, store: ProjectStore, project_id: str) -> None:
        with pytest.raises(PersistenceError, match="Invalid project id"):
            store.get(project_id)

    def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = ProjectStore(blocker / "projects")
        with pytest.raises(PersistenceError, match="Failed to write"):
            store.put(ProjectRecord(id="p", name="P"))


# ---------------------------------------------------------------------------
# PersistenceGate
# ---------------------------------------------------------------------------


class TestPersistenceGate:
    def test_schedule_writes_snapshot(self, store, inline_executor, tree) -> None:
        gate = PersistenceGate(
            store,
            ProjectRecord(id="p", name="P", css="body{}"),
            save_delay=0,
            executor=inline_executor,
        )
        gate.schedule(tree)
        saved = store.get("p")
        assert saved.css == "body{}"
        assert DocumentTree.from_json(saved.elements_json).to_data() == tree.to_data()
        assert gate.saves == 1
        assert gate.project.elements_json == saved.elements_json

    def test_snapshot_taken_at_schedule_time(self, store, held_executor, tree) -> None:
        gate = PersistenceGate(
            store, ProjectRecord(id="p", name="P"), save_delay=0, executor=held_executor
        )
        gate.schedule(tree)
        tree.roots.append(Node(id="late"))
        held_executor.run_all()
        saved = DocumentTree.from_json(store.get("p").elements_json)
        assert saved.find_by_id("late") is None

    def test_save_delay_coalesces(self, store, inline_executor, scheduler, tree) -> None:
        gate = PersistenceGate(
            store,
            ProjectRecord(id="p", name="P"),
            save_delay=1.0,
            executor=inline_executor,
            scheduler=scheduler,
        )
        for i in range(5):
            tree.find_by_id("B").text = f"v{i}"
            gate.schedule(tree)
        assert gate.pending
        assert inline_executor.submitted == 0

        scheduler.advance(2)
        assert inline_executor.submitted == 1
        saved = DocumentTree.from_json(store.get("p").elements_json)
        assert saved.find_by_id("B").text == "v4"

    def test_saves_are_debounced_by_default(self, store, inline_executor, scheduler, tree) -> None:
        gate = PersistenceGate(
            store, ProjectRecord(id="p", name="P"), executor=inline_executor, scheduler=scheduler
        )
        gate.schedule(tree)
        gate.schedule(tree)
        assert gate.pending
        assert inline_executor.submitted == 0

        scheduler.advance(0.4)
        assert inline_executor.submitted == 0
        scheduler.advance(0.2)
        assert inline_executor.submitted == 1

    def test_from_config(self, tmp_path: Path, inline_executor, scheduler, tree) -> None:
        config = EditorConfig()
        config.persistence.store_dir = str(tmp_path / "configured")
        config.persistence.save_delay_ms = 2000
        gate = PersistenceGate.from_config(
            config, ProjectRecord(id="p", name="P"), executor=inline_executor, scheduler=scheduler
        )
        gate.schedule(tree)
        scheduler.advance(1.5)
        assert inline_executor.submitted == 0
        scheduler.advance(1)
        assert gate.store.root == tmp_path / "configured"
        assert gate.store.get("p") is not None

    def test_flush_submits_pending_and_waits(self, store, scheduler, tree) -> None:
        gate = PersistenceGate(
            store, ProjectRecord(id="p", name="P"), save_delay=10.0, scheduler=scheduler
        )
        gate.schedule(tree)
        gate.flush(timeout=5)
        assert store.get("p") is not None
        assert not gate.pending
        assert not gate.in_flight
        gate.close()

    def test_write_runs_off_the_calling_thread(self, store, tree) -> None:
        seen: list[str] = []
        original_put = store.put

        def recording_put(record) -> None:
            seen.append(threading.current_thread().name)
            original_put(record)

        store.put = recording_put
        gate = PersistenceGate(store, ProjectRecord(id="p", name="P"))
        gate.schedule(tree)
        gate.close()
        assert seen and seen[0].startswith("blocvibe-save")

    def test_failure_logged_and_notified(self, store, inline_executor, notifier, tree) -> None:
        def broken_put(record) -> None:
            raise PermissionError("read-only")

        store.put = broken_put
        gate = PersistenceGate(
            store,
            ProjectRecord(id="p", name="Demo"),
            save_delay=0,
            executor=inline_executor,
            notifier=notifier,
        )
        gate.schedule(tree)
        assert gate.failures == 1
        assert gate.saves == 0
        assert notifier.messages == [("error", "Could not save project 'Demo'")]

    def test_next_save_after_failure_carries_latest(self, store, inline_executor, tree) -> None:
        calls = {"n": 0}
        original_put = store.put

        def flaky_put(record) -> None:
            calls["n"] += 1
            if calls["n"] == 1:
                raise OSError("transient")
            original_put(record)

        store.put = flaky_put
        gate = PersistenceGate(
            store, ProjectRecord(id="p", name="P"), save_delay=0, executor=inline_executor
        )
        gate.schedule(tree)
        tree.find_by_id("B").text = "latest"
        gate.schedule(tree)
        saved = json.loads(store.get("p").elements_json)
        assert saved[1]["text"] == "latest"

    def test_schedule_after_close_ignored(self, store, inline_executor, tree) -> None:
        gate = PersistenceGate(
            store, ProjectRecord(id="p", name="P"), save_delay=0, executor=inline_executor
        )
        gate.close()
        gate.schedule(tree)
        assert inline_executor.submitted == 0
        assert store.get("p") is None
