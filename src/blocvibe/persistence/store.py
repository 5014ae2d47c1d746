"""
Project record persistence.

Saves and loads project records as JSON files in ``.blocvibe/projects/``.
A record carries the serialized element tree plus the project's CSS/JS and
modification time.

File key: ``{project_id}.json``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import time
import uuid
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from blocvibe.core.errors import PersistenceError

logger = logging.getLogger(__name__)

_DEFAULT_STORE_DIR = Path(".blocvibe") / "projects"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProjectRecord(BaseModel):
    """Durable record of one page-builder project."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str
    elements_json: str = "[]"
    css: str = ""
    js: str = ""
    last_modified: int = Field(default_factory=_now_ms, description="Epoch milliseconds")

    def last_modified_label(self, now_ms: int | None = None) -> str:
        """Human-readable age, e.g. ``Last modified: 3 hours ago``."""
        now_ms = _now_ms() if now_ms is None else now_ms
        minutes = max(0, now_ms - self.last_modified) // 1000 // 60
        hours = minutes // 60
        days = hours // 24

        if days > 0:
            if days == 1:
                return "Last modified: Yesterday"
            if days < 7:
                return f"Last modified: {days} days ago"
            if days < 30:
                weeks = days // 7
                return f"Last modified: {weeks} week{'s' if weeks != 1 else ''} ago"
            return "Last modified: Over a month ago"
        if hours > 0:
            return f"Last modified: {hours} hour{'s' if hours != 1 else ''} ago"
        if minutes > 0:
            return f"Last modified: {minutes} minute{'s' if minutes != 1 else ''} ago"
        return "Last modified: Just now"


class ProjectStore:
    """File-based project persistence.

    Stores records as JSON files under ``{root}/{project_id}.json``.

    Args:
        root: Directory holding the project files (created on first write).
    """

    def __init__(self, root: Path | str = _DEFAULT_STORE_DIR) -> None:
        self._dir = Path(root)

    @property
    def root(self) -> Path:
        return self._dir

    def _record_path(self, project_id: str) -> Path:
        """Compute the file path for a project record."""
        if not project_id or "/" in project_id or "\\" in project_id or project_id.startswith("."):
            raise PersistenceError(f"Invalid project id: {project_id!r}")
        return self._dir / f"{project_id}.json"

    def put(self, record: ProjectRecord) -> None:
        """Write a record, replacing any previous version atomically.

        Raises:
            PersistenceError: if the file cannot be written
        """
        path = self._record_path(record.id)
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write project {record.id}: {e}") from e
        logger.debug("Saved project: %s", path.name)

    def get(self, project_id: str) -> ProjectRecord | None:
        """Load a record.

        Returns:
            The record, or None if no such project exists.

        Raises:
            PersistenceError: if the file exists but is unreadable or corrupt
        """
        path = self._record_path(project_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return ProjectRecord.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(f"Corrupt project file {path.name}: {e}") from e

    def delete(self, project_id: str) -> bool:
        """Delete a record. Returns True if it existed."""
        path = self._record_path(project_id)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Deleted project: %s", path.name)
        return True

    def list(self) -> list[ProjectRecord]:
        """All readable records, most recently modified first."""
        if not self._dir.is_dir():
            return []
        records: list[ProjectRecord] = []
        for path in self._dir.glob("*.json"):
            try:
                records.append(ProjectRecord.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, ValidationError):
                logger.warning("Skipping corrupt project file: %s", path.name)
        records.sort(key=lambda r: r.last_modified, reverse=True)
        return records
