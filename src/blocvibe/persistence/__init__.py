"""
BlocVibe project persistence.

- store.py: ProjectRecord and the file-backed ProjectStore
- gate.py: PersistenceGate, off-thread saves of tree snapshots
"""

from blocvibe.persistence.gate import PersistenceGate
from blocvibe.persistence.store import ProjectRecord, ProjectStore

__all__ = ["PersistenceGate", "ProjectRecord", "ProjectStore"]
