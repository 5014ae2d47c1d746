"""
BlocVibe sync protocol.

- debounce.py: single-slot trailing debouncer over an injectable scheduler
- surface.py: protocols for the rendering surface and notifications
- protocol.py: SyncSession, the serialized state machine over the tree
"""

from blocvibe.sync.debounce import Debouncer, Scheduler, ThreadingScheduler
from blocvibe.sync.surface import LoggingNotifier, Notifier, RenderingSurface
from blocvibe.sync.protocol import RenderMode, SyncResult, SyncSession, SyncState

__all__ = [
    "Debouncer",
    "LoggingNotifier",
    "Notifier",
    "RenderMode",
    "RenderingSurface",
    "Scheduler",
    "SyncResult",
    "SyncSession",
    "SyncState",
    "ThreadingScheduler",
]
