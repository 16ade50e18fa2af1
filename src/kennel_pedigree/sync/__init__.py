"""Registry-to-local pedigree synchronization."""
from __future__ import annotations

from .engine import PedigreeSyncEngine, SessionProvider, SyncReport, SyncStats

__all__ = ["PedigreeSyncEngine", "SessionProvider", "SyncReport", "SyncStats"]
