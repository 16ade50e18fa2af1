"""SQLite-backed storage for dogs, ancestry edges and sessions."""
from __future__ import annotations

from .database import KennelDatabase
from .dogs import DogStore
from .relationships import RelationshipStore, SyncTarget

__all__ = ["KennelDatabase", "DogStore", "RelationshipStore", "SyncTarget"]
