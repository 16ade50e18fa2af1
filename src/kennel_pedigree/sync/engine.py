"""Synchronization of local ancestry edges from the external registry.

One run: acquire a session, list dogs with both parents recorded, fetch each
dog's registry pedigree tree in turn, and fold the records into the local
store. Ancestors (placeholders when unknown) and their titles are written
before any edge, since an edge needs both ends to exist.

Only a missing session aborts a run. Everything else is tallied on
``SyncStats`` and the run moves on to the next record or target.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import structlog

from kennel_pedigree.config import Settings
from kennel_pedigree.errors import (
    KennelPedigreeError,
    NoValidSessionError,
    RegistryAccessDeniedError,
    RegistryError,
    RegistryNotFoundError,
    SessionExpiredError,
)
from kennel_pedigree.models.session import Session
from kennel_pedigree.net import AsyncRateLimiter, RateLimitConfig
from kennel_pedigree.pedigree.paths import sex_of, validate_path
from kennel_pedigree.registry.client import PedigreeSource
from kennel_pedigree.registry.models import RegistryAncestor
from kennel_pedigree.store.dogs import DogStore
from kennel_pedigree.store.relationships import RelationshipStore, SyncTarget

logger = structlog.get_logger(__name__)


class SessionProvider(Protocol):
    def get_valid_session(self, session_id: str | None = None) -> Session | None: ...

    def invalidate_session(self, session_id: str) -> bool: ...


@dataclass
class SyncStats:
    dogs_processed: int = 0
    trees_fetched: int = 0
    ancestors_created: int = 0
    ancestors_enriched: int = 0
    relationships_created: int = 0
    relationships_replaced: int = 0
    titles_created: int = 0
    not_found: int = 0
    access_denied: int = 0
    records_skipped: int = 0
    targets_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Processed {self.dogs_processed} dogs. "
            f"Fetched {self.trees_fetched} pedigree trees. "
            f"Created {self.ancestors_created} ancestors, "
            f"{self.relationships_created} relationships, "
            f"and {self.titles_created} titles. "
            f"{self.not_found} not found, {self.access_denied} access denied, "
            f"{self.records_skipped} records and {self.targets_skipped} targets skipped. "
            f"{len(self.errors)} errors."
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "dogs_processed": self.dogs_processed,
            "trees_fetched": self.trees_fetched,
            "ancestors_created": self.ancestors_created,
            "ancestors_enriched": self.ancestors_enriched,
            "relationships_created": self.relationships_created,
            "relationships_replaced": self.relationships_replaced,
            "titles_created": self.titles_created,
            "not_found": self.not_found,
            "access_denied": self.access_denied,
            "records_skipped": self.records_skipped,
            "targets_skipped": self.targets_skipped,
            "errors": list(self.errors),
        }


@dataclass
class SyncReport:
    """Outcome of one run, with the session it used."""
    stats: SyncStats
    session_id: str
    session_expires_at: datetime
    login_method: str
    session_expired: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def summary(self) -> str:
        return self.stats.summary()

    @property
    def success(self) -> bool:
        return not self.stats.errors and not self.session_expired


class PedigreeSyncEngine:
    """Imports registry pedigree trees for locally known dogs.

    Example:
        async with RegistryClient(settings) as client:
            engine = PedigreeSyncEngine(dogs, relationships, sessions, client, settings)
            report = await engine.run()
            print(report.summary)
    """

    def __init__(
        self,
        dogs: DogStore,
        relationships: RelationshipStore,
        sessions: SessionProvider,
        source: PedigreeSource,
        settings: Settings | None = None,
        limiter: AsyncRateLimiter | None = None,
    ) -> None:
        self.dogs = dogs
        self.relationships = relationships
        self.sessions = sessions
        self.source = source
        self.settings = settings or Settings()
        self.limiter = limiter or AsyncRateLimiter(
            RateLimitConfig.spacing(self.settings.request_delay)
        )

    def list_targets(self, kennel_only: bool = True) -> list[SyncTarget]:
        if kennel_only:
            return self.relationships.list_sync_targets(self.dogs.list_kennel_dog_ids())
        return self.relationships.list_sync_targets()

    async def run(
        self,
        session_id: str | None = None,
        generations: int | None = None,
        kennel_only: bool = True,
    ) -> SyncReport:
        """Run one synchronization pass.

        Args:
            session_id: Specific session to use; newest valid one when omitted
            generations: Pedigree depth to request and import
            kennel_only: Restrict targets to active kennel dogs

        Raises:
            NoValidSessionError: No active, unexpired session is available
        """
        session = self.sessions.get_valid_session(session_id)
        if session is None:
            raise NoValidSessionError(session_id)

        depth = generations or self.settings.generations
        stats = SyncStats()
        report = SyncReport(
            stats=stats,
            session_id=session.session_id,
            session_expires_at=session.expires_at,
            login_method=session.login_method.value,
        )
        targets = self.list_targets(kennel_only)
        log = logger.bind(session_id=session.session_id)
        log.info("sync.started", targets=len(targets), generations=depth)

        for index, target in enumerate(targets):
            if report.session_expired:
                stats.targets_skipped += len(targets) - index
                for remaining in targets[index:]:
                    stats.errors.append(f"Skipped {remaining.dog_id}: session expired")
                break

            stats.dogs_processed += 1
            await self.limiter.acquire()
            try:
                ancestors = await self.source.fetch_pedigree_tree(
                    session, target.sire_id, target.dam_id, depth
                )
            except SessionExpiredError as e:
                self.sessions.invalidate_session(session.session_id)
                report.session_expired = True
                stats.errors.append(f"Session expired while fetching {target.dog_id}: {e}")
                log.warning("sync.session_expired", dog_id=target.dog_id)
                continue
            except RegistryNotFoundError:
                stats.not_found += 1
                log.info("sync.tree_not_found", dog_id=target.dog_id)
                continue
            except RegistryAccessDeniedError:
                stats.access_denied += 1
                log.info("sync.tree_access_denied", dog_id=target.dog_id)
                continue
            except RegistryError as e:
                stats.errors.append(f"Failed to fetch pedigree tree for {target.dog_id}: {e}")
                log.warning("sync.target_failed", dog_id=target.dog_id, error=str(e))
                continue

            stats.trees_fetched += 1
            self.import_tree(target.dog_id, ancestors, depth, stats)

        report.finished_at = datetime.now(UTC)
        counters = stats.to_dict()
        counters["errors"] = len(stats.errors)
        log.info("sync.finished", **counters)
        return report

    def import_tree(
        self,
        dog_id: str,
        ancestors: list[RegistryAncestor],
        generations: int,
        stats: SyncStats | None = None,
    ) -> SyncStats:
        """Fold registry records into local dogs, titles and edges for ``dog_id``.

        Safe to repeat: unchanged input creates nothing on the second pass.
        """
        stats = stats if stats is not None else SyncStats()
        records: list[RegistryAncestor] = []
        for record in ancestors:
            if record.is_root:
                continue
            if not record.registry_id:
                stats.not_found += 1
                continue
            try:
                validate_path(record.path)
            except KennelPedigreeError as e:
                stats.errors.append(f"Invalid path for {record.registry_id}: {e}")
                continue
            if record.generation > generations:
                stats.records_skipped += 1
                continue
            records.append(record)

        for record in records:
            try:
                self._ensure_ancestor(record, stats)
            except (KennelPedigreeError, sqlite3.Error) as e:
                stats.errors.append(f"Error creating ancestor {record.registry_id}: {e}")
                logger.warning("sync.ancestor_failed", dog_id=record.registry_id, error=str(e))

        for record in sorted(records, key=lambda r: (r.generation, r.path)):
            try:
                self._ensure_edge(dog_id, record, stats)
            except (KennelPedigreeError, sqlite3.Error) as e:
                stats.errors.append(
                    f"Error creating relationship {dog_id} -> {record.registry_id}: {e}"
                )
                logger.warning(
                    "sync.relationship_failed",
                    descendant_id=dog_id,
                    ancestor_id=record.registry_id,
                    path=record.path,
                    error=str(e),
                )
        return stats

    def _ensure_ancestor(self, record: RegistryAncestor, stats: SyncStats) -> None:
        with self.dogs.db.transaction() as conn:
            if not self.dogs.dog_exists(record.registry_id, conn):
                self.dogs.create_placeholder(
                    record.registry_id,
                    record.name,
                    sex_of(record.path),
                    breed_id=self.settings.default_breed_id,
                    color=record.color or None,
                    conn=conn,
                )
                stats.ancestors_created += 1
            elif self.dogs.enrich_placeholder(record.registry_id, color=record.color, conn=conn):
                stats.ancestors_enriched += 1

            for title in record.parsed_titles:
                if self.dogs.add_title_if_absent(record.registry_id, title, conn):
                    stats.titles_created += 1

    def _ensure_edge(self, dog_id: str, record: RegistryAncestor, stats: SyncStats) -> None:
        with self.relationships.db.transaction() as conn:
            removed = self.relationships.remove_conflicting(
                dog_id, record.path, record.registry_id, conn
            )
            stats.relationships_replaced += removed
            _, created = self.relationships.insert_if_absent(
                dog_id, record.registry_id, record.path, conn
            )
            if created:
                stats.relationships_created += 1
