"""Persistence of ancestry edges.

Each edge says "ancestor A sits at path P of descendant D". A descendant has
at most one ancestor per path, and the full (descendant, ancestor, kind,
generation, path) tuple is unique, so re-imports never stack duplicates.

Writes are check-then-insert. That is safe while synchronization runs one
target at a time; concurrent writers would rely on the unique index to
reject the loser.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Iterable, Mapping

import structlog

from kennel_pedigree.errors import InvalidPathError, RelationshipConflictError
from kennel_pedigree.models.relationship import PedigreeRelationship, RelationshipKind
from kennel_pedigree.pedigree.paths import PedigreeSide, is_ancestor_path, validate_path
from kennel_pedigree.store.database import KennelDatabase, utc_iso

logger = structlog.get_logger(__name__)

_COLUMNS = "id, descendant_id, ancestor_id, relationship_type, generation, path"


def _row_to_edge(row: sqlite3.Row) -> PedigreeRelationship:
    return PedigreeRelationship(
        id=row["id"],
        descendant_id=row["descendant_id"],
        ancestor_id=row["ancestor_id"],
        relationship_type=RelationshipKind(row["relationship_type"]),
        generation=row["generation"],
        path=row["path"],
    )


@dataclass(frozen=True)
class SyncTarget:
    """A dog whose sire and dam are both recorded locally."""
    dog_id: str
    name: str
    sire_id: str
    dam_id: str


class RelationshipStore:
    def __init__(self, db: KennelDatabase) -> None:
        self.db = db

    # ---------------------------- Lookups ----------------------------

    def get_edge(
        self, descendant_id: str, path: str, conn: sqlite3.Connection | None = None
    ) -> PedigreeRelationship | None:
        validate_path(path)
        with self.db.use(conn) as c:
            row = c.execute(
                f"SELECT {_COLUMNS} FROM pedigree_relationships WHERE descendant_id = ? AND path = ?",
                (descendant_id, path),
            ).fetchone()
        return _row_to_edge(row) if row else None

    def edge_exists(
        self, edge: PedigreeRelationship, conn: sqlite3.Connection | None = None
    ) -> bool:
        with self.db.use(conn) as c:
            row = c.execute(
                """
                SELECT 1 FROM pedigree_relationships
                WHERE descendant_id = ? AND ancestor_id = ? AND relationship_type = ?
                  AND generation = ? AND path = ?
                """,
                edge.key,
            ).fetchone()
        return row is not None

    def list_for_descendant(self, descendant_id: str) -> list[PedigreeRelationship]:
        with self.db.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM pedigree_relationships
                WHERE descendant_id = ? ORDER BY generation, path
                """,
                (descendant_id,),
            ).fetchall()
        return [_row_to_edge(r) for r in rows]

    def list_offspring(self, ancestor_id: str) -> list[PedigreeRelationship]:
        """Generation-1 edges naming ``ancestor_id`` as sire or dam."""
        with self.db.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM pedigree_relationships
                WHERE ancestor_id = ? AND generation = 1 ORDER BY descendant_id
                """,
                (ancestor_id,),
            ).fetchall()
        return [_row_to_edge(r) for r in rows]

    def count(self, descendant_id: str | None = None) -> int:
        with self.db.connect() as conn:
            if descendant_id is None:
                row = conn.execute("SELECT COUNT(*) FROM pedigree_relationships").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM pedigree_relationships WHERE descendant_id = ?",
                    (descendant_id,),
                ).fetchone()
        return row[0]

    def list_sync_targets(self, dog_ids: Iterable[str] | None = None) -> list[SyncTarget]:
        """Dogs with both a generation-1 SIRE and DAM edge.

        When ``dog_ids`` is given only those dogs are considered, in that order.
        """
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT d.id AS dog_id, d.name AS name,
                       s.ancestor_id AS sire_id, m.ancestor_id AS dam_id
                FROM dogs d
                JOIN pedigree_relationships s
                  ON s.descendant_id = d.id AND s.generation = 1 AND s.relationship_type = 'SIRE'
                JOIN pedigree_relationships m
                  ON m.descendant_id = d.id AND m.generation = 1 AND m.relationship_type = 'DAM'
                ORDER BY d.id
                """
            ).fetchall()
        targets = {r["dog_id"]: SyncTarget(r["dog_id"], r["name"], r["sire_id"], r["dam_id"]) for r in rows}
        if dog_ids is None:
            return list(targets.values())
        return [targets[d] for d in dog_ids if d in targets]

    # ---------------------------- Writes -----------------------------

    def insert_if_absent(
        self,
        descendant_id: str,
        ancestor_id: str,
        path: str,
        conn: sqlite3.Connection | None = None,
    ) -> tuple[PedigreeRelationship, bool]:
        """Insert the edge unless its full uniqueness key already exists.

        Returns the edge and whether it was created.
        """
        edge = PedigreeRelationship.from_path(descendant_id, ancestor_id, path)
        with self.db.use(conn) as c:
            if self.edge_exists(edge, c):
                return edge, False
            c.execute(
                """
                INSERT INTO pedigree_relationships (
                    descendant_id, ancestor_id, relationship_type, generation, path, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (*edge.key, utc_iso()),
            )
        logger.debug(
            "relationships.created",
            descendant_id=descendant_id,
            ancestor_id=ancestor_id,
            path=path,
        )
        return edge, True

    def add_relationship(
        self, descendant_id: str, ancestor_id: str, path: str
    ) -> PedigreeRelationship:
        """Manually record a single edge.

        Re-adding the same edge is a no-op; a different ancestor in the same
        slot raises ``RelationshipConflictError``.
        """
        with self.db.transaction() as conn:
            current = self.get_edge(descendant_id, path, conn)
            if current is not None and current.ancestor_id != ancestor_id:
                raise RelationshipConflictError(descendant_id, path, current.ancestor_id)
            edge, _ = self.insert_if_absent(descendant_id, ancestor_id, path, conn)
        return edge

    def remove_conflicting(
        self,
        descendant_id: str,
        path: str,
        ancestor_id: str,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Delete an edge in this slot that names a different ancestor."""
        validate_path(path)
        with self.db.use(conn) as c:
            cur = c.execute(
                """
                DELETE FROM pedigree_relationships
                WHERE descendant_id = ? AND path = ? AND ancestor_id <> ?
                """,
                (descendant_id, path, ancestor_id),
            )
        if cur.rowcount:
            logger.info(
                "relationships.stale_removed",
                descendant_id=descendant_id,
                path=path,
                replaced_by=ancestor_id,
            )
        return cur.rowcount

    def clear_branch(
        self,
        descendant_id: str,
        side: PedigreeSide | str,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Delete every edge on one parent's line of ``descendant_id``."""
        root = PedigreeSide(side).root_path
        with self.db.use(conn) as c:
            cur = c.execute(
                "DELETE FROM pedigree_relationships WHERE descendant_id = ? AND substr(path, 1, 1) = ?",
                (descendant_id, root),
            )
        logger.info("relationships.branch_cleared", descendant_id=descendant_id, root_path=root, removed=cur.rowcount)
        return cur.rowcount

    def replace_branch(
        self,
        descendant_id: str,
        side: PedigreeSide | str,
        ancestors_by_path: Mapping[str, str],
    ) -> list[PedigreeRelationship]:
        """Clear one line and re-enter it from ``{path: ancestor_id}`` atomically."""
        side = PedigreeSide(side)
        root = side.root_path
        for path in ancestors_by_path:
            validate_path(path)
            if not (path == root or is_ancestor_path(path, root)):
                raise InvalidPathError(path, f"path is outside the {side.value}'s line")
        created: list[PedigreeRelationship] = []
        with self.db.transaction() as conn:
            self.clear_branch(descendant_id, side, conn)
            for path in sorted(ancestors_by_path, key=lambda p: (len(p), p)):
                edge, _ = self.insert_if_absent(descendant_id, ancestors_by_path[path], path, conn)
                created.append(edge)
        return created
