"""SQLite database holding dogs, titles, ancestry edges and registry sessions."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator

DEFAULT_BREEDS = (
    (1, "Norfolk Terrier", "272"),
    (2, "Jack Russell Terrier", "345"),
)


def utc_iso(dt: datetime | None = None) -> str:
    """Fixed-width ISO timestamp so stored values compare correctly as text."""
    dt = dt or datetime.now(UTC)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


class KennelDatabase:
    """Connection factory and schema owner.

    Every operation opens its own connection; ``transaction()`` groups several
    statements into one commit.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        # Enforce PRAGMAs per-connection
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self.connect() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    @contextmanager
    def use(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Join the caller's transaction if given one, otherwise open a new one."""
        if conn is not None:
            yield conn
            return
        with self.transaction() as own:
            yield own

    def _init_schema(self) -> None:
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS breeds (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    fci_number TEXT
                );

                CREATE TABLE IF NOT EXISTS dogs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    nickname TEXT,
                    sex TEXT NOT NULL CHECK (sex IN ('M', 'F')),
                    breed_id INTEGER NOT NULL REFERENCES breeds(id),
                    birth_date TEXT,
                    death_date TEXT,
                    is_deceased INTEGER NOT NULL DEFAULT 0,
                    color TEXT,
                    record_status TEXT NOT NULL DEFAULT 'COMPLETE'
                        CHECK (record_status IN ('COMPLETE', 'PLACEHOLDER')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_dogs_name ON dogs(name);
                CREATE INDEX IF NOT EXISTS idx_dogs_status ON dogs(record_status);

                CREATE TABLE IF NOT EXISTS titles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    dog_id TEXT NOT NULL REFERENCES dogs(id) ON DELETE CASCADE,
                    title_code TEXT NOT NULL,
                    title_full_name TEXT,
                    country_code TEXT,
                    year_earned INTEGER,
                    created_at TEXT NOT NULL,
                    UNIQUE (dog_id, title_code)
                );

                CREATE TABLE IF NOT EXISTS dog_images (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    dog_id TEXT NOT NULL REFERENCES dogs(id) ON DELETE CASCADE,
                    image_url TEXT,
                    image_public_id TEXT,
                    is_profile INTEGER NOT NULL DEFAULT 0,
                    display_order INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_dog_images_dog ON dog_images(dog_id);

                CREATE TABLE IF NOT EXISTS my_dogs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    dog_id TEXT NOT NULL UNIQUE REFERENCES dogs(id) ON DELETE CASCADE,
                    acquisition_date TEXT,
                    notes TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1
                );

                -- path: '0' = father, '1' = mother, read from the descendant
                CREATE TABLE IF NOT EXISTS pedigree_relationships (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    descendant_id TEXT NOT NULL REFERENCES dogs(id) ON DELETE CASCADE,
                    ancestor_id TEXT NOT NULL REFERENCES dogs(id) ON DELETE CASCADE,
                    relationship_type TEXT NOT NULL CHECK (relationship_type IN ('SIRE', 'DAM')),
                    generation INTEGER NOT NULL CHECK (generation >= 1),
                    path TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    CONSTRAINT path_binary_format CHECK (path <> '' AND path NOT GLOB '*[^01]*'),
                    CONSTRAINT path_generation_match CHECK (length(path) = generation),
                    CONSTRAINT path_kind_match CHECK (
                        relationship_type = CASE substr(path, -1) WHEN '0' THEN 'SIRE' ELSE 'DAM' END
                    ),
                    CONSTRAINT unique_pedigree_relationship
                        UNIQUE (descendant_id, ancestor_id, relationship_type, generation, path)
                );
                CREATE UNIQUE INDEX IF NOT EXISTS uq_pedigree_slot
                    ON pedigree_relationships(descendant_id, path);
                CREATE INDEX IF NOT EXISTS idx_pedigree_ancestor ON pedigree_relationships(ancestor_id);
                CREATE INDEX IF NOT EXISTS idx_pedigree_generation ON pedigree_relationships(generation);

                CREATE TABLE IF NOT EXISTS scraper_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL UNIQUE,
                    cookies TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    login_method TEXT NOT NULL CHECK (login_method IN ('CAS', 'STANDARD'))
                );
                CREATE INDEX IF NOT EXISTS idx_scraper_sessions_active_expires
                    ON scraper_sessions(is_active, expires_at);
                """
            )
            conn.executemany(
                "INSERT OR IGNORE INTO breeds (id, name, fci_number) VALUES (?, ?, ?)",
                DEFAULT_BREEDS,
            )
            conn.commit()
