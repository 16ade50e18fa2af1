"""Dogs, titles, images and kennel membership."""
from __future__ import annotations

import sqlite3
from datetime import date

import structlog

from kennel_pedigree.errors import DogNotFoundError
from kennel_pedigree.models.dog import Dog, DogImage, RecordStatus, Sex, Title
from kennel_pedigree.pedigree.titles import ParsedTitle
from kennel_pedigree.store.database import KennelDatabase, utc_iso

logger = structlog.get_logger(__name__)


def _row_to_dog(row: sqlite3.Row) -> Dog:
    return Dog(
        id=row["id"],
        name=row["name"],
        nickname=row["nickname"],
        sex=Sex(row["sex"]),
        breed_id=row["breed_id"],
        birth_date=date.fromisoformat(row["birth_date"]) if row["birth_date"] else None,
        death_date=date.fromisoformat(row["death_date"]) if row["death_date"] else None,
        is_deceased=bool(row["is_deceased"]),
        color=row["color"],
        record_status=RecordStatus(row["record_status"]),
    )


class DogStore:
    def __init__(self, db: KennelDatabase) -> None:
        self.db = db

    # ----------------------------- Dogs ------------------------------

    def get_dog(self, dog_id: str, *, with_titles: bool = False) -> Dog | None:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM dogs WHERE id = ?", (dog_id,)).fetchone()
        if row is None:
            return None
        dog = _row_to_dog(row)
        if with_titles:
            dog.titles = self.get_titles(dog_id)
        return dog

    def dog_exists(self, dog_id: str, conn: sqlite3.Connection | None = None) -> bool:
        with self.db.use(conn) as c:
            row = c.execute("SELECT 1 FROM dogs WHERE id = ?", (dog_id,)).fetchone()
        return row is not None

    def create_dog(self, dog: Dog, conn: sqlite3.Connection | None = None) -> Dog:
        now = utc_iso()
        with self.db.use(conn) as c:
            c.execute(
                """
                INSERT INTO dogs (
                    id, name, nickname, sex, breed_id, birth_date, death_date,
                    is_deceased, color, record_status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    dog.id,
                    dog.name,
                    dog.nickname,
                    dog.sex.value,
                    dog.breed_id,
                    dog.birth_date.isoformat() if dog.birth_date else None,
                    dog.death_date.isoformat() if dog.death_date else None,
                    int(dog.is_deceased),
                    dog.color,
                    dog.record_status.value,
                    now,
                    now,
                ),
            )
        return dog

    def create_placeholder(
        self,
        dog_id: str,
        name: str,
        sex: Sex,
        *,
        breed_id: int = 1,
        color: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Dog:
        """Minimal record that exists only so an ancestry edge can point at it."""
        dog = Dog(
            id=dog_id,
            name=name or dog_id,
            sex=sex,
            breed_id=breed_id,
            color=color or None,
            record_status=RecordStatus.PLACEHOLDER,
        )
        self.create_dog(dog, conn)
        logger.info("dogs.placeholder_created", dog_id=dog_id, sex=sex.value)
        return dog

    def enrich_placeholder(
        self, dog_id: str, *, color: str | None = None, conn: sqlite3.Connection | None = None
    ) -> bool:
        """Fill fields a placeholder is missing. Never overwrites existing values."""
        if not color:
            return False
        with self.db.use(conn) as c:
            cur = c.execute(
                """
                UPDATE dogs SET color = ?, updated_at = ?
                WHERE id = ? AND record_status = 'PLACEHOLDER' AND (color IS NULL OR color = '')
                """,
                (color, utc_iso(), dog_id),
            )
        return cur.rowcount > 0

    def mark_complete(self, dog_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE dogs SET record_status = 'COMPLETE', updated_at = ? WHERE id = ?",
                (utc_iso(), dog_id),
            )
        if cur.rowcount == 0:
            raise DogNotFoundError(dog_id)

    def list_placeholders(self) -> list[Dog]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM dogs WHERE record_status = 'PLACEHOLDER' ORDER BY id"
            ).fetchall()
        return [_row_to_dog(r) for r in rows]

    # ----------------------------- Titles ----------------------------

    def get_titles(self, dog_id: str) -> list[Title]:
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT dog_id, title_code, title_full_name, country_code, year_earned
                FROM titles WHERE dog_id = ? ORDER BY id
                """,
                (dog_id,),
            ).fetchall()
        return [Title(**dict(r)) for r in rows]

    def add_title_if_absent(
        self, dog_id: str, title: ParsedTitle, conn: sqlite3.Connection | None = None
    ) -> bool:
        """Insert a title unless (dog, code) already exists. Returns True if created."""
        with self.db.use(conn) as c:
            exists = c.execute(
                "SELECT 1 FROM titles WHERE dog_id = ? AND title_code = ?",
                (dog_id, title.code),
            ).fetchone()
            if exists:
                return False
            c.execute(
                """
                INSERT INTO titles (dog_id, title_code, title_full_name, country_code, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (dog_id, title.code, title.full_name, title.country_code, utc_iso()),
            )
        return True

    # ----------------------------- Images ----------------------------

    def add_image(self, image: DogImage) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO dog_images (dog_id, image_url, image_public_id, is_profile, display_order)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    image.dog_id,
                    image.image_url,
                    image.image_public_id,
                    int(image.is_profile),
                    image.display_order,
                ),
            )

    def best_image(self, dog_id: str) -> DogImage | None:
        """Profile image if one is flagged, else the first by display order."""
        with self.db.connect() as conn:
            row = conn.execute(
                """
                SELECT dog_id, image_url, image_public_id, is_profile, display_order
                FROM dog_images WHERE dog_id = ?
                ORDER BY is_profile DESC, display_order ASC, id ASC
                LIMIT 1
                """,
                (dog_id,),
            ).fetchone()
        if row is None:
            return None
        return DogImage(**{**dict(row), "is_profile": bool(row["is_profile"])})

    # ----------------------------- Kennel ----------------------------

    def add_to_kennel(self, dog_id: str, *, notes: str | None = None) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO my_dogs (dog_id, notes, is_active) VALUES (?, ?, 1)
                ON CONFLICT(dog_id) DO UPDATE SET is_active = 1
                """,
                (dog_id, notes),
            )

    def remove_from_kennel(self, dog_id: str) -> None:
        with self.db.transaction() as conn:
            conn.execute("UPDATE my_dogs SET is_active = 0 WHERE dog_id = ?", (dog_id,))

    def list_kennel_dog_ids(self) -> list[str]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT dog_id FROM my_dogs WHERE is_active = 1 ORDER BY id"
            ).fetchall()
        return [r["dog_id"] for r in rows]
