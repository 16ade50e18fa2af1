"""Registry sessions stored in the local database."""
from __future__ import annotations

import sqlite3
import uuid
from datetime import UTC, datetime, timedelta

import structlog

from kennel_pedigree.models.session import LoginMethod, Session
from kennel_pedigree.store.database import KennelDatabase, utc_iso

logger = structlog.get_logger(__name__)

DEFAULT_TTL_MINUTES = 30

_COLUMNS = "session_id, cookies, created_at, expires_at, is_active, login_method"


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        session_id=row["session_id"],
        cookies=row["cookies"],
        created_at=datetime.fromisoformat(row["created_at"]),
        expires_at=datetime.fromisoformat(row["expires_at"]),
        is_active=bool(row["is_active"]),
        login_method=LoginMethod(row["login_method"]),
    )


class SessionManager:
    """Hands out valid sessions and retires expired or rejected ones."""

    def __init__(self, db: KennelDatabase, ttl_minutes: int = DEFAULT_TTL_MINUTES) -> None:
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes)

    def get_valid_session(self, session_id: str | None = None) -> Session | None:
        """Active, unexpired session by id, or the newest one when no id is given."""
        now = utc_iso()
        with self.db.connect() as conn:
            if session_id:
                row = conn.execute(
                    f"""
                    SELECT {_COLUMNS} FROM scraper_sessions
                    WHERE session_id = ? AND is_active = 1 AND expires_at > ?
                    """,
                    (session_id, now),
                ).fetchone()
            else:
                row = conn.execute(
                    f"""
                    SELECT {_COLUMNS} FROM scraper_sessions
                    WHERE is_active = 1 AND expires_at > ?
                    ORDER BY created_at DESC, id DESC LIMIT 1
                    """,
                    (now,),
                ).fetchone()
        return _row_to_session(row) if row else None

    def save_session(
        self,
        cookies: str,
        login_method: LoginMethod | str,
        ttl: timedelta | None = None,
    ) -> Session:
        created = datetime.now(UTC)
        session = Session(
            session_id=str(uuid.uuid4()),
            cookies=cookies,
            created_at=created,
            expires_at=created + (ttl if ttl is not None else self.ttl),
            login_method=LoginMethod(login_method),
        )
        with self.db.transaction() as conn:
            conn.execute(
                f"INSERT INTO scraper_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, 1, ?)",
                (
                    session.session_id,
                    session.cookies,
                    utc_iso(session.created_at),
                    utc_iso(session.expires_at),
                    session.login_method.value,
                ),
            )
        logger.info(
            "sessions.created",
            session_id=session.session_id,
            login_method=session.login_method.value,
            expires_at=session.expires_at.isoformat(),
        )
        return session

    def invalidate_session(self, session_id: str) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE scraper_sessions SET is_active = 0 WHERE session_id = ? AND is_active = 1",
                (session_id,),
            )
        if cur.rowcount:
            logger.info("sessions.invalidated", session_id=session_id)
        return cur.rowcount > 0

    def invalidate_expired_sessions(self) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE scraper_sessions SET is_active = 0 WHERE is_active = 1 AND expires_at <= ?",
                (utc_iso(),),
            )
        logger.info("sessions.expired_invalidated", count=cur.rowcount)
        return cur.rowcount

    def list_sessions(self, *, active_only: bool = False) -> list[Session]:
        sql = f"SELECT {_COLUMNS} FROM scraper_sessions"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at DESC, id DESC"
        with self.db.connect() as conn:
            rows = conn.execute(sql).fetchall()
        return [_row_to_session(r) for r in rows]
