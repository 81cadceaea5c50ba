"""Session Store - relational persistence for cookie-keyed sessions.

Invariants:
    - Every issued sid has a row before its cookie is sent; nothing lives only in memory
    - load() treats expired rows as absent and deletes them
    - load(touch=True) slides expires_at to now + ttl
    - All timestamps are timezone-aware UTC (SQLite hands back naive values, normalized here)

Design Decisions:
    - sid from secrets.token_urlsafe: the signed cookie proves origin, the sid proves nothing
    - SessionData tracks its own modifications so the middleware writes only when needed
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select, update

from plataforma.infrastructure.database import SchemaManager
from plataforma.models.session import SessionRecord

logger = logging.getLogger(__name__)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class SessionData:
    """Request-scoped view of a session row."""
    sid: str
    expires_at: datetime
    user_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_new: bool = False
    modified: bool = False
    destroyed: bool = False

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def bind_user(self, user_id: str) -> None:
        self.user_id = user_id
        self.modified = True

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def invalidate(self) -> None:
        """Mark for deletion; the middleware removes the row and clears the cookie."""
        self.destroyed = True


class SessionStore:
    """CRUD over the `session` table."""

    def __init__(self, schema: SchemaManager, ttl_seconds: int = 24 * 60 * 60):
        self._schema = schema
        self.ttl = timedelta(seconds=ttl_seconds)

    def _expiry(self) -> datetime:
        return datetime.now(timezone.utc) + self.ttl

    async def create(self, user_id: str | None = None) -> SessionData:
        """Persist a fresh session and return it."""
        record = SessionRecord(
            sid=secrets.token_urlsafe(32),
            user_id=user_id,
            data={},
            created_at=datetime.now(timezone.utc),
            expires_at=self._expiry(),
        )
        async with self._schema.session() as db:
            db.add(record)
            await db.commit()
        return SessionData(
            sid=record.sid,
            user_id=record.user_id,
            data={},
            created_at=record.created_at,
            expires_at=record.expires_at,
            is_new=True,
        )

    async def load(self, sid: str, *, touch: bool = True) -> SessionData | None:
        """Return the live session for sid, or None if missing or expired."""
        now = datetime.now(timezone.utc)
        async with self._schema.session() as db:
            record = await db.get(SessionRecord, sid)
            if record is None:
                return None
            if _utc(record.expires_at) <= now:
                await db.delete(record)
                await db.commit()
                return None
            expires_at = _utc(record.expires_at)
            if touch:
                expires_at = self._expiry()
                record.expires_at = expires_at
                await db.commit()
            return SessionData(
                sid=record.sid,
                user_id=record.user_id,
                data=dict(record.data or {}),
                created_at=_utc(record.created_at),
                expires_at=expires_at,
            )

    async def touch(self, sid: str) -> None:
        async with self._schema.session() as db:
            await db.execute(
                update(SessionRecord)
                .where(SessionRecord.sid == sid)
                .values(expires_at=self._expiry()),
            )
            await db.commit()

    async def save(self, session: SessionData) -> None:
        """Write user binding and payload back to the row."""
        async with self._schema.session() as db:
            await db.execute(
                update(SessionRecord)
                .where(SessionRecord.sid == session.sid)
                .values(
                    user_id=session.user_id,
                    data=session.data,
                    expires_at=self._expiry(),
                ),
            )
            await db.commit()
        session.modified = False

    async def destroy(self, sid: str) -> None:
        async with self._schema.session() as db:
            await db.execute(delete(SessionRecord).where(SessionRecord.sid == sid))
            await db.commit()

    async def purge_expired(self) -> int:
        """Delete every expired row. Returns the number removed."""
        now = datetime.now(timezone.utc)
        async with self._schema.session() as db:
            result = await db.execute(
                select(SessionRecord.sid).where(SessionRecord.expires_at <= now),
            )
            expired = list(result.scalars().all())
            if expired:
                await db.execute(
                    delete(SessionRecord).where(SessionRecord.sid.in_(expired)),
                )
                await db.commit()
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)
