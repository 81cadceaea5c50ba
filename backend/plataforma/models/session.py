"""Session ORM - server-side authentication state keyed by the `sid` cookie.

Invariants:
    - sid is the opaque random identifier; the cookie carries it signed, the table stores it raw
    - user_id stays NULL until an auth route binds the session to a user
    - expires_at is always timezone-aware UTC; rows past it are dead and swept
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from plataforma.db.base import Base


class SessionRecord(Base):
    """One row per live browser session."""
    __tablename__ = "session"

    sid: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    __table_args__ = (
        Index("ix_session_expires_at", "expires_at"),
    )
