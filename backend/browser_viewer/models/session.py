"""
Browsing session model - a named grouping of commands run against the shared browser
"""

from sqlalchemy import Column, String, BigInteger, Index, Enum as SQLEnum, text
from sqlalchemy.orm import declarative_base
import uuid
import enum

Base = declarative_base()


class SessionSource(str, enum.Enum):
    VIEWER = "viewer"
    CHAT = "chat"
    CRON = "cron"


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class BrowsingSession(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    source = Column(
        SQLEnum(SessionSource, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=SessionSource.VIEWER
    )
    status = Column(
        SQLEnum(SessionStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=SessionStatus.ACTIVE
    )

    # Epoch milliseconds
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_sessions_status", "status"),
        Index("idx_sessions_created", "created_at"),
        # At most one active session per name
        Index(
            "uix_sessions_active_name",
            "name",
            unique=True,
            sqlite_where=text("status = 'active'")
        ),
    )
