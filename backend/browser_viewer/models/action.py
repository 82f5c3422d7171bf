"""
Action model - one recorded command invocation and its eventual result
"""

from sqlalchemy import Column, String, Text, BigInteger, ForeignKey, Index
import uuid

from browser_viewer.models.session import Base


class Action(Base):
    __tablename__ = "actions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False
    )

    command = Column(Text, nullable=False)

    # Filled in once the command has finished
    result = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    screenshot_path = Column(String(512), nullable=True)  # relative to the screenshots root
    url = Column(Text, nullable=True)
    page_title = Column(Text, nullable=True)

    timestamp = Column(BigInteger, nullable=False)  # epoch ms, replay order

    __table_args__ = (
        Index("idx_actions_session", "session_id"),
        Index("idx_actions_timestamp", "timestamp"),
    )
