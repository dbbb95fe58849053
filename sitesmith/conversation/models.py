# FILE: sitesmith/conversation/models.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index

from sitesmith.db import Base, utcnow


class ConversationMessage(Base):
    """
    One chat turn. The autoincrement id is the sequence key: ordering by id
    is chronological even when two turns share a timestamp.
    """
    __tablename__ = "conversation_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False)  # user | assistant
    content = Column(Text, nullable=False)
    build_version = Column(Integer, nullable=True)  # assistant turns only
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_conversation_project_seq", "project_id", "id"),
    )
