# FILE: sitesmith/builds/models.py
"""
Build versions.

Rows are immutable: the ledger only inserts. (project_id, version) is
unique so a second writer racing for the same version fails loudly instead
of overwriting; (project_id, operation_id) makes retried appends idempotent.
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, JSON, UniqueConstraint

from sitesmith.db import Base, utcnow


class Build(Base):
    __tablename__ = "builds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    prompt = Column(Text, nullable=False, default="")
    files = Column(JSON, nullable=False, default=dict)  # path -> text content
    summary = Column(Text, nullable=False, default="")
    preview_html = Column(Text, nullable=True)

    # Edits only: the version this build was derived from
    base_version = Column(Integer, nullable=True)

    # Client-supplied key for retried operations
    operation_id = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("project_id", "version", name="uq_builds_project_version"),
        UniqueConstraint("project_id", "operation_id", name="uq_builds_project_operation"),
    )
