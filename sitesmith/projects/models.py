# FILE: sitesmith/projects/models.py
"""
Project record.

The build_status / locked_by / locked_at columns form the project lock and
are written only by sitesmith.locks.service.LockManager.
"""
from sqlalchemy import Column, String, DateTime, Index

from sitesmith.db import Base, utcnow

BUILD_STATUS_IDLE = "idle"
BUILD_STATUS_PROCESSING = "processing"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True)  # UUID
    owner_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # Lock state
    build_status = Column(String(20), default=BUILD_STATUS_IDLE, nullable=False)
    locked_by = Column(String(255), nullable=True)
    locked_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_projects_build_status", "build_status"),
    )
