# FILE: sitesmith/projects/service.py
"""
Project records and ownership checks.
"""
from __future__ import annotations

import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import sessionmaker

from sitesmith.db import utcnow
from sitesmith.projects.models import Project

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ProjectError(Exception):
    """Base exception for project operations."""
    pass


class ProjectNotFoundError(ProjectError):
    """Project does not exist."""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ProjectAccessError(ProjectError):
    """Caller does not own the project."""

    def __init__(self, project_id: str, owner_id: str):
        super().__init__(f"Project {project_id} is not owned by {owner_id}")
        self.project_id = project_id
        self.owner_id = owner_id


# =============================================================================
# PROJECT SERVICE
# =============================================================================

class ProjectService:
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def create(self, owner_id: str, name: str, project_id: Optional[str] = None) -> Project:
        if not owner_id:
            raise ValueError("owner_id is required")
        name = (name or "").strip()
        if not name:
            raise ValueError("Project name must be non-empty")

        project = Project(id=project_id or str(uuid4()), owner_id=owner_id, name=name)
        with self._sessions.begin() as db:
            db.add(project)
        logger.info(f"[projects] Created: {project.id} owner={owner_id} name={name!r}")
        return project

    def get(self, project_id: str) -> Optional[Project]:
        with self._sessions() as db:
            return db.get(Project, project_id)

    def get_owned(self, project_id: str, owner_id: str) -> Project:
        """
        Return the project if ``owner_id`` owns it.

        Raises:
            ProjectNotFoundError: no such project
            ProjectAccessError: project belongs to someone else
        """
        project = self.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        if project.owner_id != owner_id:
            raise ProjectAccessError(project_id, owner_id)
        return project

    def list_for_owner(self, owner_id: str) -> List[Project]:
        with self._sessions() as db:
            return (
                db.query(Project)
                .filter(Project.owner_id == owner_id)
                .order_by(Project.created_at.desc())
                .all()
            )

    def rename(self, project_id: str, owner_id: str, name: str) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValueError("Project name must be non-empty")
        self.get_owned(project_id, owner_id)
        with self._sessions.begin() as db:
            project = db.get(Project, project_id)
            project.name = name
            project.updated_at = utcnow()
        return project
