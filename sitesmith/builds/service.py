# FILE: sitesmith/builds/service.py
"""
Build ledger.

Append-only store of build versions per project:
- Versions start at 1 and increase by exactly one per append
- Rows are never updated or deleted
- A version collision aborts the append (VersionConflictError); it is a
  concurrency-control defect, since callers append only while holding the
  project lock
- A retried append carrying the same operation_id returns the build the
  first attempt created instead of inserting another version
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from sitesmith.builds.models import Build

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class BuildError(Exception):
    """Base exception for build ledger operations."""
    pass


class BuildNotFoundError(BuildError):
    """No build exists for the requested project/version."""

    def __init__(self, project_id: str, version: Optional[int] = None):
        if version is None:
            message = f"No builds found for project {project_id}"
        else:
            message = f"Build version {version} not found for project {project_id}"
        super().__init__(message)
        self.project_id = project_id
        self.version = version


class VersionConflictError(BuildError):
    """Two appends observed the same next version."""

    def __init__(self, project_id: str, version: int):
        super().__init__(
            f"Build version {version} already exists for project {project_id}; "
            "concurrent append detected"
        )
        self.project_id = project_id
        self.version = version


@dataclass(frozen=True)
class BuildSummary:
    version: int
    summary: str
    prompt: str
    file_count: int
    created_at: datetime


# =============================================================================
# BUILD LEDGER
# =============================================================================

class BuildLedger:
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def append(
        self,
        project_id: str,
        files: Dict[str, str],
        summary: str,
        prompt: str = "",
        preview_html: Optional[str] = None,
        operation_id: Optional[str] = None,
        base_version: Optional[int] = None,
    ) -> Build:
        """
        Store a new build as version max(version) + 1.

        Files with blank content are stored unchanged; the packager drops
        them at download time.

        Raises:
            VersionConflictError: another build took the version first
        """
        if not isinstance(files, dict):
            raise ValueError("files must be a mapping of path -> content")

        if operation_id:
            existing = self.get_by_operation(project_id, operation_id)
            if existing is not None:
                logger.info(
                    f"[builds] Replayed append: project={project_id} operation={operation_id} "
                    f"-> v{existing.version}"
                )
                return existing

        db = self._sessions()
        try:
            current = (
                db.query(func.max(Build.version))
                .filter(Build.project_id == project_id)
                .scalar()
            )
            version = (current or 0) + 1

            build = Build(
                project_id=project_id,
                version=version,
                prompt=prompt or "",
                files=dict(files),
                summary=summary or "",
                preview_html=preview_html,
                operation_id=operation_id or None,
                base_version=base_version,
            )
            db.add(build)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if operation_id:
                replay = self.get_by_operation(project_id, operation_id)
                if replay is not None:
                    return replay
            logger.error(f"[builds] Version collision: project={project_id} v{version}: {e}")
            raise VersionConflictError(project_id, version) from e
        finally:
            db.close()

        logger.info(
            f"[builds] Appended: project={project_id} v{build.version} files={len(build.files)}"
        )
        return build

    def get_by_operation(self, project_id: str, operation_id: str) -> Optional[Build]:
        """The build a previous attempt with this operation_id stored, if any."""
        with self._sessions() as db:
            return (
                db.query(Build)
                .filter(Build.project_id == project_id, Build.operation_id == operation_id)
                .first()
            )

    def get_by_version(self, project_id: str, version: int) -> Optional[Build]:
        with self._sessions() as db:
            return (
                db.query(Build)
                .filter(Build.project_id == project_id, Build.version == version)
                .first()
            )

    def get_latest(self, project_id: str) -> Optional[Build]:
        with self._sessions() as db:
            return (
                db.query(Build)
                .filter(Build.project_id == project_id)
                .order_by(Build.version.desc())
                .first()
            )

    def resolve(self, project_id: str, version: Optional[int] = None) -> Build:
        """get_by_version when a version is given, else get_latest; raises when missing."""
        build = self.get_by_version(project_id, version) if version is not None else self.get_latest(project_id)
        if build is None:
            raise BuildNotFoundError(project_id, version)
        return build

    def list_versions(self, project_id: str) -> List[BuildSummary]:
        """Version history without file bodies, newest first."""
        with self._sessions() as db:
            rows = (
                db.query(Build)
                .filter(Build.project_id == project_id)
                .order_by(Build.version.desc())
                .all()
            )
            return [
                BuildSummary(
                    version=b.version,
                    summary=b.summary,
                    prompt=b.prompt,
                    file_count=len(b.files or {}),
                    created_at=b.created_at,
                )
                for b in rows
            ]
