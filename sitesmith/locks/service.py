# FILE: sitesmith/locks/service.py
"""
Per-project build lock.

The lock is the build_status column of the project row. Acquisition is one
conditional UPDATE:

    UPDATE projects
       SET build_status='processing', locked_by=:owner, locked_at=:now
     WHERE id=:project_id
       AND (build_status <> 'processing' OR locked_at < :stale_cutoff)

and succeeds only when exactly one row was affected. There is no separate
read-then-write, so two processes racing for the same project cannot both
win.

Infrastructure failures (database unreachable, missing columns) are governed
by LockPolicy.fail_open. With fail_open=False (default) they raise
LockUnavailableError. With fail_open=True the acquire is logged and treated
as granted, which keeps the service available but gives up mutual
exclusion for that call.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

from sqlalchemy import or_, and_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sitesmith.db import utcnow
from sitesmith.projects.models import Project, BUILD_STATUS_IDLE, BUILD_STATUS_PROCESSING
from sitesmith.projects.service import ProjectNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LockError(Exception):
    """Base exception for lock operations."""
    pass


class ProjectLockedError(LockError):
    """Another operation currently holds the project lock. Retryable."""

    def __init__(self, project_id: str):
        super().__init__(
            f"Project {project_id} is currently being processed. "
            "Please wait for the current operation to complete."
        )
        self.project_id = project_id


class LockUnavailableError(LockError):
    """The lock row could not be evaluated (storage or schema failure)."""
    pass


# =============================================================================
# POLICY / STATUS
# =============================================================================

@dataclass(frozen=True)
class LockPolicy:
    fail_open: bool = False
    # Locks older than this are considered orphaned and may be taken over.
    # None disables the override.
    stale_after_seconds: Optional[int] = None


@dataclass(frozen=True)
class LockStatus:
    project_id: str
    build_status: str
    locked_by: Optional[str]
    locked_at: Optional[datetime]

    @property
    def locked(self) -> bool:
        return self.build_status == BUILD_STATUS_PROCESSING


@dataclass(frozen=True)
class LockGrant:
    """Returned by held(); degraded means the grant came from fail-open."""
    project_id: str
    owner_id: str
    degraded: bool = False


# =============================================================================
# LOCK MANAGER
# =============================================================================

class LockManager:
    def __init__(self, session_factory: sessionmaker, policy: Optional[LockPolicy] = None):
        self._sessions = session_factory
        self.policy = policy or LockPolicy()

    def _try_acquire(self, project_id: str, owner_id: str) -> bool:
        now = utcnow()
        claimable = Project.build_status != BUILD_STATUS_PROCESSING
        if self.policy.stale_after_seconds is not None:
            cutoff = now - timedelta(seconds=self.policy.stale_after_seconds)
            claimable = or_(
                claimable,
                and_(Project.locked_at.isnot(None), Project.locked_at < cutoff),
            )

        stmt = (
            update(Project)
            .where(Project.id == project_id, claimable)
            .values(
                build_status=BUILD_STATUS_PROCESSING,
                locked_by=owner_id,
                locked_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        with self._sessions.begin() as db:
            # A stale holder is reported before the update overwrites it
            previous = None
            if self.policy.stale_after_seconds is not None:
                previous = db.query(Project.build_status, Project.locked_by, Project.locked_at).filter(
                    Project.id == project_id
                ).first()
            result = db.execute(stmt)
            acquired = result.rowcount == 1

            if not acquired:
                exists = db.query(Project.id).filter(Project.id == project_id).first()
                if exists is None:
                    raise ProjectNotFoundError(project_id)
                return False

        if previous is not None and previous.build_status == BUILD_STATUS_PROCESSING:
            logger.warning(
                f"[lock] Took over stale lock on {project_id} "
                f"(held by {previous.locked_by} since {previous.locked_at})"
            )
        return True

    def _acquire(self, project_id: str, owner_id: str) -> Optional[LockGrant]:
        if not owner_id:
            raise ValueError("owner_id is required to acquire a project lock")

        try:
            acquired = self._try_acquire(project_id, owner_id)
        except SQLAlchemyError as e:
            if self.policy.fail_open:
                logger.warning(
                    f"[lock] Could not evaluate lock for {project_id}: {e}. "
                    "fail_open is enabled, proceeding WITHOUT mutual exclusion."
                )
                return LockGrant(project_id=project_id, owner_id=owner_id, degraded=True)
            logger.error(f"[lock] Could not evaluate lock for {project_id}: {e}")
            raise LockUnavailableError(f"Lock storage unavailable for project {project_id}") from e

        if not acquired:
            logger.info(f"[lock] Busy: project={project_id} requested_by={owner_id}")
            return None
        logger.info(f"[lock] Acquired: project={project_id} owner={owner_id}")
        return LockGrant(project_id=project_id, owner_id=owner_id)

    def acquire(self, project_id: str, owner_id: str) -> bool:
        """
        Try to take the lock for ``owner_id``.

        Returns False only when the project is already processing. Calling
        again as the same owner while holding the lock also returns False.

        Raises:
            ValueError: owner_id is empty
            ProjectNotFoundError: no such project
            LockUnavailableError: storage failure and policy.fail_open is False
        """
        return self._acquire(project_id, owner_id) is not None

    def release(self, project_id: str) -> None:
        """Reset the project to idle. Unconditional; safe to call on an idle project."""
        stmt = (
            update(Project)
            .where(Project.id == project_id)
            .values(build_status=BUILD_STATUS_IDLE, locked_by=None, locked_at=None)
            .execution_options(synchronize_session=False)
        )
        with self._sessions.begin() as db:
            db.execute(stmt)
        logger.info(f"[lock] Released: project={project_id}")

    def force_release(self, project_id: str) -> LockStatus:
        """Manual recovery for an orphaned lock. Returns the status before release."""
        before = self.status(project_id)
        self.release(project_id)
        if before.locked:
            logger.warning(
                f"[lock] Force-released {project_id} (was held by {before.locked_by} since {before.locked_at})"
            )
        return before

    def status(self, project_id: str) -> LockStatus:
        with self._sessions() as db:
            row = db.query(Project.build_status, Project.locked_by, Project.locked_at).filter(
                Project.id == project_id
            ).first()
        if row is None:
            raise ProjectNotFoundError(project_id)
        return LockStatus(
            project_id=project_id,
            build_status=row.build_status,
            locked_by=row.locked_by,
            locked_at=row.locked_at,
        )

    def list_locked(self, older_than_seconds: Optional[int] = None) -> List[LockStatus]:
        """Projects currently processing, oldest lock first."""
        with self._sessions() as db:
            query = db.query(Project.id, Project.build_status, Project.locked_by, Project.locked_at).filter(
                Project.build_status == BUILD_STATUS_PROCESSING
            )
            if older_than_seconds is not None:
                cutoff = utcnow() - timedelta(seconds=older_than_seconds)
                query = query.filter(Project.locked_at < cutoff)
            rows = query.order_by(Project.locked_at.asc()).all()
        return [
            LockStatus(
                project_id=row.id,
                build_status=row.build_status,
                locked_by=row.locked_by,
                locked_at=row.locked_at,
            )
            for row in rows
        ]

    @contextmanager
    def held(self, project_id: str, owner_id: str) -> Iterator[LockGrant]:
        """
        Scoped acquisition. The lock is released on every exit path,
        including exceptions and task cancellation.

        Raises:
            ProjectLockedError: the project is already processing
        """
        grant = self._acquire(project_id, owner_id)
        if grant is None:
            raise ProjectLockedError(project_id)
        try:
            yield grant
        finally:
            if grant.degraded:
                self._release_degraded(project_id)
            else:
                self.release(project_id)

    def _release_degraded(self, project_id: str) -> None:
        # Storage was already unreachable at acquire time; fail_open covers release too
        try:
            self.release(project_id)
        except SQLAlchemyError as e:
            logger.warning(f"[lock] Could not release {project_id} after fail-open grant: {e}")
