# FILE: sitesmith/locks/__init__.py
"""Per-project build lock (see service.py)."""

from .service import (
    LockManager,
    LockPolicy,
    LockStatus,
    LockGrant,
    LockError,
    ProjectLockedError,
    LockUnavailableError,
)

__all__ = [
    "LockManager",
    "LockPolicy",
    "LockStatus",
    "LockGrant",
    "LockError",
    "ProjectLockedError",
    "LockUnavailableError",
]
