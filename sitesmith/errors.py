# FILE: sitesmith/errors.py
"""
Error taxonomy and HTTP mapping.

Every failure that reaches a router maps to exactly one ErrorType. Routers
call http_error() and raise the returned HTTPException; the detail body is
always {"error": <message>, "code": <ErrorType>} plus extra fields where a
category carries them (pipeline errors).
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from sitesmith.builds.service import BuildNotFoundError, VersionConflictError
from sitesmith.locks.service import LockUnavailableError, ProjectLockedError
from sitesmith.projects.service import ProjectAccessError, ProjectNotFoundError

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FORBIDDEN = "FORBIDDEN"
    PROJECT_LOCKED = "PROJECT_LOCKED"
    NOT_FOUND = "NOT_FOUND"
    PIPELINE_FAILED = "PIPELINE_FAILED"
    TIMEOUT = "TIMEOUT"
    CONFLICT_ERROR = "CONFLICT_ERROR"
    INFRASTRUCTURE_ERROR = "INFRASTRUCTURE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PipelineFailedError(Exception):
    """The orchestrator returned success=False; no build was stored."""

    def __init__(self, result):
        self.result = result
        message = "; ".join(result.errors) or "Pipeline failed"
        super().__init__(message)

    @property
    def timed_out(self) -> bool:
        return bool(self.result.timed_out)


def error_body(code: ErrorType, message: str, **extra: Any) -> Dict[str, Any]:
    body = {"error": message, "code": code.value}
    body.update(extra)
    return body


def http_error(exc: Exception) -> HTTPException:
    """Translate a service exception into the HTTPException a router should raise."""
    if isinstance(exc, ValueError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, error_body(ErrorType.VALIDATION_ERROR, str(exc)))
    if isinstance(exc, ProjectAccessError):
        return HTTPException(status.HTTP_403_FORBIDDEN, error_body(ErrorType.FORBIDDEN, "Project not owned by caller"))
    if isinstance(exc, (ProjectNotFoundError, BuildNotFoundError)):
        return HTTPException(status.HTTP_404_NOT_FOUND, error_body(ErrorType.NOT_FOUND, str(exc)))
    if isinstance(exc, ProjectLockedError):
        return HTTPException(
            status.HTTP_409_CONFLICT,
            error_body(ErrorType.PROJECT_LOCKED, str(exc), retryable=True),
            headers={"Retry-After": "5"},
        )
    if isinstance(exc, VersionConflictError):
        return HTTPException(status.HTTP_409_CONFLICT, error_body(ErrorType.CONFLICT_ERROR, str(exc)))
    if isinstance(exc, PipelineFailedError):
        if exc.timed_out:
            return HTTPException(
                status.HTTP_504_GATEWAY_TIMEOUT,
                error_body(ErrorType.TIMEOUT, "Pipeline timed out", errors=exc.result.errors),
            )
        return HTTPException(
            status.HTTP_502_BAD_GATEWAY,
            error_body(ErrorType.PIPELINE_FAILED, "Pipeline failed", errors=exc.result.errors),
        )
    if isinstance(exc, (LockUnavailableError, SQLAlchemyError)):
        logger.error(f"[errors] Infrastructure failure: {exc}")
        return HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            error_body(ErrorType.INFRASTRUCTURE_ERROR, "Storage unavailable, please retry"),
        )
    logger.error(f"[errors] Unhandled {type(exc).__name__}: {exc}")
    return HTTPException(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_body(ErrorType.INTERNAL_ERROR, f"Internal error: {exc}"),
    )
