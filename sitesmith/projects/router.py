# file: sitesmith/projects/router.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request

from sitesmith.auth import Principal, require_principal
from sitesmith.conversation.service import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_ENTRIES
from sitesmith.errors import http_error
from sitesmith.projects import schemas

router = APIRouter(
    prefix="/projects",
    tags=["projects"],
)


def _owned(request: Request, project_id: UUID, principal: Principal):
    try:
        return request.app.state.projects.get_owned(str(project_id), principal.owner_id)
    except Exception as e:
        raise http_error(e) from e


# ============== PROJECTS ==============

@router.post("", response_model=schemas.ProjectOut, status_code=201)
def create_project(
    data: schemas.ProjectCreate,
    request: Request,
    principal: Principal = Depends(require_principal),
):
    try:
        return request.app.state.projects.create(principal.owner_id, data.name)
    except Exception as e:
        raise http_error(e) from e


@router.get("", response_model=List[schemas.ProjectOut])
def list_projects(request: Request, principal: Principal = Depends(require_principal)):
    return request.app.state.projects.list_for_owner(principal.owner_id)


@router.get("/{project_id}", response_model=schemas.ProjectOut)
def get_project(project_id: UUID, request: Request, principal: Principal = Depends(require_principal)):
    return _owned(request, project_id, principal)


@router.patch("/{project_id}", response_model=schemas.ProjectOut)
def update_project(
    project_id: UUID,
    data: schemas.ProjectUpdate,
    request: Request,
    principal: Principal = Depends(require_principal),
):
    try:
        return request.app.state.projects.rename(str(project_id), principal.owner_id, data.name)
    except Exception as e:
        raise http_error(e) from e


# ============== LOCK ==============

def _lock_out(status) -> schemas.LockStatusOut:
    return schemas.LockStatusOut(
        project_id=status.project_id,
        build_status=status.build_status,
        locked=status.locked,
        locked_by=status.locked_by,
        locked_at=status.locked_at,
    )


@router.get("/{project_id}/lock", response_model=schemas.LockStatusOut)
def get_lock_status(project_id: UUID, request: Request, principal: Principal = Depends(require_principal)):
    _owned(request, project_id, principal)
    return _lock_out(request.app.state.locks.status(str(project_id)))


@router.post("/{project_id}/unlock", response_model=schemas.LockStatusOut)
def force_unlock(project_id: UUID, request: Request, principal: Principal = Depends(require_principal)):
    """Manual recovery for a project stuck in processing. Returns the state before the release."""
    _owned(request, project_id, principal)
    try:
        before = request.app.state.locks.force_release(str(project_id))
    except Exception as e:
        raise http_error(e) from e
    return _lock_out(before)


# ============== BUILDS ==============

@router.get("/{project_id}/builds", response_model=List[schemas.BuildSummaryOut])
def list_builds(project_id: UUID, request: Request, principal: Principal = Depends(require_principal)):
    _owned(request, project_id, principal)
    return request.app.state.builds.list_versions(str(project_id))


@router.get("/{project_id}/builds/{version}", response_model=schemas.BuildOut)
def get_build(
    project_id: UUID,
    request: Request,
    version: int = Path(..., ge=1),
    principal: Principal = Depends(require_principal),
):
    _owned(request, project_id, principal)
    try:
        return request.app.state.builds.resolve(str(project_id), version)
    except Exception as e:
        raise http_error(e) from e


# ============== MESSAGES ==============

@router.get("/{project_id}/messages", response_model=List[schemas.MessageOut])
def list_messages(
    project_id: UUID,
    request: Request,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_ENTRIES),
    principal: Principal = Depends(require_principal),
):
    _owned(request, project_id, principal)
    return request.app.state.conversation.load_recent(str(project_id), limit)
