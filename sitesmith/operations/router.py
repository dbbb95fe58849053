# FILE: sitesmith/operations/router.py
"""
Operations Router - HTTP API Endpoints

- POST /generate - Generate a site from a prompt (new build version)
- POST /edit - Edit a build from a prompt (new build version)
- GET /download/{project_id} - Zip of a build (latest unless ?version=)

Download does not take the project lock; builds are immutable.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from sitesmith.auth import Principal, require_principal
from sitesmith.errors import ErrorType, error_body, http_error
from sitesmith.operations.engine import BuildOperations
from sitesmith.operations.schemas import EditRequest, EditResponse, GenerateRequest, GenerateResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["operations"])


def get_operations(request: Request) -> BuildOperations:
    return request.app.state.operations


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/generate", response_model=GenerateResponse)
async def generate_site(
    body: GenerateRequest,
    principal: Principal = Depends(require_principal),
    operations: BuildOperations = Depends(get_operations),
):
    logger.info(f"[ops] generate requested: project={body.project_id} owner={principal.owner_id}")
    try:
        outcome = await operations.generate(principal.owner_id, body)
    except Exception as e:
        raise http_error(e) from e

    build = outcome.build
    return GenerateResponse(
        project_id=build.project_id,
        version=build.version,
        files=build.files,
        summary=build.summary,
        preview_html=build.preview_html,
        created_at=build.created_at,
    )


@router.post("/edit", response_model=EditResponse)
async def edit_site(
    body: EditRequest,
    principal: Principal = Depends(require_principal),
    operations: BuildOperations = Depends(get_operations),
):
    logger.info(
        f"[ops] edit requested: project={body.project_id} base=v{body.base_version} owner={principal.owner_id}"
    )
    try:
        outcome = await operations.edit(principal.owner_id, body)
    except Exception as e:
        raise http_error(e) from e

    build, result = outcome.build, outcome.result
    return EditResponse(
        project_id=build.project_id,
        version=build.version,
        files=build.files,
        summary=build.summary,
        preview_html=build.preview_html,
        created_at=build.created_at,
        base_version=result.base_version,
        files_changed=result.files_changed,
        patches=result.patches,
    )


@router.get("/download/{project_id}")
def download_build(
    project_id: UUID,
    request: Request,
    version: Optional[int] = Query(None, ge=1),
    principal: Principal = Depends(require_principal),
):
    state = request.app.state
    try:
        state.projects.get_owned(str(project_id), principal.owner_id)
        build = state.builds.resolve(str(project_id), version)
    except Exception as e:
        raise http_error(e) from e

    if not build.files:
        raise HTTPException(status_code=404, detail=error_body(ErrorType.NOT_FOUND, "Build has no files"))

    packager = state.packager
    filename = packager.archive_name(build)
    return StreamingResponse(
        packager.stream(build),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
