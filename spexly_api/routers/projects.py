import logging

from fastapi import APIRouter, Depends

from spexly_api.models.project import (
    CanvasSaveRequest,
    CanvasSaveResponse,
    ProjectNameRequest,
    ProjectResponse,
)
from spexly_api.routers.deps import load_owned_project, require_user_id
from spexly_api.services import project_store
from spexly_api.services.canvas_validation import validate_canvas_data, validate_project_name
from spexly_api.services.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _checked_name(name: object) -> str:
    result = validate_project_name(name)
    if not result.valid:
        raise ValidationError(result.error or "Invalid project name")
    return result.sanitized or ""


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    request: ProjectNameRequest,
    user_id: str = Depends(require_user_id),
) -> ProjectResponse:
    name = _checked_name(request.name) if request.name is not None else None
    project = await project_store.create_project(user_id, name)
    return ProjectResponse(**project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, user_id: str = Depends(require_user_id)) -> ProjectResponse:
    project = await load_owned_project(project_id, user_id)
    return ProjectResponse(**project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def rename_project(
    project_id: str,
    request: ProjectNameRequest,
    user_id: str = Depends(require_user_id),
) -> ProjectResponse:
    name = _checked_name(request.name)
    project = await load_owned_project(project_id, user_id)
    await project_store.update_project(project_id, {"name": name})
    return ProjectResponse(**{**project, "name": name})


@router.put("/{project_id}/canvas", response_model=CanvasSaveResponse)
async def save_canvas(
    project_id: str,
    request: CanvasSaveRequest,
    user_id: str = Depends(require_user_id),
) -> CanvasSaveResponse:
    result = validate_canvas_data(request.nodes, request.edges)
    if not result.valid:
        raise ValidationError(result.error or "Invalid canvas data")

    await load_owned_project(project_id, user_id)
    await project_store.update_canvas_data(project_id, result.sanitized_nodes, result.sanitized_edges)
    logger.info(
        "Saved canvas for project %s: %d nodes, %d edges",
        project_id, len(result.sanitized_nodes), len(result.sanitized_edges),
    )
    return CanvasSaveResponse(nodes=len(result.sanitized_nodes), edges=len(result.sanitized_edges))
