from fastapi import Header

from spexly_api.services import project_store
from spexly_api.services.canvas_validation import validate_project_id
from spexly_api.services.errors import AuthenticationError, NotFoundError, ValidationError


async def require_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity as forwarded by the auth proxy in front of this API."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthenticationError()
    return user_id


async def load_owned_project(project_id: str, user_id: str) -> dict:
    checked = validate_project_id(project_id)
    if not checked.valid:
        raise ValidationError(checked.error or "Invalid project ID format")

    project = await project_store.get_project(project_id)
    # Another user's project is reported as missing.
    if project is None or project.get("user_id") != user_id:
        raise NotFoundError("Project")
    return project
