"""Project records (owner, name, canvas graph) in Firestore."""

import asyncio
import logging
import uuid

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from spexly_api.config import settings
from spexly_api.services.errors import DatabaseError, log_error
from spexly_api.services.firestore_client import get_client

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Untitled Project"


def _projects() -> firestore.CollectionReference:
    return get_client().collection(settings.FIRESTORE_PROJECTS_COLLECTION)


async def get_project(project_id: str) -> dict | None:
    """Return ``{id, user_id, name, canvas_data, ...}`` or ``None`` if absent."""
    try:
        doc = await asyncio.to_thread(lambda: _projects().document(project_id).get())
    except GoogleAPICallError as exc:
        log_error(exc, action="get_project", project_id=project_id)
        raise DatabaseError("Failed to load project.", exc) from exc

    if not doc.exists:
        return None
    return {"id": doc.id, **(doc.to_dict() or {})}


async def create_project(user_id: str, name: str | None = None, canvas_data: dict | None = None) -> dict:
    project_id = str(uuid.uuid4())
    record = {
        "user_id": user_id,
        "name": name or DEFAULT_PROJECT_NAME,
        "canvas_data": canvas_data or {"nodes": [], "edges": []},
        "created_at": firestore.SERVER_TIMESTAMP,
        "updated_at": firestore.SERVER_TIMESTAMP,
    }
    try:
        await asyncio.to_thread(lambda: _projects().document(project_id).create(record))
    except GoogleAPICallError as exc:
        log_error(exc, action="create_project", user_id=user_id)
        raise DatabaseError("Failed to create project.", exc) from exc

    logger.info("Created project %s for user %s", project_id, user_id)
    return {
        "id": project_id,
        "user_id": user_id,
        "name": record["name"],
        "canvas_data": record["canvas_data"],
    }


async def update_project(project_id: str, fields: dict) -> None:
    payload = {**fields, "updated_at": firestore.SERVER_TIMESTAMP}
    try:
        await asyncio.to_thread(lambda: _projects().document(project_id).update(payload))
    except GoogleAPICallError as exc:
        log_error(exc, action="update_project", project_id=project_id)
        raise DatabaseError("Failed to update project.", exc) from exc


async def update_canvas_data(project_id: str, nodes: list[dict], edges: list[dict]) -> None:
    """Replace the project's canvas wholesale."""
    await update_project(project_id, {"canvas_data": {"nodes": nodes, "edges": edges}})
