import logging

from fastapi import APIRouter, Depends, Query

from spexly_api.mappings import TASK_STATUSES
from spexly_api.models.task import (
    TaskAutofillResponse,
    TaskItem,
    TaskStatusUpdateRequest,
    TaskSummary,
)
from spexly_api.routers.deps import load_owned_project, require_user_id
from spexly_api.services import project_store, task_store
from spexly_api.services.autofill import build_node_autofill_update
from spexly_api.services.canvas_validation import sanitize_node_updates
from spexly_api.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tasks"])


async def _load_owned_task(task_id: str, user_id: str) -> dict:
    if not task_id.strip():
        raise ValidationError("Task ID is required.")
    task = await task_store.get_task(task_id)
    if task is None or task.get("user_id") != user_id:
        raise NotFoundError("Task")
    return task


@router.get("/projects/{project_id}/tasks", response_model=list[TaskItem])
async def list_project_tasks(project_id: str, user_id: str = Depends(require_user_id)) -> list[TaskItem]:
    if not project_id.strip():
        raise ValidationError("Project ID is required.")
    tasks = await task_store.list_project_tasks(user_id, project_id)
    return [TaskItem(**task) for task in tasks]


@router.get("/tasks/summary", response_model=dict[str, TaskSummary])
async def task_summaries(
    project_ids: list[str] = Query(default=[]),
    user_id: str = Depends(require_user_id),
) -> dict[str, TaskSummary]:
    if not project_ids:
        return {}

    summaries = {project_id: TaskSummary() for project_id in project_ids}
    for row in await task_store.list_task_statuses(user_id, project_ids):
        summary = summaries.setdefault(str(row.get("project_id")), TaskSummary())
        summary.total += 1
        if row.get("status") == "done":
            summary.done += 1
        else:
            summary.open += 1
    return summaries


@router.patch("/tasks/{task_id}", response_model=TaskItem)
async def update_task_status(
    task_id: str,
    request: TaskStatusUpdateRequest,
    user_id: str = Depends(require_user_id),
) -> TaskItem:
    if request.status not in TASK_STATUSES:
        raise ValidationError("Invalid task status.")
    task = await _load_owned_task(task_id, user_id)
    await task_store.update_task(task_id, {"status": request.status})
    return TaskItem(**{**task, "status": request.status})


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str, user_id: str = Depends(require_user_id)) -> None:
    await _load_owned_task(task_id, user_id)
    await task_store.delete_task(task_id)


@router.post("/tasks/{task_id}/autofill", response_model=TaskAutofillResponse)
async def autofill_linked_node(task_id: str, user_id: str = Depends(require_user_id)) -> TaskAutofillResponse:
    """Copy what a task says about its linked node into that node's empty fields."""
    task = await _load_owned_task(task_id, user_id)
    node_id = task.get("node_id")
    if not node_id:
        raise ValidationError("Task is not linked to a node.")

    project = await load_owned_project(task["project_id"], user_id)
    canvas = project.get("canvas_data") or {}
    nodes = list(canvas.get("nodes") or [])
    edges = list(canvas.get("edges") or [])

    index = next((i for i, node in enumerate(nodes) if node.get("id") == node_id), None)
    if index is None:
        raise NotFoundError("Node")

    node = nodes[index]
    data = node.get("data") if isinstance(node.get("data"), dict) else {}
    # Stored nodes are already sanitized; only the new values need it.
    updates = sanitize_node_updates(
        data,
        build_node_autofill_update(node, task.get("title") or "", task.get("details")),
    )
    if updates:
        nodes[index] = {**node, "data": {**data, **updates}}
        await project_store.update_canvas_data(task["project_id"], nodes, edges)

    fields = sorted(updates)
    metadata = task.get("metadata") if isinstance(task.get("metadata"), dict) else {}
    await task_store.update_task(
        task_id,
        {"metadata": {**metadata, "autofill": {"node_id": node_id, "fields": fields}}},
    )
    logger.info("Autofilled node %s from task %s: %s", node_id, task_id, fields)
    return TaskAutofillResponse(node_id=node_id, updated_fields=fields)
