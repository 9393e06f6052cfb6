"""Task items in Firestore.

Rows carrying an ``external_ref`` are stored under a document id derived from
``(project_id, external_ref)`` so a re-sent task replaces its earlier copy.
"""

import asyncio
import logging

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from spexly_api.config import settings
from spexly_api.services.errors import DatabaseError, log_error
from spexly_api.services.firestore_client import document_key, get_client

logger = logging.getLogger(__name__)

# Firestore caps "in" filters at 30 values.
_IN_QUERY_LIMIT = 30


def _tasks() -> firestore.CollectionReference:
    return get_client().collection(settings.FIRESTORE_TASKS_COLLECTION)


def _snapshot_to_task(doc) -> dict:
    return {"id": doc.id, **(doc.to_dict() or {})}


def _commit_rows(rows: list[dict], keyed: bool) -> None:
    collection = _tasks()
    batch = get_client().batch()
    for row in rows:
        if keyed:
            ref = collection.document(document_key(row["project_id"], row["external_ref"]))
        else:
            ref = collection.document()
        batch.set(
            ref,
            {
                **row,
                "created_at": firestore.SERVER_TIMESTAMP,
                "updated_at": firestore.SERVER_TIMESTAMP,
            },
        )
    batch.commit()


async def insert_tasks(rows: list[dict]) -> None:
    """Insert every row as a new task."""
    try:
        await asyncio.to_thread(_commit_rows, rows, False)
    except GoogleAPICallError as exc:
        log_error(exc, action="insert_tasks", count=len(rows))
        raise DatabaseError("Failed to insert tasks.", exc) from exc


async def upsert_tasks(rows: list[dict]) -> None:
    """Insert or replace rows keyed by ``(project_id, external_ref)``."""
    try:
        await asyncio.to_thread(_commit_rows, rows, True)
    except GoogleAPICallError as exc:
        log_error(exc, action="upsert_tasks", count=len(rows))
        raise DatabaseError("Failed to upsert tasks.", exc) from exc


async def list_project_tasks(user_id: str, project_id: str) -> list[dict]:
    query = (
        _tasks()
        .where(filter=firestore.FieldFilter("user_id", "==", user_id))
        .where(filter=firestore.FieldFilter("project_id", "==", project_id))
    )
    try:
        docs = await asyncio.to_thread(lambda: list(query.stream()))
    except GoogleAPICallError as exc:
        log_error(exc, action="list_project_tasks", user_id=user_id, project_id=project_id)
        raise DatabaseError("Failed to fetch project tasks.", exc) from exc

    tasks = [_snapshot_to_task(doc) for doc in docs]
    tasks.sort(key=lambda task: str(task.get("created_at") or ""), reverse=True)
    return tasks


async def list_task_statuses(user_id: str, project_ids: list[str]) -> list[dict]:
    """Return ``{project_id, status}`` for every task of the given projects."""
    rows: list[dict] = []
    for start in range(0, len(project_ids), _IN_QUERY_LIMIT):
        chunk = project_ids[start:start + _IN_QUERY_LIMIT]
        query = (
            _tasks()
            .where(filter=firestore.FieldFilter("user_id", "==", user_id))
            .where(filter=firestore.FieldFilter("project_id", "in", chunk))
            .select(["project_id", "status"])
        )
        try:
            docs = await asyncio.to_thread(lambda: list(query.stream()))
        except GoogleAPICallError as exc:
            log_error(exc, action="list_task_statuses", user_id=user_id)
            raise DatabaseError("Failed to fetch task summaries.", exc) from exc
        rows.extend(doc.to_dict() or {} for doc in docs)
    return rows


async def get_task(task_id: str) -> dict | None:
    try:
        doc = await asyncio.to_thread(lambda: _tasks().document(task_id).get())
    except GoogleAPICallError as exc:
        log_error(exc, action="get_task", task_id=task_id)
        raise DatabaseError("Failed to load task.", exc) from exc
    return _snapshot_to_task(doc) if doc.exists else None


async def update_task(task_id: str, fields: dict) -> None:
    payload = {**fields, "updated_at": firestore.SERVER_TIMESTAMP}
    try:
        await asyncio.to_thread(lambda: _tasks().document(task_id).update(payload))
    except GoogleAPICallError as exc:
        log_error(exc, action="update_task", task_id=task_id)
        raise DatabaseError("Failed to update task.", exc) from exc


async def delete_task(task_id: str) -> None:
    try:
        await asyncio.to_thread(lambda: _tasks().document(task_id).delete())
    except GoogleAPICallError as exc:
        log_error(exc, action="delete_task", task_id=task_id)
        raise DatabaseError("Failed to delete task.", exc) from exc
