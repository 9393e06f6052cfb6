import copy
import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient

from spexly_api.config import settings
from spexly_api.services import ingest_event_store, project_store, task_store
from spexly_api.services.errors import DatabaseError

TEST_SECRET = "test-ingest-secret"
USER_ID = "user-1"
PROJECT_ID = "3f2b8c1e-5a4d-4e6f-9b7a-1c2d3e4f5a6b"


class FakeBackend:
    """In-memory stand-in for the Firestore-backed stores."""

    def __init__(self):
        self.projects: dict[str, dict] = {}
        self.tasks: dict[str, dict] = {}
        self.events: dict[str, dict] = {}
        self.fail_task_writes = False
        self._next_id = 0

    def add_project(self, project_id: str, user_id: str = USER_ID, nodes=None, edges=None, name="Demo"):
        self.projects[project_id] = {
            "user_id": user_id,
            "name": name,
            "canvas_data": {"nodes": nodes or [], "edges": edges or []},
        }

    def add_task(self, task_id: str, **fields):
        self.tasks[task_id] = {
            "user_id": USER_ID,
            "project_id": PROJECT_ID,
            "title": "A task",
            "status": "todo",
            **fields,
        }

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    # project_store
    async def get_project(self, project_id):
        record = self.projects.get(project_id)
        if record is None:
            return None
        return {"id": project_id, **copy.deepcopy(record)}

    async def create_project(self, user_id, name=None, canvas_data=None):
        project_id = "9a8b7c6d-1234-4abc-8def-0123456789ab"
        self.projects[project_id] = {
            "user_id": user_id,
            "name": name or project_store.DEFAULT_PROJECT_NAME,
            "canvas_data": canvas_data or {"nodes": [], "edges": []},
        }
        return {"id": project_id, **copy.deepcopy(self.projects[project_id])}

    async def update_project(self, project_id, fields):
        self.projects[project_id].update(copy.deepcopy(fields))

    async def update_canvas_data(self, project_id, nodes, edges):
        await self.update_project(project_id, {"canvas_data": {"nodes": nodes, "edges": edges}})

    # task_store
    async def insert_tasks(self, rows):
        if self.fail_task_writes:
            raise DatabaseError("Failed to insert tasks.")
        for row in rows:
            self.tasks[self._new_id("task")] = copy.deepcopy(row)

    async def upsert_tasks(self, rows):
        if self.fail_task_writes:
            raise DatabaseError("Failed to upsert tasks.")
        for row in rows:
            self.tasks[f"ref:{row['project_id']}:{row['external_ref']}"] = copy.deepcopy(row)

    async def list_project_tasks(self, user_id, project_id):
        return [
            {"id": task_id, **copy.deepcopy(task)}
            for task_id, task in self.tasks.items()
            if task.get("user_id") == user_id and task.get("project_id") == project_id
        ]

    async def list_task_statuses(self, user_id, project_ids):
        return [
            {"project_id": task["project_id"], "status": task["status"]}
            for task in self.tasks.values()
            if task.get("user_id") == user_id and task.get("project_id") in project_ids
        ]

    async def get_task(self, task_id):
        task = self.tasks.get(task_id)
        return {"id": task_id, **copy.deepcopy(task)} if task is not None else None

    async def update_task(self, task_id, fields):
        self.tasks[task_id].update(copy.deepcopy(fields))

    async def delete_task(self, task_id):
        self.tasks.pop(task_id, None)

    # ingest_event_store
    async def create_ingest_event(self, idempotency_key, request_hash, source_agent="unknown"):
        if idempotency_key in self.events:
            return False
        self.events[idempotency_key] = {
            "status": "processing",
            "request_hash": request_hash,
            "source_agent": source_agent,
        }
        return True

    async def update_ingest_event(self, idempotency_key, fields):
        self.events[idempotency_key].update(fields)


@pytest.fixture
def backend(monkeypatch) -> FakeBackend:
    fake = FakeBackend()
    for name in ("get_project", "create_project", "update_project", "update_canvas_data"):
        monkeypatch.setattr(project_store, name, getattr(fake, name))
    for name in (
        "insert_tasks",
        "upsert_tasks",
        "list_project_tasks",
        "list_task_statuses",
        "get_task",
        "update_task",
        "delete_task",
    ):
        monkeypatch.setattr(task_store, name, getattr(fake, name))
    for name in ("create_ingest_event", "update_ingest_event"):
        monkeypatch.setattr(ingest_event_store, name, getattr(fake, name))
    return fake


@pytest.fixture
def client(backend, monkeypatch) -> TestClient:
    monkeypatch.setattr(settings, "AGENT_INGEST_SECRET", TEST_SECRET)
    from spexly_api.main import app

    return TestClient(app)


def signed_headers(body: bytes, key: str = "key-1", secret: str = TEST_SECRET, timestamp: str | None = None) -> dict:
    timestamp = timestamp or str(int(time.time()))
    digest = hmac.new(secret.encode(), timestamp.encode() + b"." + body, hashlib.sha256).hexdigest()
    return {
        "content-type": "application/json",
        "x-spexly-idempotency-key": key,
        "x-spexly-timestamp": timestamp,
        "x-spexly-signature": f"sha256={digest}",
    }


def encode(payload: object) -> bytes:
    return json.dumps(payload).encode("utf-8")
