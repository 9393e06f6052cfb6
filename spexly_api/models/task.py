from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

TaskStatus = Literal["todo", "in_progress", "done", "blocked"]


class TaskItem(BaseModel):
    id: str
    user_id: str
    project_id: str
    node_id: str | None = None
    node_type: str | None = None
    link_confidence: float | None = None
    title: str
    details: str | None = None
    status: TaskStatus = "todo"
    source: str = "agent"
    source_agent: str = "unknown"
    external_ref: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TaskSummary(BaseModel):
    total: int = 0
    open: int = 0
    done: int = 0


class TaskStatusUpdateRequest(BaseModel):
    status: str


class TaskAutofillResponse(BaseModel):
    ok: bool = True
    node_id: str
    updated_fields: list[str]
