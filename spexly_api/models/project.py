from typing import Any

from pydantic import BaseModel, Field


class CanvasSaveRequest(BaseModel):
    # Untrusted: shape is checked by the canvas sanitizer, not by pydantic.
    nodes: Any = None
    edges: Any = None


class CanvasSaveResponse(BaseModel):
    ok: bool = True
    nodes: int
    edges: int


class ProjectNameRequest(BaseModel):
    name: Any = None


class CanvasData(BaseModel):
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)


class ProjectResponse(BaseModel):
    id: str
    user_id: str
    name: str
    canvas_data: CanvasData = Field(default_factory=CanvasData)
