from pydantic import BaseModel


class AgentIngestResponse(BaseModel):
    ok: bool
    inserted: int | None = None
    idempotent: bool | None = None
    error: str | None = None
