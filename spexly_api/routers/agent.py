import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from spexly_api.config import settings
from spexly_api.models.agent import AgentIngestResponse
from spexly_api.services.agent_ingest import process_ingest
from spexly_api.services.errors import AuthenticationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agent", tags=["agent"])

IDEMPOTENCY_KEY_HEADER = "x-spexly-idempotency-key"
TIMESTAMP_HEADER = "x-spexly-timestamp"
SIGNATURE_HEADER = "x-spexly-signature"


@router.post("/ingest", response_model=AgentIngestResponse)
async def ingest_agent_tasks(request: Request) -> JSONResponse:
    secret = settings.AGENT_INGEST_SECRET
    if not secret:
        logger.warning("Agent ingest called but AGENT_INGEST_SECRET is not set")
        return JSONResponse(
            status_code=503,
            content={"ok": False, "error": "Agent ingest not configured"},
        )

    idempotency_key = (request.headers.get(IDEMPOTENCY_KEY_HEADER) or "").strip()
    timestamp = (request.headers.get(TIMESTAMP_HEADER) or "").strip()
    signature = (request.headers.get(SIGNATURE_HEADER) or "").strip()
    if not idempotency_key or not timestamp or not signature:
        raise AuthenticationError("Missing signature headers")

    raw_body = await request.body()
    outcome = await process_ingest(raw_body, idempotency_key, timestamp, signature, secret)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
