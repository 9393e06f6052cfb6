"""Signed, idempotent ingestion of agent-produced tasks.

A delivery is processed in a fixed sequence:

1. verify the HMAC signature and timestamp drift,
2. claim the idempotency key (a duplicate key short-circuits as success),
3. validate the payload and load the target project,
4. pick at most one canvas node per task to link it to,
5. write the task rows and mark the ingest event accepted.

Any failure after step 2 marks the ingest event rejected so a retry with the
same key stays a no-op.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import math
import time
from dataclasses import dataclass, field

from spexly_api.config import settings
from spexly_api.mappings import (
    DEPLOYMENT_PLAN_SOURCE,
    LINKABLE_NODE_TYPES,
    NODE_NAME_FIELDS,
    TASK_STATUS_FALLBACK,
    TASK_STATUSES,
)
from spexly_api.services import ingest_event_store, project_store, task_store
from spexly_api.services.errors import (
    AppError,
    InvalidSignatureError,
    StaleTimestampError,
    ValidationError,
    format_error_for_client,
    log_error,
)
from spexly_api.services.fuzzy_matcher import similarity

logger = logging.getLogger(__name__)

AUTO_LINK_THRESHOLD = 0.62
DETAILS_MENTION_BONUS = 0.10
FULL_TEXT_MENTION_BONUS = 0.05

MAX_TITLE_LENGTH = 180
MAX_DETAILS_LENGTH = 3000
MAX_NAME_LENGTH = 180
MAX_NODE_ID_LENGTH = 120
MAX_EXTERNAL_REF_LENGTH = 120
MAX_PROJECT_ID_LENGTH = 64
MAX_SOURCE_LENGTH = 64

# Epoch values above this are taken to be milliseconds.
_MILLISECONDS_CUTOFF = 1_000_000_000_000

_SIGNATURE_PREFIX = "sha256="


@dataclass
class AgentTaskInput:
    title: object = None
    details: object = None
    status: object = None
    external_ref: object = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: object) -> AgentTaskInput:
        if not isinstance(raw, dict):
            return cls()
        metadata = raw.get("metadata")
        return cls(
            title=raw.get("title"),
            details=raw.get("details"),
            status=raw.get("status"),
            external_ref=raw.get("externalRef"),
            metadata=metadata if isinstance(metadata, dict) else {},
        )


@dataclass
class AgentIngestPayload:
    project_id: str
    source_agent: str
    tasks: list[AgentTaskInput]


@dataclass
class NodeCandidate:
    id: str
    type: str
    name: str


@dataclass
class TaskLink:
    node_id: str
    node_type: str
    confidence: float


@dataclass
class IngestOutcome:
    status_code: int
    body: dict


def sanitize_text(value: object, max_length: int) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:max_length]


def _to_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


# ---------------------------------------------------------------------------
# Signature and replay checks
# ---------------------------------------------------------------------------


def sign_payload(timestamp: str, raw_body: str | bytes, secret: str) -> str:
    message = _to_bytes(timestamp) + b"." + _to_bytes(raw_body)
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def is_valid_signature(raw_body: str | bytes, timestamp: str, signature: str, secret: str) -> bool:
    provided = signature.strip()
    if provided.startswith(_SIGNATURE_PREFIX):
        provided = provided[len(_SIGNATURE_PREFIX):].strip()
    expected = sign_payload(timestamp, raw_body, secret)
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def parse_timestamp(value: str) -> float | None:
    """Parse an epoch in seconds or milliseconds, returning milliseconds."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed) or parsed <= 0:
        return None
    if parsed > _MILLISECONDS_CUTOFF:
        return parsed
    return parsed * 1000


def verify_request(
    raw_body: str | bytes,
    timestamp: str,
    signature: str,
    secret: str,
    now_ms: float | None = None,
) -> None:
    timestamp_ms = parse_timestamp(timestamp)
    if now_ms is None:
        now_ms = time.time() * 1000
    max_drift_ms = settings.AGENT_INGEST_MAX_TIMESTAMP_DRIFT_SECONDS * 1000
    if timestamp_ms is None or abs(now_ms - timestamp_ms) > max_drift_ms:
        raise StaleTimestampError()

    if not is_valid_signature(raw_body, timestamp, signature, secret):
        raise InvalidSignatureError()


def request_hash(raw_body: str | bytes) -> str:
    return hashlib.sha256(_to_bytes(raw_body)).hexdigest()


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


def validate_payload(data: object) -> AgentIngestPayload:
    if not isinstance(data, dict):
        raise ValidationError("Invalid payload")

    project_id = sanitize_text(data.get("projectId"), MAX_PROJECT_ID_LENGTH)
    if not project_id:
        raise ValidationError("Missing projectId")

    tasks = data.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        raise ValidationError("At least one task is required")
    max_tasks = settings.AGENT_INGEST_MAX_TASKS
    if len(tasks) > max_tasks:
        raise ValidationError(f"Too many tasks. Max {max_tasks}")

    return AgentIngestPayload(
        project_id=project_id,
        source_agent=sanitize_text(data.get("sourceAgent"), MAX_SOURCE_LENGTH) or "unknown",
        tasks=[AgentTaskInput.from_raw(task) for task in tasks],
    )


def normalize_status(status: object) -> str:
    if isinstance(status, str) and status in TASK_STATUSES:
        return status
    return TASK_STATUS_FALLBACK


# ---------------------------------------------------------------------------
# Auto-linking
# ---------------------------------------------------------------------------


def node_primary_name(node: dict) -> str:
    data = node.get("data")
    if not isinstance(data, dict):
        return ""
    name_field = NODE_NAME_FIELDS.get(str(node.get("type") or ""))
    if name_field is None:
        return ""
    return sanitize_text(data.get(name_field), MAX_NAME_LENGTH)


def extract_node_candidates(canvas_data: object) -> list[NodeCandidate]:
    if not isinstance(canvas_data, dict):
        return []
    nodes = canvas_data.get("nodes")
    if not isinstance(nodes, list):
        return []

    candidates: list[NodeCandidate] = []
    for node in nodes:
        if not isinstance(node, dict):
            continue
        node_id = sanitize_text(node.get("id"), MAX_NODE_ID_LENGTH)
        node_type = sanitize_text(node.get("type"), 40)
        if not node_id or node_type not in LINKABLE_NODE_TYPES:
            continue
        name = node_primary_name(node)
        if not name:
            continue
        candidates.append(NodeCandidate(id=node_id, type=node_type, name=name))
    return candidates


def select_auto_link(task: AgentTaskInput, candidates: list[NodeCandidate]) -> TaskLink | None:
    metadata = task.metadata
    explicit_node_id = sanitize_text(metadata.get("nodeId"), MAX_NODE_ID_LENGTH)
    if explicit_node_id:
        for candidate in candidates:
            if candidate.id == explicit_node_id:
                return TaskLink(node_id=candidate.id, node_type=candidate.type, confidence=1.0)

    # Deployment-plan items stay project-level unless explicitly linked.
    if sanitize_text(metadata.get("source"), MAX_SOURCE_LENGTH).lower() == DEPLOYMENT_PLAN_SOURCE:
        return None

    title = sanitize_text(task.title, MAX_TITLE_LENGTH)
    details = sanitize_text(task.details, MAX_DETAILS_LENGTH)
    details_lower = details.lower()
    full_text_lower = f"{title} {details}".strip().lower()

    best: TaskLink | None = None
    for candidate in candidates:
        name_lower = candidate.name.lower()
        score = similarity(title, candidate.name)
        if details_lower and name_lower in details_lower:
            score += DETAILS_MENTION_BONUS
        if full_text_lower and name_lower in full_text_lower:
            score += FULL_TEXT_MENTION_BONUS
        score = min(1.0, score)

        if best is None or score > best.confidence:
            best = TaskLink(node_id=candidate.id, node_type=candidate.type, confidence=score)

    if best is None or best.confidence < AUTO_LINK_THRESHOLD:
        return None
    return best


def build_task_rows(
    payload: AgentIngestPayload,
    project: dict,
    candidates: list[NodeCandidate],
) -> list[dict]:
    rows: list[dict] = []
    for index, task in enumerate(payload.tasks, start=1):
        title = sanitize_text(task.title, MAX_TITLE_LENGTH)
        if not title:
            raise ValidationError(f"Task {index} is missing a valid title")

        link = select_auto_link(task, candidates)
        rows.append(
            {
                "user_id": project.get("user_id"),
                "project_id": payload.project_id,
                "node_id": link.node_id if link else None,
                "node_type": link.node_type if link else None,
                "link_confidence": link.confidence if link else None,
                "title": title,
                "details": sanitize_text(task.details, MAX_DETAILS_LENGTH) or None,
                "status": normalize_status(task.status),
                "source": "agent",
                "source_agent": payload.source_agent,
                "external_ref": sanitize_text(task.external_ref, MAX_EXTERNAL_REF_LENGTH) or None,
                "metadata": task.metadata,
            }
        )
    return rows


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def _mark_rejected(idempotency_key: str, message: str, source_agent: str) -> None:
    try:
        await ingest_event_store.update_ingest_event(
            idempotency_key,
            {
                "status": ingest_event_store.STATUS_REJECTED,
                "error_message": message,
                "source_agent": source_agent,
            },
        )
    except AppError as exc:
        log_error(exc, action="agent-ingest:mark-rejected", idempotency_key=idempotency_key)


def _peek_source_agent(raw_body: str | bytes) -> str:
    """Best-effort agent name for the event row, read before the payload is validated."""
    try:
        data = json.loads(raw_body)
    except (TypeError, ValueError):
        return "unknown"
    if not isinstance(data, dict):
        return "unknown"
    return sanitize_text(data.get("sourceAgent"), MAX_SOURCE_LENGTH) or "unknown"


async def _ingest(idempotency_key: str, raw_body: str | bytes) -> IngestOutcome:
    try:
        data = json.loads(raw_body)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid JSON body") from exc

    payload = validate_payload(data)

    project = await project_store.get_project(payload.project_id)
    if project is None:
        logger.info("Agent ingest %s: project %s not found", idempotency_key, payload.project_id)
        await _mark_rejected(idempotency_key, "Project not found", payload.source_agent)
        return IngestOutcome(status_code=404, body={"ok": False, "error": "Project not found"})

    candidates = extract_node_candidates(project.get("canvas_data"))
    rows = build_task_rows(payload, project, candidates)

    no_ref = [row for row in rows if not row["external_ref"]]
    with_ref = [row for row in rows if row["external_ref"]]
    if no_ref:
        await task_store.insert_tasks(no_ref)
    if with_ref:
        await task_store.upsert_tasks(with_ref)

    # Rows are committed; the delivery succeeds even if this write fails.
    try:
        await ingest_event_store.update_ingest_event(
            idempotency_key,
            {
                "status": ingest_event_store.STATUS_ACCEPTED,
                "user_id": project.get("user_id"),
                "project_id": payload.project_id,
                "source_agent": payload.source_agent,
            },
        )
    except AppError as exc:
        log_error(exc, action="agent-ingest:mark-accepted", idempotency_key=idempotency_key)

    linked = sum(1 for row in rows if row["node_id"])
    logger.info(
        "Agent ingest %s: %d tasks for project %s (%d linked)",
        idempotency_key, len(rows), payload.project_id, linked,
    )
    return IngestOutcome(status_code=200, body={"ok": True, "inserted": len(rows)})


async def process_ingest(
    raw_body: str | bytes,
    idempotency_key: str,
    timestamp: str,
    signature: str,
    secret: str,
    now_ms: float | None = None,
) -> IngestOutcome:
    """Run one webhook delivery end to end.

    Signature failures raise (401 at the boundary); everything after the
    idempotency claim is reported through the returned outcome.
    """
    verify_request(raw_body, timestamp, signature, secret, now_ms=now_ms)

    source_agent = _peek_source_agent(raw_body)
    claimed = await ingest_event_store.create_ingest_event(
        idempotency_key, request_hash(raw_body), source_agent
    )
    if not claimed:
        return IngestOutcome(status_code=200, body={"ok": True, "idempotent": True})

    try:
        return await _ingest(idempotency_key, raw_body)
    except Exception as exc:
        log_error(exc, action="agent-ingest:post", idempotency_key=idempotency_key)
        await _mark_rejected(idempotency_key, str(exc) or type(exc).__name__, source_agent)
        return IngestOutcome(
            status_code=400,
            body={"ok": False, "error": format_error_for_client(exc)},
        )
