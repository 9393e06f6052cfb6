"""Idempotency records for the agent ingest webhook.

One document per idempotency key. Creation goes through Firestore's
``create()``, which fails with ``AlreadyExists`` when the key was used before;
that failure is the only concurrency control for duplicate deliveries.
"""

import asyncio
import logging

from google.api_core.exceptions import AlreadyExists, GoogleAPICallError
from google.cloud import firestore

from spexly_api.config import settings
from spexly_api.services.errors import DatabaseError, log_error
from spexly_api.services.firestore_client import document_key, get_client

logger = logging.getLogger(__name__)

STATUS_PROCESSING = "processing"
STATUS_ACCEPTED = "accepted"
STATUS_REJECTED = "rejected"


def _event_ref(idempotency_key: str) -> firestore.DocumentReference:
    return (
        get_client()
        .collection(settings.FIRESTORE_INGEST_EVENTS_COLLECTION)
        .document(document_key(idempotency_key))
    )


async def create_ingest_event(idempotency_key: str, request_hash: str, source_agent: str = "unknown") -> bool:
    """Claim ``idempotency_key``. Returns ``False`` if it was already claimed."""
    record = {
        "idempotency_key": idempotency_key,
        "source_agent": source_agent,
        "request_hash": request_hash,
        "status": STATUS_PROCESSING,
        "created_at": firestore.SERVER_TIMESTAMP,
    }
    try:
        await asyncio.to_thread(lambda: _event_ref(idempotency_key).create(record))
    except AlreadyExists:
        logger.info("Ingest key already used: %s", idempotency_key)
        return False
    except GoogleAPICallError as exc:
        log_error(exc, action="agent-ingest:create-lock", idempotency_key=idempotency_key)
        raise DatabaseError("Failed to start ingest", exc) from exc
    return True


async def update_ingest_event(idempotency_key: str, fields: dict) -> None:
    payload = {**fields, "processed_at": firestore.SERVER_TIMESTAMP}
    try:
        await asyncio.to_thread(lambda: _event_ref(idempotency_key).update(payload))
    except GoogleAPICallError as exc:
        log_error(exc, action="agent-ingest:update-event", idempotency_key=idempotency_key)
        raise DatabaseError("Failed to update ingest event.", exc) from exc
