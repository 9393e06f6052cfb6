import hashlib
from pathlib import Path

from google.cloud import firestore
from google.oauth2 import service_account

from spexly_api.config import settings

_client: firestore.Client | None = None


def get_client() -> firestore.Client:
    global _client
    if _client is None:
        kwargs: dict = {"project": settings.GCP_PROJECT_ID}
        sa_path = Path(settings.SERVICE_ACCOUNT_KEY_PATH)
        if sa_path.exists():
            credentials = service_account.Credentials.from_service_account_file(
                str(sa_path)
            )
            kwargs["credentials"] = credentials
        _client = firestore.Client(**kwargs)
    return _client


def document_key(*parts: str) -> str:
    """Deterministic document id for a composite or arbitrary-text key.

    Firestore ids may not contain ``/``, so caller-supplied keys are hashed.
    """
    joined = "\x1f".join(parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
