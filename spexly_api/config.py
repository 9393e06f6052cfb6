from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    GCP_PROJECT_ID: str = "spexly-planner"
    SERVICE_ACCOUNT_KEY_PATH: str = "service-account-key.json"
    LOG_LEVEL: str = "INFO"

    # Firestore collections
    FIRESTORE_PROJECTS_COLLECTION: str = "projects"
    FIRESTORE_TASKS_COLLECTION: str = "task_items"
    FIRESTORE_INGEST_EVENTS_COLLECTION: str = "agent_ingest_events"

    # Signed agent webhook. Empty secret disables ingest (503).
    AGENT_INGEST_SECRET: str = ""
    AGENT_INGEST_MAX_TIMESTAMP_DRIFT_SECONDS: int = 300
    AGENT_INGEST_MAX_TASKS: int = 200

    # Used by scripts/push_agent_tasks.py
    SPEXLY_BASE_URL: str = "http://localhost:8000"
    SPEXLY_PROJECT_ID: str = ""

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "https://spexly.com",
    ]
    CORS_ORIGIN_REGEX: str = r"^https://spexly(-[a-z0-9-]+)?\.vercel\.app$"


settings = Settings()
