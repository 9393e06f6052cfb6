import logging
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spexly_api.config import settings

# google-auth only reads GOOGLE_APPLICATION_CREDENTIALS from the process
# environment; pydantic-settings does not export .env values there.
_sa_key = Path(settings.SERVICE_ACCOUNT_KEY_PATH)
if not os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") and _sa_key.exists():
    os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = str(_sa_key.resolve())

from spexly_api.routers.agent import router as agent_router
from spexly_api.routers.projects import router as projects_router
from spexly_api.routers.tasks import router as tasks_router
from spexly_api.services.errors import AppError, DatabaseError, format_error_for_client, log_error

logging.basicConfig(level=settings.LOG_LEVEL)

logger = logging.getLogger(__name__)

app = FastAPI(title="Spexly API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, DatabaseError):
        log_error(exc.original_error or exc, action=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(exc, action=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"ok": False, "error": format_error_for_client(exc)})


app.include_router(agent_router)
app.include_router(projects_router)
app.include_router(tasks_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
