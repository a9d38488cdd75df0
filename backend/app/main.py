import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .completion_client import create_completion_client, validate_completion_access
from .completion_proxy_routes import router as completion_proxy_router
from .config import Settings, get_settings
from .db.session import create_schema, dispose_engine, get_engine
from .feedback_routes import router as feedback_router
from .logging_config import configure_logging


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("OpenAI API key configured: %s", bool(settings.openai_api_key))
    logger.info("Completion proxy: %s", settings.completion_proxy_base_url or "in-process")
    if settings.database_auto_create:
        logger.info("Creating database schema on startup")
        create_schema()
    yield
    dispose_engine()


app = FastAPI(title="Science Writing Coach Backend", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(completion_proxy_router)
app.include_router(feedback_router)


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {
        "status": "ok",
        "dialect": engine.dialect.name,
        "pool": engine.pool.status(),
    }


@app.get("/healthz/completion")
async def completion_health(request: Request, settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    client = create_completion_client(settings, app=request.app)
    try:
        reachable = await validate_completion_access(client)
    finally:
        await client.aclose()
    return {"status": "ok" if reachable else "unavailable"}
