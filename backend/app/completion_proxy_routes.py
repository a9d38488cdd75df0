"""Server-side proxy for chat completions; the only place the provider key is read."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from openai import APIError, APIStatusError, AsyncOpenAI
from starlette.responses import JSONResponse

from .completion_client import AVAILABLE_MODELS
from .config import Settings, get_settings

router = APIRouter(prefix="/api/openai", tags=["completion-proxy"])
logger = logging.getLogger(__name__)


async def get_openai_client(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[Optional[AsyncOpenAI]]:
    if not settings.openai_api_key:
        yield None
        return
    client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url or None)
    try:
        yield client
    finally:
        await client.close()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post("/chat/completions")
async def proxy_chat_completion(
    request: Request,
    client: Optional[AsyncOpenAI] = Depends(get_openai_client),
) -> JSONResponse:
    if client is None:
        return _error("OpenAI API key not configured", status.HTTP_500_INTERNAL_SERVER_ERROR)
    try:
        body: Dict[str, Any] = await request.json()
        completion = await client.chat.completions.create(**body)
    except APIStatusError as exc:
        logger.warning("Completion provider rejected request: %s", exc.message)
        return _error(exc.message, exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR)
    except APIError as exc:
        logger.warning("Completion provider call failed: %s", exc.message)
        return _error(exc.message, status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception:  # noqa: BLE001
        logger.exception("Completion proxy failed")
        return _error("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(completion.model_dump(mode="json"))


@router.get("/models")
def list_models() -> List[Dict[str, str]]:
    return [{"id": model_id, "label": label} for model_id, label in AVAILABLE_MODELS.items()]


__all__ = ["get_openai_client", "router"]
