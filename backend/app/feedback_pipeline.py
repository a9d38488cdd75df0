"""Feedback generation pipeline: prompt, completion, repair or fallback, assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .completion_client import CompletionClient, CompletionOptions, create_completion_client
from .config import Settings, get_settings
from .feedback_assembler import assemble
from .feedback_errors import ParseError, RemoteCallError
from .feedback_fallback import fallback_for
from .feedback_models import FeedbackRecord, FeedbackRequest
from .prompt_builder import build_prompt
from .response_normalizer import normalize_response
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    PROMPT_BUILT = "prompt_built"
    REMOTE_CALL_IN_FLIGHT = "remote_call_in_flight"
    PARSED_OK = "parsed_ok"
    REMOTE_ERROR = "remote_error"
    PARSE_ERROR = "parse_error"
    ASSEMBLED = "assembled"


class FeedbackOutcome(str, Enum):
    SUCCESS = "success"
    REMOTE_FALLBACK = "remote_fallback"
    PARSE_FALLBACK = "parse_fallback"


@dataclass(frozen=True)
class PipelineResult:
    record: FeedbackRecord
    outcome: FeedbackOutcome
    error: Optional[str] = None


def _transition(request: FeedbackRequest, state: PipelineState) -> None:
    logger.debug("Feedback pipeline for %s -> %s", request.submitter_name, state.value)


def _default_client(settings: Settings, app: Any) -> CompletionClient:
    if app is None and not settings.completion_proxy_base_url.strip():
        from .main import app  # noqa: PLC0415  # main imports this module
    return create_completion_client(settings, app=app)


async def run_feedback_pipeline(
    request: FeedbackRequest,
    *,
    client: Optional[CompletionClient] = None,
    settings: Optional[Settings] = None,
    options: Optional[CompletionOptions] = None,
    app: Any = None,
) -> PipelineResult:
    """Run one submission through the pipeline. Always returns a valid record.

    Without a ``client`` the pipeline opens its own: to the configured proxy base
    URL, else to the proxy route of ``app`` (the service's own app by default).
    Building that client happens before any remote work, so configuration
    errors raise instead of turning into a fallback.
    """
    _transition(request, PipelineState.IDLE)
    prompt = build_prompt(request)
    _transition(request, PipelineState.PROMPT_BUILT)

    owned_client: Optional[CompletionClient] = None
    if client is None:
        owned_client = _default_client(settings or get_settings(), app)
        client = owned_client

    error: Optional[str] = None
    try:
        _transition(request, PipelineState.REMOTE_CALL_IN_FLIGHT)
        raw_text = await client.complete(prompt, options)
        logger.debug("Raw completion for %s: %s", request.submitter_name, raw_text)
        record = normalize_response(raw_text, submitter_name=request.submitter_name)
        _transition(request, PipelineState.PARSED_OK)
        outcome = FeedbackOutcome.SUCCESS
    except ParseError as exc:
        _transition(request, PipelineState.PARSE_ERROR)
        logger.warning("Feedback JSON for %s could not be parsed: %s", request.submitter_name, exc)
        record = fallback_for(request, exc)
        outcome = FeedbackOutcome.PARSE_FALLBACK
        error = str(exc)
    except RemoteCallError as exc:
        _transition(request, PipelineState.REMOTE_ERROR)
        logger.warning("Completion call for %s failed: %s", request.submitter_name, exc)
        record = fallback_for(request, exc)
        outcome = FeedbackOutcome.REMOTE_FALLBACK
        error = str(exc)
    except Exception as exc:  # noqa: BLE001
        _transition(request, PipelineState.REMOTE_ERROR)
        logger.exception("Unexpected failure generating feedback for %s", request.submitter_name)
        record = fallback_for(request, exc)
        outcome = FeedbackOutcome.REMOTE_FALLBACK
        error = str(exc)
    finally:
        if owned_client is not None:
            await owned_client.aclose()

    assembled = assemble(request, record)
    _transition(request, PipelineState.ASSEMBLED)
    emit_event(
        "feedback_generated",
        submitter_name=request.submitter_name,
        outcome=outcome,
        error=error,
    )
    return PipelineResult(record=assembled, outcome=outcome, error=error)


async def generate_feedback(
    request: FeedbackRequest,
    *,
    client: Optional[CompletionClient] = None,
    settings: Optional[Settings] = None,
    options: Optional[CompletionOptions] = None,
    app: Any = None,
) -> FeedbackRecord:
    result = await run_feedback_pipeline(
        request, client=client, settings=settings, options=options, app=app
    )
    return result.record


__all__ = [
    "FeedbackOutcome",
    "PipelineResult",
    "PipelineState",
    "generate_feedback",
    "run_feedback_pipeline",
]
