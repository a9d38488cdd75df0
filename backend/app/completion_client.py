"""HTTP client for the chat-completion proxy.

The client only ever talks to the proxy route; the provider credential stays on
the proxy side and is never sent or held here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .config import Settings
from .feedback_errors import RemoteCallError
from .prompt_builder import SYSTEM_MESSAGE

logger = logging.getLogger(__name__)

COMPLETION_PROXY_PATH = "/api/openai/chat/completions"
IN_PROCESS_BASE_URL = "http://sciwrite.internal"

AVAILABLE_MODELS: Dict[str, str] = {
    "gpt-4o-mini": "빠르고 경제적 (권장)",
    "gpt-4o": "최고 품질 (비용 높음)",
    "gpt-3.5-turbo": "기본 모델",
}


@dataclass(frozen=True)
class CompletionOptions:
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2000

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionOptions":
        return cls(
            model=settings.feedback_model,
            temperature=settings.feedback_temperature,
            max_tokens=settings.feedback_max_tokens,
        )


class CompletionClient:
    """Sends one chat-style request per call to the completion proxy."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        endpoint: str = COMPLETION_PROXY_PATH,
        system_message: str = SYSTEM_MESSAGE,
        default_options: Optional[CompletionOptions] = None,
    ) -> None:
        self._http = http_client
        self._endpoint = endpoint
        self._system_message = system_message
        self.default_options = default_options or CompletionOptions()

    async def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        messages = [
            {"role": "system", "content": self._system_message},
            {"role": "user", "content": prompt},
        ]
        return await self.complete_messages(messages, options)

    async def complete_messages(
        self,
        messages: List[Dict[str, str]],
        options: Optional[CompletionOptions] = None,
    ) -> str:
        resolved = options or self.default_options
        payload: Dict[str, Any] = {
            "model": resolved.model,
            "messages": messages,
            "temperature": resolved.temperature,
            "max_tokens": resolved.max_tokens,
        }
        try:
            response = await self._http.post(self._endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Completion proxy call failed: {exc}") from exc

        if response.is_error:
            raise RemoteCallError(
                f"Completion proxy returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteCallError("Completion proxy returned a non-JSON body.") from exc

        content = _first_choice_content(data)
        if not content:
            raise RemoteCallError("Completion response contained no message content.")
        return content

    async def aclose(self) -> None:
        await self._http.aclose()


def _first_choice_content(data: Any) -> Optional[str]:
    if not isinstance(data, Mapping):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, Mapping) else None
    content = message.get("content") if isinstance(message, Mapping) else None
    return content if isinstance(content, str) else None


def create_completion_client(settings: Settings, *, app: Any = None) -> CompletionClient:
    """Build a client for the configured proxy.

    Without an explicit proxy base URL the client calls the proxy route of the
    given ASGI app in-process.
    """
    timeout = httpx.Timeout(settings.completion_timeout_seconds)
    base_url = settings.completion_proxy_base_url.strip()
    if base_url:
        http_client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
    elif app is not None:
        http_client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url=IN_PROCESS_BASE_URL,
            timeout=timeout,
        )
    else:
        raise RuntimeError(
            "SCIWRITE_COMPLETION_PROXY_BASE_URL must be configured when no ASGI app is available."
        )
    return CompletionClient(http_client, default_options=CompletionOptions.from_settings(settings))


async def validate_completion_access(client: CompletionClient) -> bool:
    """Send a tiny request through the proxy; report reachability without raising."""
    options = replace(client.default_options, max_tokens=5)
    try:
        await client.complete_messages([{"role": "user", "content": "Hello"}], options)
    except RemoteCallError as exc:
        logger.warning("Completion access check failed: %s", exc)
        return False
    return True


__all__ = [
    "AVAILABLE_MODELS",
    "COMPLETION_PROXY_PATH",
    "CompletionClient",
    "CompletionOptions",
    "create_completion_client",
    "validate_completion_access",
]
