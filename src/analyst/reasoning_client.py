"""Language-model completion clients (OpenAI chat completions or Anthropic messages)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import anthropic
import httpx
import structlog
from anthropic import AsyncAnthropic

from analyst.exceptions import ReasoningServiceError

if TYPE_CHECKING:
    from analyst.cancellation import CancellationToken
    from analyst.config import Settings

logger = structlog.get_logger()


class ReasoningClient:
    """Base class: bounded, cancellable completion call. Subclasses implement _send()."""

    provider = "base"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def model(self) -> str:
        raise NotImplementedError

    async def complete(
        self,
        system: str,
        user: str,
        temperature: float,
        token: CancellationToken,
        timeout: float | None = None,
    ) -> str:
        """Return the model text. Raises ReasoningServiceError or PipelineCancelled."""
        token.raise_if_cancelled()
        limit = timeout if timeout is not None else self.settings.REASONING_TIMEOUT_SECONDS
        logger.info("reasoning_call", provider=self.provider, model=self.model, temperature=temperature)
        try:
            text = await token.guard(
                asyncio.wait_for(self._send(system, user, temperature), timeout=limit)
            )
        except asyncio.TimeoutError as e:
            logger.warning("reasoning_timeout", provider=self.provider, timeout=limit)
            raise ReasoningServiceError(f"{self.provider} request timed out after {limit}s") from e

        if not text:
            raise ReasoningServiceError(f"{self.provider} returned an empty response")
        logger.info("reasoning_done", provider=self.provider, chars=len(text))
        return text

    async def _send(self, system: str, user: str, temperature: float) -> str:
        raise NotImplementedError


class OpenAIReasoningClient(ReasoningClient):
    provider = "openai"

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        super().__init__(settings)
        self.http = http

    @property
    def model(self) -> str:
        return self.settings.OPENAI_MODEL

    async def _send(self, system: str, user: str, temperature: float) -> str:
        try:
            response = await self.http.post(
                self.settings.OPENAI_API_URL,
                headers={
                    "Authorization": f"Bearer {self.settings.OPENAI_API_KEY}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.settings.OPENAI_MODEL,
                    "max_tokens": self.settings.REASONING_MAX_TOKENS,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    "temperature": temperature,
                },
                timeout=None,
            )
        except httpx.HTTPError as e:
            raise ReasoningServiceError(f"OpenAI transport error: {e}") from e

        if not response.is_success:
            raise ReasoningServiceError(
                f"OpenAI API error: HTTP {response.status_code}", body=response.text
            )

        try:
            payload = response.json()
            return payload["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ReasoningServiceError("OpenAI empty response", body=response.text[:500]) from e


class AnthropicReasoningClient(ReasoningClient):
    provider = "anthropic"

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings)
        self.client = AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            http_client=http,
            max_retries=0,
        )

    @property
    def model(self) -> str:
        return self.settings.ANTHROPIC_MODEL

    async def _send(self, system: str, user: str, temperature: float) -> str:
        try:
            response = await self.client.messages.create(
                model=self.settings.ANTHROPIC_MODEL,
                max_tokens=self.settings.REASONING_MAX_TOKENS,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except anthropic.APIStatusError as e:
            raise ReasoningServiceError(
                f"Anthropic API error: HTTP {e.status_code}", body=str(e.body)
            ) from e
        except anthropic.APIError as e:
            raise ReasoningServiceError(f"Anthropic API error: {e.message}") from e

        return "".join(block.text for block in response.content if block.type == "text")


def create_reasoning_client(settings: Settings, http: httpx.AsyncClient) -> ReasoningClient:
    provider = settings.REASONING_PROVIDER.lower()
    if provider == "openai":
        return OpenAIReasoningClient(settings, http)
    if provider == "anthropic":
        return AnthropicReasoningClient(settings, http)
    raise ValueError(f"Unknown REASONING_PROVIDER '{settings.REASONING_PROVIDER}'")
