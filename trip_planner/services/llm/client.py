"""Client wrapper for OpenAI-compatible chat completions with JSON recovery."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Optional

import httpx
from openai import APIError, APIStatusError, AsyncOpenAI
from pydantic import ValidationError

from trip_planner.core.config import Settings, SYSTEM_INSTRUCTION
from trip_planner.schemas.envelopes import CompletionEnvelope
from .errors import LLMConfigError, TransportError
from .recovery import ExtractionOutcome, Failed, extract_json
from .session import StreamEvent, StreamSession


def outcome_from_body(body: str) -> ExtractionOutcome:
    """Run the recovery stages against the message content of a raw completion body."""
    try:
        content = CompletionEnvelope.model_validate_json(body).content()
    except ValidationError:
        return Failed(body)
    return extract_json(content)


def _describe_transport_error(error: Exception) -> str:
    if isinstance(error, APIStatusError):
        return f"The language model returned HTTP {error.status_code}"
    return f"An error occurred while contacting the language model: {error}"


class LLMClient:
    """Explicit, caller-owned connection settings for one model endpoint.

    Every call opens its own session; nothing is shared between calls except
    this immutable configuration and the underlying HTTP connection pool.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        logger: logging.Logger,
        *,
        temperature: float = 0.7,
        timeout: float = 120.0,
        json_response_format: bool = True,
        system_instruction: str = SYSTEM_INSTRUCTION,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.logger = logger
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.json_response_format = json_response_format
        self.system_instruction = system_instruction
        # Retry policy belongs to the caller
        self._client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    @classmethod
    def from_settings(cls, settings: Settings, logger: logging.Logger, **overrides: Any) -> "LLMClient":
        missing = settings.missing_llm_settings()
        if missing:
            logger.warning("LLM settings missing: %s", ", ".join(missing))
            raise LLMConfigError(missing)
        options = {
            "temperature": settings.llm_temperature,
            "timeout": settings.llm_timeout,
            "json_response_format": settings.json_response_format,
        }
        options.update(overrides)
        return cls(settings.llm_base_url, settings.llm_api_key, settings.llm_model, logger, **options)

    def _messages(self, prompt: str, system_instruction: str | None) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_instruction or self.system_instruction},
            {"role": "user", "content": prompt},
        ]

    # ----------------------- One-shot -----------------------
    async def complete_json(
        self,
        prompt: str,
        *,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> ExtractionOutcome:
        """Send a non-streaming request and recover JSON from the full reply.

        Raises TransportError on HTTP or network failure.
        """
        kwargs: dict[str, Any] = {}
        if self.json_response_format:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt, system_instruction),
                temperature=self.temperature if temperature is None else temperature,
                **kwargs,
            )
        except (APIError, httpx.HTTPError) as e:
            self.logger.error("One-shot completion failed: %s", e)
            raise TransportError(_describe_transport_error(e)) from e
        content = ""
        if response.choices and response.choices[0].message:
            content = response.choices[0].message.content or ""
        usage = response.usage
        if usage:
            self.logger.info(
                "Completion used %d prompt / %d completion tokens",
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        outcome = extract_json(content)
        if isinstance(outcome, Failed):
            self.logger.warning("Unparseable model output: %r", outcome.raw_text)
        return outcome

    # ----------------------- Streaming -----------------------
    async def stream_events(
        self,
        prompt: str,
        *,
        system_instruction: str | None = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a completion, yielding chunk events and then one terminal event.

        Transport failures become a FailedEvent instead of an exception.
        """
        session = StreamSession(self.logger, on_chunk, on_complete, on_error)
        try:
            async with self._client.chat.completions.with_streaming_response.create(
                model=self.model,
                messages=self._messages(prompt, system_instruction),
                temperature=self.temperature,
                stream=True,
            ) as response:
                async with aclosing(session.consume(response.iter_bytes())) as events:
                    async for event in events:
                        yield event
        except (APIError, httpx.HTTPError) as e:
            event = session.fail(_describe_transport_error(e))
            if event is not None:
                yield event

    async def stream(
        self,
        prompt: str,
        *,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        """Callback flavour of ``stream_events``: results arrive only through the hooks."""
        events = self.stream_events(
            prompt, on_chunk=on_chunk, on_complete=on_complete, on_error=on_error
        )
        async with aclosing(events):
            async for _ in events:
                pass

    async def aclose(self) -> None:
        await self._client.close()
