"""Stream session: frames -> deltas -> recovered JSON, with a single terminal outcome."""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterator, Optional, Union

from .delta_accumulator import DeltaAccumulator
from .errors import ParseFailure
from .frame_decoder import FrameDecoder
from .recovery import ExtractionOutcome, Parsed, extract_json


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED}


@dataclass(frozen=True)
class ChunkEvent:
    text: str


@dataclass(frozen=True)
class CompletedEvent:
    value: Any


@dataclass(frozen=True)
class FailedEvent:
    message: str
    raw_text: str | None = None


StreamEvent = Union[ChunkEvent, CompletedEvent, FailedEvent]


class StreamSession:
    """One model call worth of streamed output.

    Events are produced by ``consume``; the optional hooks are invoked right
    before the matching event is handed to the consumer, so closing the
    iterator (or cancelling the task driving it) stops both.
    """

    def __init__(
        self,
        logger: logging.Logger,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.logger = logger
        self.state = SessionState.IDLE
        self.outcome: ExtractionOutcome | None = None
        self._on_chunk = on_chunk
        self._on_complete = on_complete
        self._on_error = on_error
        self._pending: list[str] = []
        self._decoder = FrameDecoder()
        self._accumulator = DeltaAccumulator(logger, on_delta=self._pending.append)

    # ----------------------- Public API -----------------------
    @property
    def text(self) -> str:
        return self._accumulator.text

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    async def consume(self, chunks: AsyncIterable[bytes | str]) -> AsyncIterator[StreamEvent]:
        """Decode ``chunks`` and yield chunk events followed by exactly one terminal event.

        Exceptions raised by ``chunks`` propagate unchanged with the session
        still streaming; the owner reports them through ``fail``.
        """
        try:
            async for chunk in chunks:
                if self.state is SessionState.IDLE:
                    self.state = SessionState.STREAMING
                for payload in self._decoder.feed(chunk):
                    for event in self._process(payload):
                        yield event
                    if self.terminal:
                        return
            for payload in self._decoder.flush():
                for event in self._process(payload):
                    yield event
                if self.terminal:
                    return
            event = self.fail("The model stream ended before the completion sentinel")
            if event is not None:
                yield event
        except (asyncio.CancelledError, GeneratorExit):
            if not self.terminal:
                self.state = SessionState.CANCELLED
                self.logger.info(
                    "Stream session cancelled after %d characters", len(self.text)
                )
            raise

    async def run(self, chunks: AsyncIterable[bytes | str]) -> ExtractionOutcome | None:
        """Drive ``consume`` to the end, delivering results through the hooks only."""
        async with aclosing(self.consume(chunks)) as events:
            async for _ in events:
                pass
        return self.outcome

    def fail(self, message: str, raw_text: str | None = None) -> FailedEvent | None:
        """Move to FAILED and notify, unless a terminal state was already reached."""
        if self.terminal:
            return None
        self.state = SessionState.FAILED
        self.logger.error("Stream session failed: %s", message)
        if self._on_error is not None:
            self._on_error(message)
        return FailedEvent(message, raw_text)

    # ----------------------- Internals -----------------------
    def _process(self, payload: str) -> Iterator[StreamEvent]:
        ended = self._accumulator.accept(payload)
        while self._pending:
            text = self._pending.pop(0)
            if self._on_chunk is not None:
                self._on_chunk(text)
            yield ChunkEvent(text)
        if ended:
            yield self._finish()

    def _finish(self) -> StreamEvent:
        if self._accumulator.skipped:
            self.logger.warning(
                "Skipped %d undecodable stream frame(s)", self._accumulator.skipped
            )
        self.outcome = extract_json(self.text)
        if isinstance(self.outcome, Parsed):
            self.state = SessionState.COMPLETED
            self.logger.info(
                "Recovered JSON from %d streamed characters (stage: %s)",
                len(self.text),
                self.outcome.stage,
            )
            if self._on_complete is not None:
                self._on_complete(self.outcome.value)
            return CompletedEvent(self.outcome.value)
        error = ParseFailure(self.outcome.raw_text)
        self.logger.warning("Unparseable model output: %r", error.raw_text)
        return self.fail(str(error), error.raw_text)
