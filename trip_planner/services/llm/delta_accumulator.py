"""Collects streamed content deltas into a session buffer."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from trip_planner.schemas.envelopes import DeltaEnvelope
from .errors import FrameDecodeError

SENTINEL = "[DONE]"


def parse_delta(payload: str) -> str:
    """Return the text delta carried by one frame payload.

    Raises FrameDecodeError when the payload is not a JSON envelope or carries
    no content.
    """
    try:
        envelope = DeltaEnvelope.model_validate_json(payload)
    except ValidationError as e:
        raise FrameDecodeError(f"Invalid frame envelope: {e.error_count()} error(s)") from e
    content = envelope.content()
    if not content:
        raise FrameDecodeError("Frame carries no content delta")
    return content


class DeltaAccumulator:
    """Append-only buffer of text deltas that re-emits each one as it arrives."""

    def __init__(
        self,
        logger: logging.Logger,
        on_delta: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.logger = logger
        self._on_delta = on_delta
        self._parts: list[str] = []
        self.skipped = 0

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def accept(self, payload: str) -> bool:
        """Process one frame payload. Returns True when the end-of-stream sentinel arrives."""
        if payload.strip() == SENTINEL:
            return True
        try:
            delta = parse_delta(payload)
        except FrameDecodeError as e:
            self.skipped += 1
            self.logger.debug("Skipping stream frame: %s", e)
            return False
        self._parts.append(delta)
        if self._on_delta is not None:
            self._on_delta(delta)
        return False
