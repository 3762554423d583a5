"""Exceptions raised while talking to the language model and recovering its output."""

from __future__ import annotations


class LLMError(Exception):
    """Base class for every language-model related failure."""


class LLMConfigError(LLMError):
    """The client cannot be built because required settings are missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"LLM configuration incomplete, missing: {', '.join(missing)}")


class TransportError(LLMError):
    """HTTP or network failure: non-success status, dropped connection, aborted stream."""


class FrameDecodeError(LLMError):
    """A single stream frame could not be decoded into a content delta."""


class ParseFailure(LLMError):
    """No JSON value could be recovered from the model output."""

    def __init__(self, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__("Could not recover a JSON value from the model output")
