"""Narrow views over chat-completion wire envelopes.

Only the content fields the recovery pipeline reads are modelled; every other
field of the provider's payload is ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Delta(_Envelope):
    content: str | None = None


class DeltaChoice(_Envelope):
    delta: Delta | None = None


class DeltaEnvelope(_Envelope):
    """One streamed ``chat.completion.chunk`` frame."""

    choices: list[DeltaChoice] = []

    def content(self) -> str:
        if not self.choices or self.choices[0].delta is None:
            return ""
        return self.choices[0].delta.content or ""


class Message(_Envelope):
    content: str | None = None


class MessageChoice(_Envelope):
    message: Message | None = None


class CompletionEnvelope(_Envelope):
    """A complete, non-streamed ``chat.completion`` body."""

    choices: list[MessageChoice] = []

    def content(self) -> str:
        if not self.choices or self.choices[0].message is None:
            return ""
        return self.choices[0].message.content or ""
