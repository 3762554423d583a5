"""Incremental decoder for server-sent-event lines."""

from __future__ import annotations

import codecs
from typing import Iterator

DATA_PREFIX = "data: "


class FrameDecoder:
    """
    Small stateful splitter that turns raw transport chunks into ``data: `` payloads.

    Chunks may end in the middle of a multi-byte character or in the middle of a
    line; both are held back until the next ``feed`` call completes them.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._remainder = ""

    def feed(self, chunk: bytes | str) -> Iterator[str]:
        if isinstance(chunk, bytes):
            text = self._decoder.decode(chunk)
        else:
            text = chunk
        if not text:
            return
        lines = (self._remainder + text).split("\n")
        # Last element is the unterminated tail (empty when the chunk ended on a newline)
        self._remainder = lines.pop()
        for line in lines:
            payload = self._payload(line)
            if payload is not None:
                yield payload

    def flush(self) -> Iterator[str]:
        """Emit whatever is left once the transport has no more chunks."""
        tail = self._remainder + self._decoder.decode(b"", final=True)
        self._remainder = ""
        payload = self._payload(tail)
        if payload is not None:
            yield payload

    @staticmethod
    def _payload(line: str) -> str | None:
        line = line.rstrip("\r")
        if not line.strip():
            return None
        if not line.startswith(DATA_PREFIX):
            return None
        return line[len(DATA_PREFIX):]
