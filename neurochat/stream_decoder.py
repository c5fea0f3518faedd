"""
Incremental decoder for the completion service's server-sent event stream.

The body is a sequence of newline-terminated lines. Lines starting with
``data: `` carry a JSON payload, and the payload ``[DONE]`` ends the stream.
Reads may split a line anywhere (including inside a multi-byte character, the
``data: `` prefix or the sentinel), so unterminated fragments are buffered until
the rest arrives.
"""

import codecs
import json
import logging
from typing import Iterable, Iterator

DATA_FIELD = "data:"
DONE_SENTINEL = "[DONE]"

logger = logging.getLogger(__name__)


class StreamDecoder:
    """Feeds raw chunks in, gets decoded payloads out."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer: str = ""
        self.done: bool = False

    def feed(self, chunk: bytes | str) -> list[dict]:
        """Consumes one read window and returns the payloads it completed."""
        if self.done:
            return []
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        *lines, self._buffer = self._buffer.split("\n")
        return self._dispatch(lines)

    def close(self) -> list[dict]:
        """End of stream: flushes the decoder and a final unterminated line."""
        if self.done:
            return []
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        payloads = self._dispatch([tail])
        self.done = True
        return payloads

    def _dispatch(self, lines: list[str]) -> list[dict]:
        payloads = []
        for raw in lines:
            line = raw.strip()
            if not line.startswith(DATA_FIELD):
                continue
            data = line[len(DATA_FIELD) :].strip()
            if data == DONE_SENTINEL:
                # Anything after the sentinel is discarded
                self.done = True
                self._buffer = ""
                break
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Skipping malformed stream line: {line!r}")
                continue
            if isinstance(payload, dict):
                payloads.append(payload)
        return payloads


def iter_events(chunks: Iterable[bytes | str]) -> Iterator[dict]:
    """Lazily decodes an iterable of read windows into payloads."""
    decoder = StreamDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.close()


def extract_delta(payload: dict) -> str | None:
    """Returns choices[0].delta.content when present and non-empty."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None
