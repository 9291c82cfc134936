import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)

FRAME_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def format_event(data: str) -> str:
    """Encode one normalized event-stream event.

    Single-line data becomes ``data: <data>\\n\\n``. Embedded newlines are
    split into several ``data:`` lines of the same event so consumers can
    rebuild the text exactly.
    """
    lines = data.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "".join(f"data: {line}\n" for line in lines) + "\n"


def format_error_event(message: str) -> str:
    return format_event(json.dumps({"error": message}))


def extract_delta(frame: Dict[str, Any]) -> Optional[str]:
    """Return ``choices[0].delta.content`` when present and non-empty."""
    choices = frame.get("choices")
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


class CompletionStreamAdapter:
    """Turn a chat-completion SSE body into normalized relay events.

    Feed raw transport chunks in arrival order; each call returns the events
    ready to forward. A line split across chunks is carried over to the next
    chunk, malformed frames are logged and skipped, and nothing is emitted
    after the ``[DONE]`` sentinel.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.done = False
        self.fragments = 0
        self.malformed = 0

    def feed(self, chunk: bytes) -> List[str]:
        if self.done:
            return []
        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return self._process_lines(lines)

    def flush(self) -> List[str]:
        """Process whatever is left once the transport has closed."""
        if self.done:
            return []
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._process_lines([tail])

    def _process_lines(self, lines: List[str]) -> List[str]:
        events: List[str] = []
        for raw in lines:
            line = raw.strip()
            if not line or not line.startswith(FRAME_PREFIX):
                continue
            payload = line[len(FRAME_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self.done = True
                break
            try:
                frame = json.loads(payload)
            except json.JSONDecodeError as e:
                self.malformed += 1
                logger.warning(f"Skipping malformed completion frame: {e} | {payload[:200]!r}")
                continue
            if not isinstance(frame, dict):
                self.malformed += 1
                logger.warning(f"Skipping non-object completion frame: {payload[:200]!r}")
                continue
            fragment = extract_delta(frame)
            if fragment:
                self.fragments += 1
                events.append(format_event(fragment))
        return events

    async def adapt(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
        """Pass-through transform from upstream chunks to relay events."""
        async for chunk in chunks:
            for event in self.feed(chunk):
                yield event
        for event in self.flush():
            yield event
        logger.debug(f"Completion stream adapted: fragments={self.fragments} malformed={self.malformed}")
