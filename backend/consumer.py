"""Client-side consumption of the relayed salary event stream.

:class:`StreamConsumer` reads the ``text/event-stream`` body chunk by chunk,
rebuilds the model's text by concatenating event payloads, re-parses the
whole buffer after every chunk and hands a fresh :class:`EstimationState` to
the render callback.
"""
import codecs
import logging
from dataclasses import dataclass, field
from typing import AsyncIterable, Callable, List, Optional

from payload import DelimitedPayloadParser, PayloadParser, SalaryEstimate, parse_error_payload

logger = logging.getLogger(__name__)


class EventStreamDecoder:
    """Incremental ``text/event-stream`` decoder.

    Only ``data:`` fields matter here; ``event:``, ``id:`` and comment lines
    are ignored. The ``data:`` lines of one event are joined with ``\\n``.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._data: List[str] = []

    def feed(self, chunk: bytes) -> List[str]:
        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return self._process(lines)

    def flush(self) -> List[str]:
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        events = self._process([tail]) if tail else []
        if self._data:
            events.append("\n".join(self._data))
            self._data = []
        return events

    def _process(self, lines: List[str]) -> List[str]:
        events: List[str] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line:
                if self._data:
                    events.append("\n".join(self._data))
                    self._data = []
                continue
            if not line.startswith("data:"):
                continue
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            self._data.append(value)
        return events


@dataclass(frozen=True)
class EstimationState:
    estimate: SalaryEstimate = field(default_factory=SalaryEstimate)
    text: str = ""
    complete: bool = False
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None


class StreamConsumer:
    def __init__(
        self,
        parser: Optional[PayloadParser] = None,
        on_update: Optional[Callable[[EstimationState], None]] = None,
    ):
        self.parser = parser or DelimitedPayloadParser()
        self.on_update = on_update
        self.reset()

    def reset(self) -> None:
        """Forget everything from a previous estimation request."""
        self._decoder = EventStreamDecoder()
        self._text = ""
        self._error: Optional[str] = None
        self.state = EstimationState()

    def feed(self, chunk: bytes) -> EstimationState:
        self._apply(self._decoder.feed(chunk))
        return self._publish(final=False)

    def finish(self) -> EstimationState:
        self._apply(self._decoder.flush())
        return self._publish(final=True)

    def fail(self, message: str) -> EstimationState:
        self._error = message
        return self._publish(final=True)

    async def consume(self, chunks: AsyncIterable[bytes]) -> EstimationState:
        """Drain ``chunks`` and return the final state."""
        self.reset()
        try:
            async for chunk in chunks:
                self.feed(chunk)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Salary stream read failed: {message}")
            return self.fail(message)
        return self.finish()

    def _apply(self, events: List[str]) -> None:
        for data in events:
            if self._error is not None:
                logger.debug("Ignoring event received after an error event")
                continue
            message = parse_error_payload(data)
            if message is not None:
                self._error = message
                continue
            self._text += data

    def _publish(self, *, final: bool) -> EstimationState:
        text_error = parse_error_payload(self._text)
        error = self._error if self._error is not None else text_error
        # Fragments received before an error event still render
        if text_error is not None:
            estimate = SalaryEstimate()
        else:
            estimate = self.parser.parse(self._text, final=final)
        self.state = EstimationState(estimate=estimate, text=self._text, complete=final, error=error)
        if self.on_update is not None:
            self.on_update(self.state)
        return self.state
