"""Parsers turning completion text into a :class:`SalaryEstimate`.

The streaming estimate uses a three-field text format::

    <SALARY_RANGE> ;; <CONFIDENCE_LEVEL> ;; <REASONING>

The text arrives a few tokens at a time, so :class:`DelimitedPayloadParser`
is re-run against the whole accumulated buffer after every chunk. Parsing is
a pure function of the buffer: a longer buffer never un-sets a field that a
shorter prefix had resolved.

The blocking estimate asks the model for a JSON object instead, which is
handled by :class:`JsonPayloadParser`. Both share the :class:`PayloadParser`
interface so the relay and the consumer never depend on the wire format.
"""
import json
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from exceptions import PayloadError

DELIMITER = ";;"
FIELD_COUNT = 3


class SalaryEstimate(BaseModel):
    """Immutable snapshot of the best-known estimate."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    salary_range: Optional[str] = Field(default=None, alias="salaryRange")
    confidence_level: Optional[str] = Field(default=None, alias="confidenceLevel")
    reasoning: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.salary_range is None and self.confidence_level is None and self.reasoning is None

    @property
    def is_complete(self) -> bool:
        return None not in (self.salary_range, self.confidence_level, self.reasoning)

    def to_json(self) -> Dict[str, Optional[str]]:
        return self.model_dump(by_alias=True)


class PayloadParser(Protocol):
    def parse(self, text: str, *, final: bool = False) -> SalaryEstimate:
        ...


class DelimitedPayloadParser:
    """Parse ``range ;; confidence ;; reasoning`` from a growing buffer.

    Field *i* is populated as soon as segment *i* exists, so the salary range
    shows up while it is still being typed and the confidence level appears
    once the first delimiter has been seen. Only the first two delimiters
    split; anything after them belongs to the reasoning.

    While the stream is still open (``final=False``) a dangling partial
    delimiter at the very end of the buffer is held back, otherwise a lone
    ``;`` would flash into the current field until its partner arrives.
    """

    def __init__(self, delimiter: str = DELIMITER):
        if not delimiter:
            raise ValueError("delimiter must be a non-empty string")
        self.delimiter = delimiter

    def split(self, text: str, *, final: bool = False) -> List[str]:
        if not text or not text.strip():
            return []
        segments = text.split(self.delimiter, FIELD_COUNT - 1)
        if not final and len(segments) < FIELD_COUNT:
            segments[-1] = self._strip_partial_delimiter(segments[-1])
        return [s.strip() for s in segments]

    def parse(self, text: str, *, final: bool = False) -> SalaryEstimate:
        segments = self.split(text, final=final)
        values: List[Optional[str]] = list(segments) + [None] * (FIELD_COUNT - len(segments))
        return SalaryEstimate(
            salary_range=values[0],
            confidence_level=values[1],
            reasoning=values[2],
        )

    def _strip_partial_delimiter(self, segment: str) -> str:
        for size in range(len(self.delimiter) - 1, 0, -1):
            if segment.endswith(self.delimiter[:size]):
                return segment[:-size]
        return segment


class JsonPayloadParser:
    """Parse the JSON object returned by the blocking estimate."""

    def parse(self, text: str, *, final: bool = True) -> SalaryEstimate:
        if not text or not text.strip():
            return SalaryEstimate()
        try:
            obj = json.loads(text)
        except json.JSONDecodeError:
            # Models occasionally wrap the object in prose or code fences
            start = text.find('{')
            end = text.rfind('}') + 1
            if start < 0 or end <= start:
                raise PayloadError("Completion did not contain a JSON object")
            try:
                obj = json.loads(text[start:end])
            except json.JSONDecodeError as e:
                raise PayloadError(f"Completion JSON could not be parsed: {e}") from e
        if not isinstance(obj, dict):
            raise PayloadError("Completion JSON is not an object")
        return SalaryEstimate(
            salary_range=_as_text(obj.get("salaryRange")),
            confidence_level=_as_text(obj.get("confidenceLevel")),
            reasoning=_as_text(obj.get("reasoning")),
        )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    return json.dumps(value, ensure_ascii=False)


def parse_error_payload(text: str) -> Optional[str]:
    """Return the message of a ``{"error": ...}`` payload, else ``None``."""
    candidate = (text or "").strip()
    if not (candidate.startswith("{") and candidate.endswith("}")):
        return None
    try:
        obj = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if isinstance(obj, dict) and "error" in obj:
        return str(obj["error"])
    return None
