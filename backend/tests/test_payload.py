"""Tests for the salary payload parsers."""

import pytest

from exceptions import PayloadError
from payload import DelimitedPayloadParser, JsonPayloadParser, SalaryEstimate, parse_error_payload

FULL = "100k-120k ;; high ;; strong demand"


@pytest.fixture
def parser() -> DelimitedPayloadParser:
    return DelimitedPayloadParser()


@pytest.mark.parametrize("text", ["", "   ", "\n\t "])
def test_empty_buffer_is_unresolved(parser, text):
    estimate = parser.parse(text)
    assert estimate.is_empty
    assert estimate == SalaryEstimate()


def test_complete_payload(parser):
    estimate = parser.parse(FULL, final=True)
    assert estimate.salary_range == "100k-120k"
    assert estimate.confidence_level == "high"
    assert estimate.reasoning == "strong demand"
    assert estimate.is_complete


def test_fields_appear_in_order_for_every_prefix(parser):
    final = parser.parse(FULL, final=True)
    final_fields = [final.salary_range, final.confidence_level, final.reasoning]
    previous = SalaryEstimate()
    for end in range(1, len(FULL) + 1):
        prefix = FULL[:end]
        estimate = parser.parse(prefix)
        fields = [estimate.salary_range, estimate.confidence_level, estimate.reasoning]

        expected_count = min(prefix.count(";;") + 1, 3)
        assert sum(f is not None for f in fields) == expected_count, prefix
        # Populated fields form a leading run: nothing out of order
        assert fields[:expected_count] == [f for f in fields if f is not None]
        for value, final_value in zip(fields, final_fields):
            if value is not None:
                assert final_value.startswith(value), (prefix, value)

        # Growing the buffer never un-sets a field
        for old, new in zip(
            [previous.salary_range, previous.confidence_level, previous.reasoning], fields
        ):
            if old is not None:
                assert new is not None
        previous = estimate


def test_parse_is_a_function_of_buffer_only(parser):
    assert parser.parse("100k ;; med") == parser.parse("100k ;; med")
    assert parser.parse("100k ;; med") is not parser.parse("100k ;; med")


def test_partial_delimiter_is_held_back_until_final(parser):
    assert parser.parse("100k-120k ;").salary_range == "100k-120k"
    assert parser.parse("100k-120k ;", final=True).salary_range == "100k-120k ;"


def test_delimiter_inside_reasoning_stays_in_reasoning(parser):
    estimate = parser.parse("90k ;; low ;; pros ;; cons", final=True)
    assert estimate.confidence_level == "low"
    assert estimate.reasoning == "pros ;; cons"


def test_reasoning_keeps_newlines(parser):
    estimate = parser.parse("90k ;;\nmedium ;;\nLine one.\nLine two.", final=True)
    assert estimate.confidence_level == "medium"
    assert estimate.reasoning == "Line one.\nLine two."


def test_estimate_is_immutable(parser):
    estimate = parser.parse(FULL)
    with pytest.raises(Exception):
        estimate.salary_range = "1"


def test_to_json_uses_camel_case(parser):
    assert parser.parse(FULL).to_json() == {
        "salaryRange": "100k-120k",
        "confidenceLevel": "high",
        "reasoning": "strong demand",
    }


def test_rejects_empty_delimiter():
    with pytest.raises(ValueError):
        DelimitedPayloadParser(delimiter="")


class TestJsonPayloadParser:
    def test_parses_object(self):
        text = '{"salaryRange": "$90,000 - $110,000", "confidenceLevel": "medium", "reasoning": "Mid-level role."}'
        estimate = JsonPayloadParser().parse(text)
        assert estimate.salary_range == "$90,000 - $110,000"
        assert estimate.confidence_level == "medium"
        assert estimate.reasoning == "Mid-level role."

    def test_extracts_object_from_surrounding_text(self):
        text = 'Here you go:\n```json\n{"salaryRange": "80k", "confidenceLevel": "low", "reasoning": "x"}\n```'
        assert JsonPayloadParser().parse(text).salary_range == "80k"

    def test_missing_fields_stay_unresolved(self):
        estimate = JsonPayloadParser().parse('{"salaryRange": "80k"}')
        assert estimate.confidence_level is None
        assert estimate.reasoning is None

    def test_non_string_values_are_serialized(self):
        estimate = JsonPayloadParser().parse('{"salaryRange": {"min": 1, "max": 2}}')
        assert estimate.salary_range == '{"min": 1, "max": 2}'

    @pytest.mark.parametrize("text", ["no json here", "[1, 2]", "{broken"])
    def test_invalid_payload_raises(self, text):
        with pytest.raises(PayloadError):
            JsonPayloadParser().parse(text)


@pytest.mark.parametrize(
    "text,expected",
    [
        ('{"error": "boom"}', "boom"),
        ('  {"error": "OpenAI API error: 500 - down"}\n', "OpenAI API error: 500 - down"),
        ("100k ;; high", None),
        ('{"salaryRange": "1"}', None),
        ("{not json}", None),
        ("", None),
    ],
)
def test_parse_error_payload(text, expected):
    assert parse_error_payload(text) == expected
