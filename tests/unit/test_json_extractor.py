"""Unit tests for extract_json / parse_model: recovering JSON from model prose."""

from __future__ import annotations

import json

import pytest

from analyst.exceptions import ExtractionFailed
from analyst.json_extractor import extract_json, parse_model
from analyst.models.recommendation import SynthesisEnvelope
from analyst.models.research import AuditResult, ResearchPlan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def envelope():
    return {
        "type": "analysis_result",
        "data": {
            "text": "Market is {choppy}; see https://example.com/btc?x=1 // not a comment",
            "recommendations": [
                {"action": "BUY", "asset": "BTCUSDT", "suggested_quantity": 0.002},
            ],
        },
    }


# ---------------------------------------------------------------------------
# Marker-anchored balanced scan
# ---------------------------------------------------------------------------


class TestMarkerScan:
    def test_recovers_object_with_nested_braces_in_strings(self, envelope):
        """Nested objects and braces inside string values must not truncate the payload."""
        text = (
            "Here is the verdict.\n"
            + json.dumps(envelope, indent=2)
            + "\nExample of a bad object: {oops}"
        )
        assert extract_json(text) == envelope

    def test_unbalanced_brace_inside_string(self):
        """A lone '}' inside a string value is not counted."""
        payload = {"type": "analysis_result", "data": {"text": "close bracket } here", "recommendations": []}}
        text = "prefix " + json.dumps(payload) + " suffix }"
        assert extract_json(text) == payload

    def test_prefers_marker_object_over_earlier_example(self, envelope):
        text = 'Schema example: {"steps": []}\n\n' + json.dumps(envelope)
        assert extract_json(text) == envelope

    def test_marker_inside_fenced_block(self, envelope):
        text = "Narrative first.\n```json\n" + json.dumps(envelope, indent=2) + "\n```"
        assert extract_json(text) == envelope

    def test_broken_marker_object_raises(self):
        text = '{"type": "analysis_result", "data": {"text": "x",}}'
        with pytest.raises(ExtractionFailed):
            extract_json(text)


# ---------------------------------------------------------------------------
# Fenced block
# ---------------------------------------------------------------------------


class TestFencedBlock:
    def test_fenced_json_among_prose_with_braces(self):
        """Prose containing stray braces and URLs around a fenced object."""
        obj = {"audit_findings": "ok", "recommended_adjustments": ["trim {ETH}"]}
        text = (
            "I looked at {the portfolio} and https://binance.com/en.\n"
            "```json\n" + json.dumps(obj) + "\n```\n"
            "Closing remark with a } brace."
        )
        assert extract_json(text) == obj

    def test_untagged_fence(self):
        text = 'Result:\n```\n{"steps": []}\n```'
        assert extract_json(text) == {"steps": []}

    def test_earlier_inline_fence_skipped(self):
        obj = {"audit_findings": "ok", "recommended_adjustments": []}
        text = "Run ```pip install ta``` first.\n```json\n" + json.dumps(obj) + "\n```"
        assert extract_json(text) == obj

    def test_earlier_code_fence_skipped(self):
        obj = {"steps": [{"description": "d", "searchQuery": "gold"}]}
        text = "```python\nprint('hi')\n```\nPlan:\n```JSON\n" + json.dumps(obj) + "\n```"
        assert extract_json(text) == obj

    def test_untagged_fence_after_shell_fence(self):
        text = 'Install:\n```\npip install ta\n```\nThen:\n```\n{"candidate_tickers": ["BTCUSDT"]}\n```'
        assert extract_json(text) == {"candidate_tickers": ["BTCUSDT"]}

    def test_url_in_payload_survives(self):
        obj = {"url": "https://example.com/path", "note": "// kept"}
        text = "```json\n" + json.dumps(obj) + "\n```"
        assert extract_json(text)["url"] == "https://example.com/path"
        assert extract_json(text)["note"] == "// kept"


# ---------------------------------------------------------------------------
# First/last brace and failures
# ---------------------------------------------------------------------------


class TestFirstLastBrace:
    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_prose_around_object(self):
        assert extract_json('Sure! {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}


class TestFailures:
    def test_no_json_raises(self):
        with pytest.raises(ExtractionFailed) as exc_info:
            extract_json("I could not produce an answer.")
        assert exc_info.value.reason == "No JSON found"
        assert exc_info.value.length == len("I could not produce an answer.")

    def test_preview_truncated(self):
        text = "x" * 500 + "{broken"
        with pytest.raises(ExtractionFailed) as exc_info:
            extract_json(text)
        assert len(exc_info.value.preview) == 200
        assert exc_info.value.length == len(text)

    def test_malformed_json_raises(self):
        with pytest.raises(ExtractionFailed):
            extract_json("{'single': 'quotes'}")

    def test_invalid_utf8_is_extraction_failure(self):
        with pytest.raises(ExtractionFailed):
            extract_json(b'{"a": "\xff\xfe"}')

    def test_valid_utf8_bytes(self):
        assert extract_json('{"a": "ş"}'.encode("utf-8")) == {"a": "ş"}

    def test_error_code(self):
        with pytest.raises(ExtractionFailed) as exc_info:
            extract_json("")
        assert exc_info.value.code == "EXTRACTION_FAILED"


# ---------------------------------------------------------------------------
# parse_model()
# ---------------------------------------------------------------------------


class TestParseModel:
    def test_audit_result(self):
        text = '```json\n{"audit_findings": "Healthy", "recommended_adjustments": ["Close SOL"]}\n```'
        audit = parse_model(text, AuditResult)
        assert audit.findings == "Healthy"
        assert audit.recommended_adjustments == ["Close SOL"]

    def test_missing_required_field_rejected(self):
        with pytest.raises(ExtractionFailed) as exc_info:
            parse_model('{"recommended_adjustments": []}', AuditResult)
        assert "schema mismatch" in exc_info.value.reason

    def test_wrong_type_rejected(self):
        with pytest.raises(ExtractionFailed):
            parse_model('{"steps": "search the web"}', ResearchPlan)

    def test_plan_aliases(self):
        text = '{"steps": [{"action": "market_search", "description": "d", "searchQuery": "btc etf flows"}]}'
        plan = parse_model(text, ResearchPlan)
        assert plan.steps[0].search_query == "btc etf flows"

    def test_envelope_null_fields_default(self):
        text = '```json\n{"type": "analysis_result", "data": {"text": null, "recommendations": null}}\n```'
        parsed = parse_model(text, SynthesisEnvelope)
        assert parsed.data.text == ""
        assert parsed.data.recommendations == []

    def test_envelope_requires_data(self):
        with pytest.raises(ExtractionFailed):
            parse_model('{"type": "analysis_result"}', SynthesisEnvelope)

    def test_envelope(self, envelope):
        parsed = parse_model("Verdict:\n" + json.dumps(envelope), SynthesisEnvelope)
        assert parsed.data.recommendations[0]["asset"] == "BTCUSDT"
