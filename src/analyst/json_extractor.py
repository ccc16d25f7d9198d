"""Recover JSON payloads from free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from analyst.exceptions import ExtractionFailed

logger = structlog.get_logger()

ANALYSIS_RESULT_MARKER = '"type": "analysis_result"'
PREVIEW_CHARS = 200

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```([\s\S]*?)```")

M = TypeVar("M", bound=BaseModel)


def extract_json(text: str | bytes, marker: str = ANALYSIS_RESULT_MARKER) -> Any:
    """
    Strategies, first match wins:
    1. Marker present: balanced-brace scan from the last '{' before the marker.
    2. First ```json fence, else the first untagged fence holding an object or array.
    3. First '{' to last '}'.
    Raises ExtractionFailed when nothing parses.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise _failure(f"invalid UTF-8: {e.reason}", text.decode("utf-8", "replace")) from e

    clean = text.strip()
    try:
        if marker and marker in clean:
            candidate = _balanced_object(clean, clean.index(marker))
            if candidate is not None:
                return json.loads(candidate)

        fenced = _fenced_payload(clean)
        if fenced:
            return json.loads(fenced)

        first_open = clean.find("{")
        last_close = clean.rfind("}")
        if first_open != -1 and last_close > first_open:
            return json.loads(clean[first_open : last_close + 1])
    except (json.JSONDecodeError, RecursionError) as e:
        raise _failure(str(e), text) from e

    raise _failure("No JSON found", text)


def parse_model(text: str | bytes, model_cls: type[M], marker: str = ANALYSIS_RESULT_MARKER) -> M:
    """Extract JSON and validate it against `model_cls`. Wrong shape counts as a failed extraction."""
    data = extract_json(text, marker=marker)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raw = text if isinstance(text, str) else text.decode("utf-8", "replace")
        raise _failure(
            f"schema mismatch for {model_cls.__name__}: {e.error_count()} errors", raw
        ) from e


def _fenced_payload(text: str) -> str | None:
    """First ```json block; an untagged fence counts only if it holds an object or array."""
    tagged = _JSON_FENCE.search(text)
    if tagged:
        return tagged.group(1)
    for match in _ANY_FENCE.finditer(text):
        body = match.group(1).strip()
        if body.startswith(("{", "[")):
            return body
    return None


def _balanced_object(text: str, marker_index: int) -> str | None:
    start = text.rfind("{", 0, marker_index)
    if start == -1:
        return None
    balance = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            balance += 1
        elif char == "}":
            balance -= 1
            if balance == 0:
                return text[start : i + 1]
    return None


def _failure(reason: str, text: str) -> ExtractionFailed:
    preview = text[:PREVIEW_CHARS]
    logger.warning("json_extraction_failed", reason=reason, length=len(text), preview=preview)
    return ExtractionFailed(reason, length=len(text), preview=preview)
