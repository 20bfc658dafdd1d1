# tradesight/core/json_extract.py
"""
Recover one JSON object from a generative model response.

Models do not reliably honor "return only JSON": the payload may be bare,
wrapped in a fenced block (with or without a language tag), or surrounded by
explanation text. The strategies below are tried in order and the first one
that yields a JSON object wins.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List

from tradesight.core.exceptions import ExtractionError
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)

_LEADING_FENCE_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_TRAILING_FENCE_RE = re.compile(r"\r?\n?```\s*$")
_FENCED_BLOCK_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)


def _as_object(parsed: Any) -> Dict[str, Any]:
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _brace_span(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("no brace-delimited span")
    return text[start:end + 1]


def _parse_unfenced(text: str) -> Dict[str, Any]:
    body = _LEADING_FENCE_RE.sub("", text.strip())
    body = _TRAILING_FENCE_RE.sub("", body)
    return _as_object(json.loads(body.strip()))


def _parse_fenced_block(text: str) -> Dict[str, Any]:
    blocks = _FENCED_BLOCK_RE.findall(text)
    if not blocks:
        raise ValueError("no fenced block")
    last_error: Exception = ValueError("no parseable fenced block")
    for block in blocks:
        try:
            return _as_object(json.loads(block.strip()))
        except ValueError as e:
            last_error = e
    raise last_error


def _parse_brace_span(text: str) -> Dict[str, Any]:
    return _as_object(json.loads(_brace_span(text)))


def _clean_json_like(s: str) -> str:
    x = re.sub(r"//[^\n\"]*$", "", s, flags=re.MULTILINE)
    x = re.sub(r"/\*.*?\*/", "", x, flags=re.DOTALL)
    x = x.replace("“", '"').replace("”", '"').replace("‘", "'").replace("’", "'")
    x = re.sub(r"\bTrue\b", "true", x)
    x = re.sub(r"\bFalse\b", "false", x)
    x = re.sub(r"\bNone\b", "null", x)
    x = re.sub(r"\bNaN\b", "null", x)
    if '"' not in x and "'" in x:
        x = x.replace("'", '"')
    x = "".join(ch for ch in x if ch.isprintable() or ch in "\n\r\t")
    return re.sub(r",\s*(?=[}\]])", "", x)


def _parse_lenient(text: str) -> Dict[str, Any]:
    return _as_object(json.loads(_clean_json_like(_brace_span(text))))


EXTRACTION_STRATEGIES: List[Callable[[str], Dict[str, Any]]] = [
    _parse_unfenced,
    _parse_fenced_block,
    _parse_brace_span,
    _parse_lenient,
]


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Return the first JSON object recoverable from `text`.

    Raises:
        ExtractionError: if no strategy yields a JSON object
    """
    if not text or not str(text).strip():
        raise ExtractionError()

    raw = str(text)
    for strategy in EXTRACTION_STRATEGIES:
        try:
            return strategy(raw)
        except ValueError as e:
            logger.debug(f"[JSONExtract] {strategy.__name__} missed: {e}")
            continue

    logger.warning(f"[JSONExtract] No JSON object in model response: {raw[:200]!r}")
    raise ExtractionError()
