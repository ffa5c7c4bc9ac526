"""Turn free-form model output into decoded JSON.

Models are asked for bare JSON but routinely wrap it in markdown fences, add
prose around it, leave trailing commas or break lines inside string values.
``extract_json`` tries three strategies in order and returns the first value
that parses:

1. the whole text as-is;
2. the contents of each fenced code block, after ``clean_json``;
3. every balanced ``{...}`` span found by a string-aware scan that
   restarts at each ``{``, after ``clean_json``.

``clean_json`` only rewrites things that are invalid JSON, so a valid
document keeps its meaning, and it is idempotent.
"""
from __future__ import annotations

import json
import re
from typing import Any, Iterator

from loguru import logger

from deepreport.errors import ExtractionError

FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
TRAILING_COMMA_RE = re.compile(r"(?:,\s*)+(?=[}\]])")
STRUCTURAL_SPACE_RE = re.compile(r"\s*([{}\[\],:])\s*")
WHITESPACE_RE = re.compile(r"\s+")
ESCAPED_QUOTE_RE = re.compile(r'(\\*)"')

SIMPLE_ESCAPES = frozenset('"\\/bfnrt')
HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}
STRAY_OUTSIDE_STRINGS = str.maketrans("", "", "\\>")


def _has_bare_quote(text: str) -> bool:
    return any(len(m.group(1)) % 2 == 0 for m in ESCAPED_QUOTE_RE.finditer(text))


def _unescape_quoted_payload(text: str) -> str:
    """Undo one level of quote escaping for payloads like ``{\\"a\\": 1}``."""
    if '"' not in text or _has_bare_quote(text):
        return text
    return ESCAPED_QUOTE_RE.sub(lambda m: m.group(1)[:-1] + '"', text)


def _split_segments(text: str) -> list[tuple[bool, str, bool]]:
    """Split text into ``(is_string, body, closed)`` segments.

    String bodies exclude their delimiters; ``closed`` is False only for a
    string that runs to the end of the text.
    """
    segments: list[tuple[bool, str, bool]] = []
    outside: list[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch != '"':
            outside.append(ch)
            i += 1
            continue

        segments.append((False, "".join(outside), True))
        outside = []
        body: list[str] = []
        closed = False
        j = i + 1
        while j < n:
            c = text[j]
            if c == "\\":
                body.append(text[j : j + 2])
                j += 2
                continue
            if c == '"':
                closed = True
                j += 1
                break
            body.append(c)
            j += 1
        segments.append((True, "".join(body), closed))
        i = j

    segments.append((False, "".join(outside), True))
    return segments


def _clean_string_body(body: str) -> str:
    out: list[str] = []
    i, n = 0, len(body)
    while i < n:
        ch = body[i]
        if ch == "\\":
            nxt = body[i + 1] if i + 1 < n else ""
            if nxt == "u" and len(body[i + 2 : i + 6]) == 4 and set(body[i + 2 : i + 6]) <= HEX_DIGITS:
                out.append(body[i : i + 6])
                i += 6
                continue
            if nxt and nxt in SIMPLE_ESCAPES:
                out.append(body[i : i + 2])
                i += 2
                continue
            # Invalid escape: keep the backslash as a literal character.
            out.append("\\\\")
            i += 1
            continue
        if ch in CONTROL_ESCAPES:
            out.append(CONTROL_ESCAPES[ch])
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _clean_structure(text: str) -> str:
    text = text.translate(STRAY_OUTSIDE_STRINGS)
    text = TRAILING_COMMA_RE.sub("", text)
    text = STRUCTURAL_SPACE_RE.sub(r"\1", text).strip()
    return WHITESPACE_RE.sub(" ", text)


def clean_json(text: str) -> str:
    """Repair common defects in model-written JSON.

    - invalid backslash escapes inside strings are re-escaped;
    - literal newlines and other control characters inside strings are escaped;
    - block-quote markers and stray backslashes outside strings are dropped;
    - trailing commas before ``}`` / ``]`` are removed;
    - whitespace outside strings is collapsed, and removed next to quotes
      and structural characters;
    - a payload whose every quote is escaped is unescaped once.
    """
    text = _unescape_quoted_payload(text)
    segments = _split_segments(text)
    parts: list[str] = []
    for is_string, body, closed in segments:
        if is_string:
            parts.append('"' + _clean_string_body(body) + ('"' if closed else ""))
        else:
            parts.append(_clean_structure(body))
    return "".join(parts)


def _balanced_end(text: str, start: int) -> int:
    """Index just past the ``}`` that closes the ``{`` at ``start``, or -1."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def iter_brace_candidates(text: str) -> Iterator[str]:
    """Yield balanced ``{...}`` spans, ignoring braces in strings.

    Each ``{`` starts a fresh scan, so an unmatched brace or a stray quote in
    the surrounding prose never hides a later object. When the consumer asks
    for another candidate the scan resumes at the next ``{`` after the
    previous start.
    """
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end != -1:
            yield text[start:end]
        start = text.find("{", start + 1)


def _try_parse(candidate: str, strategy: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(clean_json(candidate))
    except json.JSONDecodeError as exc:
        logger.debug(f"{strategy} parse failed: {exc} | input={candidate[:100]!r}")
        return False, None


def extract_json(text: str) -> Any:
    """Return the first JSON value recoverable from ``text``.

    Raises ``ExtractionError`` when every strategy fails.
    """
    if not isinstance(text, str):
        raise ExtractionError("Model response is not text", raw_text=repr(text))

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Direct parse failed, looking for fenced code blocks")

    for match in FENCED_BLOCK_RE.finditer(text):
        ok, value = _try_parse(match.group(1), "Code block")
        if ok:
            return value

    for candidate in iter_brace_candidates(text):
        ok, value = _try_parse(candidate, "Brace match")
        if ok:
            return value

    logger.warning(f"No valid JSON found in model response: {text[:100]!r}")
    raise ExtractionError("No valid JSON found in response", raw_text=text)


def extract_json_object(text: str) -> dict[str, Any]:
    """Like ``extract_json`` but the result must be a JSON object."""
    value = extract_json(text)
    if not isinstance(value, dict):
        raise ExtractionError("Expected a JSON object", raw_text=text)
    return value
