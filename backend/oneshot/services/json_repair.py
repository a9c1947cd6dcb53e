"""Strict-then-lenient JSON parsing for LLM responses.

Text models routinely wrap JSON in prose or code fences, leave trailing
commas and put raw newlines inside string values. parse_lenient() tries a
strict parse first and only then applies the normalisation passes below, in
order. Each pass is a plain str -> str function so it can be tested alone.
"""

import json
import logging
import re
from typing import Any, Callable

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f]")
_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def extract_json_object(text: str) -> str:
    """Return the substring from the first '{' to the last '}'.

    Raises:
        ValueError: If the text contains no braced object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("No JSON object found in response")
    return text[start:end + 1]


def strip_trailing_commas(text: str) -> str:
    """Remove commas directly preceding a closing '}' or ']'."""
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def escape_control_chars(text: str) -> str:
    """Escape raw newlines, carriage returns and tabs inside string literals.

    Characters outside string literals are structural whitespace and are
    left alone.
    """
    out = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch in _ESCAPES:
                out.append(_ESCAPES[ch])
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def strip_control_chars(text: str) -> str:
    """Replace every ASCII control character with a space."""
    return _CONTROL_CHARS_RE.sub(" ", text)


NORMALISATION_PASSES: tuple[Callable[[str], str], ...] = (
    extract_json_object,
    strip_trailing_commas,
    escape_control_chars,
)


def parse_lenient(raw: str) -> Any:
    """Parse a JSON object from a model response, repairing common defects.

    Raises:
        ValueError: If no braced object is present.
        json.JSONDecodeError: If the text is still invalid after every pass.
    """
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        pass
    else:
        # A bare array or scalar may still wrap the object, e.g. [{...}]
        if isinstance(parsed, dict):
            return parsed

    text = raw
    for normalise in NORMALISATION_PASSES:
        text = normalise(text)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON still invalid after repair ({e}); stripping control characters")

    return json.loads(strip_control_chars(text))
