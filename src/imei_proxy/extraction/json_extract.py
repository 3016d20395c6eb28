"""JSON extraction from free-form completion text.

Strategies are tried in order; the first one that yields a value of the
expected shape wins:
  1. ``fenced``  - body of a ```json ... ``` (or untagged) code fence
  2. ``direct``  - the whole stripped text
  3. ``bracket`` - first opening / last closing delimiter, no balancing

Every strategy parses strictly. If none succeeds the extractor raises
MalformedResponseError carrying the raw text; it never guesses.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterable

from ..config import EXTRACTION_STRATEGIES, ExtractionMode
from ..exceptions import MalformedResponseError

logger = logging.getLogger("imei-proxy")

DEFAULT_STRATEGIES = EXTRACTION_STRATEGIES

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)

_DELIMITERS = {
    ExtractionMode.ARRAY: ("[", "]"),
    ExtractionMode.OBJECT: ("{", "}"),
}

_SHAPES = {
    ExtractionMode.ARRAY: list,
    ExtractionMode.OBJECT: dict,
}


def _fenced(text: str, mode: ExtractionMode) -> str | None:
    match = _FENCE_RE.search(text)
    if match is None:
        return None
    return match.group(1).strip()


def _direct(text: str, mode: ExtractionMode) -> str | None:
    return text.strip() or None


def _bracket(text: str, mode: ExtractionMode) -> str | None:
    opening, closing = _DELIMITERS[mode]
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end == -1 or end < start:
        return None
    return text[start : end + 1]


STRATEGIES: dict[str, Callable[[str, ExtractionMode], str | None]] = {
    "fenced": _fenced,
    "direct": _direct,
    "bracket": _bracket,
}


def extract_json(
    text: str,
    mode: ExtractionMode = ExtractionMode.ARRAY,
    strategies: Iterable[str] = DEFAULT_STRATEGIES,
) -> Any:
    """Locate and strictly parse the JSON fragment embedded in *text*.

    Returns a list in array mode and a dict in object mode.

    Raises MalformedResponseError if no strategy produces a fragment of
    the expected shape.
    """
    text = text or ""
    shape = _SHAPES[mode]

    for name in strategies:
        fragment = STRATEGIES[name](text, mode)
        if fragment is None:
            continue
        try:
            value = json.loads(fragment)
        except json.JSONDecodeError:
            continue
        if isinstance(value, shape):
            return value

    logger.debug("No JSON fragment found in completion: %r", text)
    raise MalformedResponseError(raw_text=text)


def extract_digits(text: str) -> str:
    """Strip every non-digit character: ``"IMEI#: 35-67"`` -> ``"3567"``."""
    return re.sub(r"\D", "", text or "")
