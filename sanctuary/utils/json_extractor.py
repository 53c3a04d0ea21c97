"""
Pull one JSON object out of a model answer.

The analysis prompts ask for bare JSON, but answers still arrive wrapped in
```json fences or padded with a sentence of commentary. Candidates are tried
in order and the first one that parses to an object wins:

    1. the whole answer, stripped;
    2. the body of the last fenced block (tagged ``json`` or untagged);
    3. each balanced ``{...}`` span, scanning left to right.

Fenced and bare answers therefore normalize to the same dict.
"""
import json
import logging
from typing import Iterator, Optional

logger = logging.getLogger("sanctuary.json_extractor")

FENCE = "```"


def extract_json_object(text: Optional[str], task: str = "analysis") -> Optional[dict]:
    """Return the first candidate that decodes to a ``dict``, else ``None``.

    Field validation is the caller's job.
    """
    if not text or not text.strip():
        logger.warning("json_extract_failed | task=%s | reason=empty", task)
        return None

    for candidate in _candidates(text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.warning(
        "json_extract_failed | task=%s | reason=no_object | len=%d | tail=%.200s",
        task, len(text), text[-200:],
    )
    return None


def _candidates(text: str) -> Iterator[str]:
    yield text.strip()

    fenced = _last_fenced_block(text)
    if fenced:
        yield fenced

    yield from _balanced_objects(text)


def _last_fenced_block(text: str) -> Optional[str]:
    closing = text.rfind(FENCE)
    if closing == -1:
        return None
    opening = text.rfind(FENCE, 0, closing)
    # A lone marker means the answer was cut off inside the block
    body = text[closing + len(FENCE):] if opening == -1 else text[opening + len(FENCE):closing]
    body = body.strip()
    if body[:4].lower() == "json":
        body = body[4:].strip()
    return body or None


def _balanced_objects(text: str) -> Iterator[str]:
    start = text.find("{")
    while start != -1:
        end = _closing_brace(text, start)
        if end is not None:
            yield text[start:end + 1]
        start = text.find("{", start + 1)


def _closing_brace(text: str, start: int) -> Optional[int]:
    """Index of the ``}`` balancing ``text[start]``, ignoring braces inside strings."""
    depth = 0
    in_string = escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None
