"""
Clean up free-text model output before JSON parsing.

Chat models often wrap the requested JSON in markdown code fences or surround it
with a sentence of prose. These helpers peel that off without ever trying to
repair the JSON itself.
"""

import re

_OPENING_FENCE = re.compile(r"^```(?:json|JSON)?[ \t]*\r?\n?")
_CLOSING_FENCE = re.compile(r"\r?\n?[ \t]*```$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = text.strip()
    cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def find_balanced_object(text: str):
    """
    Return the first balanced {...} block of ``text``, or None.

    Braces inside JSON strings are ignored, so a segment whose content
    contains "{" or "}" does not end the block early.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for position in range(start, len(text)):
        char = text[position]
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
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:position + 1]
    return None


def extract_json_payload(content: str) -> str:
    """
    Normalize raw model output into the text most likely to be the JSON payload.
    Falls back to the fence-stripped text when no balanced object is found,
    leaving the parse failure to the caller.
    """
    cleaned = strip_code_fences(content or "")
    block = find_balanced_object(cleaned)
    return block if block is not None else cleaned
