"""Oracle JSON — extraction of a JSON object from model text output.

Invariants:
    - Returns a dict or raises ValueError — never invents content
    - Handles markdown-fenced output (```json ... ```) and leading prose

Design Decisions:
    - Two levels only (direct parse, first {...} block): structured outputs feed
      persisted records, so unparseable text must surface as malformed
"""

import json
import re

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> dict:
    """Parse the first JSON object in text. Raises ValueError if there is none."""
    text = (text or "").strip()
    if not text:
        raise ValueError("empty oracle output")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(text)
        if not match:
            raise ValueError("no JSON object in oracle output")
        try:
            parsed = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON in oracle output: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError(f"expected JSON object, got {type(parsed).__name__}")
    return parsed
