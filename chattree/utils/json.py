"""JSON helpers for decoding stored conversations.

Older exports wrote maps as arrays of [key, value] pairs; newer ones write
plain objects. Both are accepted.
"""

import json
from typing import Any


def entries_to_dict(raw: Any, fallback: dict | None = None) -> dict:
    """Normalize a map that may be an object or a list of [key, value] pairs.

    Returns `fallback` (or an empty dict) for None. Raises ValueError for
    anything else that is not map-shaped.
    """
    if raw is None:
        return dict(fallback or {})
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, list):
        result: dict = {}
        for entry in raw:
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                raise ValueError(f"Expected [key, value] pair, got {entry!r}")
            if not isinstance(entry[0], str):
                raise ValueError(f"Expected string key, got {entry[0]!r}")
            result[entry[0]] = entry[1]
        return result
    raise ValueError(f"Expected object or list of pairs, got {type(raw).__name__}")


def parse_json_object(raw: str | bytes | dict) -> dict[str, Any]:
    """Parse a JSON document that must be an object. Dicts pass through.

    Raises ValueError for invalid JSON or a non-object document.
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, (str, bytes)):
        raise ValueError(f"Expected JSON document, got {type(raw).__name__}")
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected JSON object, got {type(parsed).__name__}")
    return parsed
