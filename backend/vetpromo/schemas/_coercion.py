"""
Normalizers for loosely-typed JSON columns, applied before pydantic validation.
"""
import json
from typing import Any, List


def as_list(value: Any) -> List[Any]:
    """
    Coerce a JSON/array column into a Python list.

    Accepts None, a list/tuple/set, a JSON-encoded array or a bare string.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        if stripped.startswith("["):
            decoded = json.loads(stripped)
            return decoded if isinstance(decoded, list) else [decoded]
        return [stripped]
    return [value]


def as_mapping(value: Any) -> Any:
    """Decode a JSON-encoded object column; other values pass through."""
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        return json.loads(stripped)
    return value
