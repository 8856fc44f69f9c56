"""
Canonical JSON for evidence digests.

Two drafts that differ only in key order or container type must hash to the
same payload and metadata digests. Encoding is compact JSON with keys in code
point order, UTF-8 without escaping of non-ASCII characters.
"""

import json
from enum import Enum
from typing import Any

_SEPARATORS = (',', ':')
_SCALARS = (str, int, float, bool, type(None))


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, dict):
        return {key: _normalize(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_normalize(item) for item in value)
    raise ValueError(f"Unsupported type for canonical JSON: {type(value).__name__}")


def canonicalize(obj: Any) -> bytes:
    """
    Encode ``obj`` as canonical JSON bytes.

    Enum members are replaced by their values, sets become sorted arrays and
    list order is kept as given. Anything else outside plain JSON types raises
    ``ValueError``.
    """
    text = json.dumps(_normalize(obj), separators=_SEPARATORS, ensure_ascii=False)
    return text.encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    return canonicalize(obj).decode('utf-8')
