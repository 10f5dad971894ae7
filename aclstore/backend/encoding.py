"""
Key encoding for document field names.

Subject ids and key names end up as MongoDB field names, where "." is the
path separator and a leading "$" marks an operator. Strings are therefore
percent-encoded (the unreserved set matches JavaScript's
encodeURIComponent) with "." additionally escaped as "%2E". Anything that
is not a string passes through untouched, so numeric subject ids are stored
as numbers.

Invariants:
    - decode_text(encode_text(s)) == s for every str s
    - Encoded strings never contain "." or "$"
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote, unquote

# Characters encodeURIComponent leaves alone besides [A-Za-z0-9_.-~]
_SAFE = "!*'()"


def encode_text(value: Any) -> Any:
    """Percent-encode a string; other values are returned unchanged."""
    if isinstance(value, str):
        return quote(value, safe=_SAFE).replace(".", "%2E")
    return value


def decode_text(value: Any) -> Any:
    """Reverse encode_text(); other values are returned unchanged."""
    if isinstance(value, str):
        return unquote(value)
    return value


def encode_all(values: Any) -> Any:
    if isinstance(values, (list, tuple)):
        return [encode_text(v) for v in values]
    return values


def decode_keys(document: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of a document with every field name decoded."""
    return {decode_text(name): value for name, value in document.items()}


def as_list(values: Any) -> list[Any]:
    """Normalize a scalar or a collection into a list (strings are scalars)."""
    if isinstance(values, (list, tuple, set, frozenset)):
        return list(values)
    if isinstance(values, Iterable) and not isinstance(values, (str, bytes, Mapping)):
        return list(values)
    return [values]


def make_list(values: Any) -> list[Any]:
    """Normalize to a list and encode every element."""
    return encode_all(as_list(values))


def field_name(value: Any) -> str:
    """Encoded form of a key, usable as a document field name."""
    return str(encode_text(value))
