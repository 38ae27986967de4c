from __future__ import annotations

import json
from typing import Any
import collections.abc

import yaml


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode('utf-8')
    if isinstance(data, str):
        return data
    return str(data)


def _to_builtin(obj: Any, _path: frozenset = frozenset()) -> Any:
    # Mapping-like values (e.g. OrderedDict from a host) become plain dicts recursively
    if isinstance(obj, (list, collections.abc.Mapping)):
        if id(obj) in _path:
            raise ValueError("circular reference")
        path = _path | {id(obj)}
        if isinstance(obj, list):
            return [_to_builtin(x, path) for x in obj]
        return {k: _to_builtin(v, path) for k, v in obj.items()}
    return obj


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON number: {name}")


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str, *, fmt: str = 'json') -> Any:
    """
    Convert wire data (bytes/string) to native Python structures.
    Supported fmt: 'json', 'yaml'. Malformed input raises ValueError.
    """
    text = _norm_text(data)
    f = (fmt or '').lower()
    if f == 'json':
        # json.JSONDecodeError is a ValueError
        return json.loads(text, parse_constant=_reject_constant)
    if f == 'yaml':
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def serialize(value: Any, *, fmt: str = 'json', pretty: bool = True) -> str:
    """
    Convert a native value into a textual representation.
    - fmt: 'json' | 'yaml'
    - pretty JSON is indented by exactly two spaces; compact JSON is a single line.
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, allow_nan=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
]
