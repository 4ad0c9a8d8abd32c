"""
Deterministic Serializer for Change Detection

This module provides a pure function that renders any value as a canonical
string. Two values that are semantically equal produce the same string, no
matter in which order their mapping keys were inserted. The differ uses these
strings as its equality oracle, and history rows store them as old/new data.

Key Concepts:
- JSON literals for primitives: None -> null, True -> true, "a" -> "a" (quoted)
- Sequences keep their order: [1,2]
- Mappings are sorted by key: {"a":1,"b":2}
- Total: never raises, whatever the input
"""

import json
import math
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .normalize import to_canonical_instant


def _literal(value: Any) -> str:
    """JSON-encode a single scalar the way the comparison expects."""
    return json.dumps(value, ensure_ascii=False)


def _serialize_number(value: int | float | Decimal) -> str:
    if isinstance(value, Decimal):
        if not value.is_finite():
            return 'null'
        value = int(value) if value == value.to_integral_value() else float(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            return 'null'
        # 5.0 and 5 are the same number once stored
        if value.is_integer():
            return str(int(value))

    return _literal(value)


def stable_serialize(value: Any) -> str:
    """
    Render a value as a canonical, key-order-independent string.

    Examples:
        >>> stable_serialize({"b": 1, "a": [True, None]})
        '{"a":[true,null],"b":1}'
        >>> stable_serialize({"a": [True, None], "b": 1})
        '{"a":[true,null],"b":1}'
        >>> stable_serialize("Acme Bakery")
        '"Acme Bakery"'

    Args:
        value: Any value (scalar, list, tuple, set, mapping, datetime, ...)

    Returns:
        Canonical string form of the value
    """
    if value is None:
        return 'null'

    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, (int, float, Decimal)):
        return _serialize_number(value)

    if isinstance(value, str):
        return _literal(value)

    if isinstance(value, (datetime, date)):
        return _literal(to_canonical_instant(value))

    if isinstance(value, Mapping):
        pairs = sorted(
            ((str(key), item) for key, item in value.items()),
            key=lambda pair: pair[0],
        )
        return '{' + ','.join(
            _literal(key) + ':' + stable_serialize(item) for key, item in pairs
        ) + '}'

    if isinstance(value, (list, tuple)):
        return '[' + ','.join(stable_serialize(item) for item in value) + ']'

    if isinstance(value, (set, frozenset)):
        return '[' + ','.join(sorted(stable_serialize(item) for item in value)) + ']'

    return _literal(str(value))
