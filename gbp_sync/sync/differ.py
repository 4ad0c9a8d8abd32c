"""
Record Differ

Compares a freshly built row against the stored row, field by field, and
reports which tracked fields changed.

Two comparators are provided:
- diff_records: for rows with nested values (locations). Values are compared
  through stable_serialize, after decoding JSON text that was stored as a string.
- diff_flat_records: for rows with scalar values only (reviews). Values are
  compared after normalize_value, by plain equality.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from .normalize import normalize_value
from .serializer import stable_serialize

logger = logging.getLogger(__name__)


# Stored text that starts with this is treated as an encoded mapping
ENCODED_MAPPING_PREFIX = '{'


@dataclass(frozen=True)
class ChangeEntry:
    """One changed field. `old_value` is the value as it was stored."""

    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class Decoded:
    """A stored string that held JSON and was decoded."""

    value: Any


@dataclass(frozen=True)
class Raw:
    """A stored value used as-is."""

    value: Any


StoredValue = Union[Decoded, Raw]


def decode_stored_value(value: Any) -> StoredValue:
    """
    Decode a stored value that may hold a JSON-encoded mapping.

    Only strings starting with '{' are decoded. If decoding fails the original
    string is returned as Raw; this function never raises.

    Examples:
        >>> decode_stored_value('{"a": 1}')
        Decoded(value={'a': 1})
        >>> decode_stored_value('{not json')
        Raw(value='{not json')
        >>> decode_stored_value(['x'])
        Raw(value=['x'])
    """
    if not isinstance(value, str) or not value.startswith(ENCODED_MAPPING_PREFIX):
        return Raw(value)

    try:
        return Decoded(json.loads(value))
    except ValueError:
        logger.debug("Stored value is not valid JSON, comparing raw text")
        return Raw(value)


def diff_records(
    existing: Mapping[str, Any],
    new: Mapping[str, Any],
    fields: Iterable[str],
) -> list[ChangeEntry]:
    """
    Compare two rows with nested values.

    Args:
        existing: Row as read from the database
        new: Row built from the provider payload
        fields: Tracked fields, in the order changes should be reported

    Returns:
        One ChangeEntry per field whose serialized values differ
    """
    changes: list[ChangeEntry] = []

    for field in fields:
        existing_value = existing.get(field)
        new_value = new.get(field)

        comparable = decode_stored_value(existing_value).value

        if stable_serialize(comparable) != stable_serialize(new_value):
            logger.debug(
                "Field changed",
                extra={
                    'field': field,
                    'old': stable_serialize(comparable),
                    'new': stable_serialize(new_value),
                }
            )
            changes.append(ChangeEntry(field, existing_value, new_value))

    return changes


def diff_flat_records(
    existing: Mapping[str, Any],
    new: Mapping[str, Any],
    fields: Iterable[str],
) -> list[ChangeEntry]:
    """
    Compare two rows whose values are all scalars.

    Timestamps are compared as canonical instants, so a datetime read from the
    database equals the ISO string Google returned for it.
    """
    changes: list[ChangeEntry] = []

    for field in fields:
        existing_value = existing.get(field)
        new_value = new.get(field)

        if normalize_value(existing_value) != normalize_value(new_value):
            logger.debug(
                "Field changed",
                extra={'field': field, 'old': existing_value, 'new': new_value}
            )
            changes.append(ChangeEntry(field, existing_value, new_value))

    return changes
