"""
Record Normalization Logic

This module projects raw Google Business Profile payloads onto the row shape
stored in PostgreSQL, and canonicalizes values so that stored rows and freshly
fetched rows can be compared.

Key Responsibilities:
- Enumerate the tracked fields of each entity type, one accessor per field
- Null-coalesce missing nested values
- Render timestamps as one canonical instant string
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


ISO_DATETIME_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}T')

# Google returns anything from no fraction to nanoseconds
_FRACTION_PATTERN = re.compile(r"\.(\d+)")

Accessor = Callable[[Mapping[str, Any]], Any]


@dataclass(frozen=True)
class FieldSpec:
    """A tracked column and how to read it from a provider payload."""

    name: str
    accessor: Accessor


def _path(*keys: str) -> Accessor:
    """Build an accessor that walks nested mappings, returning None on any gap."""

    def read(payload: Mapping[str, Any]) -> Any:
        current: Any = payload
        for key in keys:
            if not isinstance(current, Mapping):
                return None
            current = current.get(key)
        return current

    return read


def _each(item_key: str, *keys: str) -> Accessor:
    """Build an accessor that projects `item_key` out of every element of a nested list."""
    read_list = _path(*keys)

    def read(payload: Mapping[str, Any]) -> Optional[list[Any]]:
        items = read_list(payload)
        if not isinstance(items, list):
            return None
        return [
            item.get(item_key) if isinstance(item, Mapping) else None
            for item in items
        ]

    return read


LOCATION_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec('business_name', _path('title')),
    FieldSpec('business_type', _path('serviceArea', 'businessType')),
    FieldSpec('language_code', _path('languageCode')),
    FieldSpec('region_code', _path('storefrontAddress', 'regionCode')),
    FieldSpec('postal_code', _path('storefrontAddress', 'postalCode')),
    FieldSpec('sorting_code', _path('storefrontAddress', 'sortingCode')),
    FieldSpec('administrative_area', _path('storefrontAddress', 'administrativeArea')),
    FieldSpec('locality', _path('storefrontAddress', 'locality')),
    FieldSpec('sublocality', _path('storefrontAddress', 'sublocality')),
    FieldSpec('address_lines', _path('storefrontAddress', 'addressLines')),
    FieldSpec('recipients', _path('storefrontAddress', 'recipients')),
    FieldSpec('service_areas', _each('placeName', 'serviceArea', 'places', 'placeInfos')),
    FieldSpec('verification_status', _path('verificationStatus')),
    FieldSpec('place_id', _path('metadata', 'placeId')),
    FieldSpec('maps_uri', _path('metadata', 'mapsUri')),
    FieldSpec('website_uri', _path('websiteUri')),
    FieldSpec('primary_phone', _path('phoneNumbers', 'primaryPhone')),
    FieldSpec('primary_category', _path('categories', 'primaryCategory', 'displayName')),
    FieldSpec('additional_categories', _each('displayName', 'categories', 'additionalCategories')),
    FieldSpec('description', _path('profile', 'description')),
    FieldSpec('regular_hours', _path('regularHours')),
)

REVIEW_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec('reviewer_profile_photo_url', _path('reviewer', 'profilePhotoUrl')),
    FieldSpec('reviewer_display_name', _path('reviewer', 'displayName')),
    FieldSpec('star_rating', _path('starRating')),
    FieldSpec('comment', _path('comment')),
    FieldSpec('create_time', _path('createTime')),
    FieldSpec('update_time', _path('updateTime')),
    FieldSpec('review_reply_comment', _path('reviewReply', 'comment')),
    FieldSpec('review_reply_update_time', _path('reviewReply', 'updateTime')),
    FieldSpec('name', _path('name')),
)

# Column order used by the differ; identity columns come first
LOCATION_TRACKED_FIELDS: tuple[str, ...] = ('id',) + tuple(f.name for f in LOCATION_FIELDS)
REVIEW_TRACKED_FIELDS: tuple[str, ...] = (
    ('id', 'gmb_id')
    + tuple(f.name for f in REVIEW_FIELDS)
    + ('is_review_live_on_google',)
)

# Set on insert only, never diffed or overwritten
REVIEW_BACKUP_FIELD = 'backed_up_date_time'


def build_location_row(location_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Project a Business Information payload onto the locations table row.

    Args:
        location_id: Provider location id (e.g., "1234567890")
        payload: Location JSON from Google, with `verificationStatus` attached

    Returns:
        Dictionary keyed by LOCATION_TRACKED_FIELDS, in that order.
        Missing values are None.

    Example:
        >>> row = build_location_row("42", {"title": "Acme Bakery"})
        >>> row["business_name"], row["locality"]
        ('Acme Bakery', None)
    """
    row: dict[str, Any] = {'id': location_id}
    for spec in LOCATION_FIELDS:
        row[spec.name] = spec.accessor(payload)
    return row


def build_review_row(location_id: str, review: Mapping[str, Any]) -> dict[str, Any]:
    """
    Project a v4 review payload onto the reviews table row.

    The liveness flag is always True: the review was just returned by Google.
    The backup timestamp is not part of this row; see `stamp_backup_time`.
    """
    row: dict[str, Any] = {
        'id': review.get('reviewId'),
        'gmb_id': location_id,
    }
    for spec in REVIEW_FIELDS:
        row[spec.name] = spec.accessor(review)
    row['is_review_live_on_google'] = True
    return row


def stamp_backup_time(row: Mapping[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """Return a copy of a review row with the local backup timestamp set."""
    stamped = dict(row)
    stamped[REVIEW_BACKUP_FIELD] = to_canonical_instant(now or datetime.now(timezone.utc))
    return stamped


def to_canonical_instant(value: datetime | date) -> str:
    """
    Render a date or datetime as a UTC instant with millisecond precision.

    Naive datetimes are taken to be UTC. Plain dates are taken as midnight UTC.

    Examples:
        >>> to_canonical_instant(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))
        '2024-03-01T12:00:00.000Z'
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f'{value.microsecond // 1000:03d}Z'


def _six_digit_fraction(match: re.Match) -> str:
    return '.' + match.group(1)[:6].ljust(6, '0')


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """
    Parse an ISO 8601 date-time string, or return None if it is not one.

    Handles the 'Z' suffix and fractions of any length.
    """
    cleaned = _FRACTION_PATTERN.sub(_six_digit_fraction, value.strip(), count=1).replace('Z', '+00:00')
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        logger.debug("Failed to parse timestamp string", extra={'value': value})
        return None


def normalize_value(value: Any) -> Any:
    """
    Canonicalize a flat field value for equality comparison.

    - None stays None
    - datetime/date values become canonical instant strings
    - ISO 8601 date-time strings are parsed and re-rendered the same way
    - everything else passes through unchanged (including unparseable strings)

    Examples:
        >>> normalize_value("2024-03-01T12:00:00Z")
        '2024-03-01T12:00:00.000Z'
        >>> normalize_value("FIVE")
        'FIVE'
    """
    if value is None:
        return None

    if isinstance(value, (datetime, date)):
        return to_canonical_instant(value)

    if isinstance(value, str) and ISO_DATETIME_PATTERN.match(value):
        parsed = parse_iso_datetime(value)
        return to_canonical_instant(parsed) if parsed is not None else value

    return value
