"""
Change Router

Turns the list of changed location fields into the side effects they trigger:

- every change becomes a history row
- a verification status change also notifies every member of the organization
- a name or description change asks for another keyword-stuffing check

The router only builds rows and counts messages; the orchestrator writes them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .differ import ChangeEntry
from .serializer import stable_serialize

logger = logging.getLogger(__name__)


HISTORY_TYPE_VERIFICATION_STATUS = 1
HISTORY_TYPE_FIELD_CHANGE = 2

VERIFICATION_STATUS_FIELD = 'verification_status'

# Changes to these fields can introduce keyword stuffing
CONTENT_CHECK_FIELDS = frozenset({'business_name', 'description'})

FIELD_DISPLAY_NAMES: dict[str, str] = {
    'business_name': 'Business Name',
    'business_type': 'Business Type',
    'language_code': 'Language Code',
    'region_code': 'Region Code',
    'postal_code': 'Postal Code',
    'sorting_code': 'Sorting Code',
    'administrative_area': 'Administrative Area',
    'locality': 'Locality',
    'sublocality': 'Sublocality',
    'address_lines': 'Address Lines',
    'recipients': 'Recipients',
    'service_areas': 'Service Areas',
    'verification_status': 'Verification Status',
    'place_id': 'Place ID',
    'website_uri': 'Website URI',
    'primary_phone': 'Primary Phone',
    'primary_category': 'Primary Category',
    'additional_categories': 'Additional Categories',
    'description': 'Description',
    'regular_hours': 'Regular Hours',
}


class RoutingLookups(Protocol):
    """Read-only queries the router needs. SyncDB implements these."""

    def count_live_reviews(self, location_id: str) -> int:
        ...

    def fetch_user_ids_for_organization(self, organization_id: Any) -> list[Any]:
        ...

    def fetch_notification_type_id(self, type_key: str) -> Any:
        ...


@dataclass
class RoutingResult:
    """Rows to insert and content-check messages to send for one location."""

    history_rows: list[dict[str, Any]] = field(default_factory=list)
    notification_rows: list[dict[str, Any]] = field(default_factory=list)
    side_channel_sends: int = 0


def humanize_field_name(field_name: str) -> str:
    """
    Return the display name of a column.

    Known columns use the display-name table; anything else is split on
    underscores and each word capitalized.

    Examples:
        >>> humanize_field_name('place_id')
        'Place ID'
        >>> humanize_field_name('custom_field_x')
        'Custom Field X'
    """
    if field_name in FIELD_DISPLAY_NAMES:
        return FIELD_DISPLAY_NAMES[field_name]

    return ' '.join(
        word[:1].upper() + word[1:] for word in field_name.split('_')
    )


def route_changes(
    lookups: RoutingLookups,
    location_id: str,
    organization_id: Any,
    display_name: Optional[str],
    changes: Sequence[ChangeEntry],
    notification_type_key: str,
) -> RoutingResult:
    """
    Build history rows, notification rows and content-check sends for a location.

    Args:
        lookups: Database queries (live review count, members, notification types)
        location_id: Provider location id
        organization_id: Organization that owns the location
        display_name: Current business name, used in notification payloads
        changes: Output of the differ, in field order
        notification_type_key: Registry key of the status-change notification type

    Returns:
        RoutingResult with one history row per change, one notification row
        per organization member for a status change, and the number of
        content-check messages to send
    """
    result = RoutingResult()
    if not changes:
        return result

    review_amount = lookups.count_live_reviews(location_id)

    for change in changes:
        old_data = stable_serialize(change.old_value)
        new_data = stable_serialize(change.new_value)

        if change.field == VERIFICATION_STATUS_FIELD:
            result.notification_rows.extend(
                _build_status_notifications(
                    lookups,
                    location_id,
                    organization_id,
                    display_name,
                    change,
                    notification_type_key,
                )
            )
            result.history_rows.append({
                'gmb_id': location_id,
                'history_type_id': HISTORY_TYPE_VERIFICATION_STATUS,
                'review_amount': review_amount,
                'data': json.dumps({
                    'old_status': old_data,
                    'new_status': new_data,
                }),
            })
        else:
            result.history_rows.append({
                'gmb_id': location_id,
                'history_type_id': HISTORY_TYPE_FIELD_CHANGE,
                'review_amount': review_amount,
                'data': json.dumps({
                    'field_that_changed': humanize_field_name(change.field),
                    'old_data': old_data,
                    'new_data': new_data,
                }),
            })

        if change.field in CONTENT_CHECK_FIELDS:
            result.side_channel_sends += 1

    logger.info(
        "Routed location changes",
        extra={
            'gmb_id': location_id,
            'changes': len(changes),
            'history_rows': len(result.history_rows),
            'notification_rows': len(result.notification_rows),
            'side_channel_sends': result.side_channel_sends,
        }
    )

    return result


def _build_status_notifications(
    lookups: RoutingLookups,
    location_id: str,
    organization_id: Any,
    display_name: Optional[str],
    change: ChangeEntry,
    notification_type_key: str,
) -> list[dict[str, Any]]:
    """Fan a verification status change out to every organization member."""
    if organization_id is None:
        user_ids: list[Any] = []
    else:
        user_ids = lookups.fetch_user_ids_for_organization(organization_id)

    if not user_ids:
        logger.warning(
            "No organization members to notify of status change",
            extra={'gmb_id': location_id, 'organization_id': organization_id}
        )
        return []

    payload = {
        'data': json.dumps({
            'gmb_id': location_id,
            'gmb_name': display_name,
            'old_status': change.old_value,
            'new_status': change.new_value,
        }, default=str),
        'notification_type_id': lookups.fetch_notification_type_id(notification_type_key),
    }

    return [
        {'organization_id': organization_id, 'user_id': user_id, **payload}
        for user_id in user_ids
    ]
