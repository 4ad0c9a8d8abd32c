"""
Per-Entity Sync

Ties normalization, diffing, change routing and persistence together for one
entity at a time:

- sync_location_details: one location profile
- sync_reviews: every fetched review of one location

Both are idempotent: with unchanged upstream data a second call writes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from gbp_sync.messaging.base import MessagePublisher

from .change_router import RoutingLookups, route_changes
from .config_loader import QUEUE_KEYWORD_STUFFING
from .differ import diff_flat_records, diff_records
from .normalize import (
    LOCATION_TRACKED_FIELDS,
    REVIEW_TRACKED_FIELDS,
    build_location_row,
    build_review_row,
    stamp_backup_time,
)

logger = logging.getLogger(__name__)


# Written back by the keyword-stuffing consumer once a name has been checked
KEYWORD_STUFFING_CHECKED_FIELD = 'business_name_keyword_stuffed_checked_at'

OUTCOME_INSERTED = 'inserted'
OUTCOME_UPDATED = 'updated'
OUTCOME_UNCHANGED = 'unchanged'


class LocationStore(RoutingLookups, Protocol):
    """Database operations needed to sync one location."""

    def fetch_location(self, location_id: str) -> Optional[dict[str, Any]]:
        ...

    def insert_location(self, row: Mapping[str, Any]) -> int:
        ...

    def update_location(self, location_id: str, row: Mapping[str, Any]) -> int:
        ...

    def insert_history_batch(self, rows: list[dict[str, Any]]) -> int:
        ...

    def insert_notifications_batch(self, rows: list[dict[str, Any]]) -> int:
        ...


class ReviewStore(Protocol):
    """Database operations needed to sync the reviews of one location."""

    def fetch_reviews_for_location(self, location_id: str) -> list[dict[str, Any]]:
        ...

    def insert_review(self, row: Mapping[str, Any]) -> int:
        ...

    def update_review(self, review_id: str, row: Mapping[str, Any]) -> int:
        ...


@dataclass
class LocationSyncResult:
    """What syncing one location did."""

    outcome: str
    changed_fields: list[str] = field(default_factory=list)
    history_rows: int = 0
    notification_rows: int = 0
    side_channel_sends: int = 0


def _keyword_stuffing_message(location_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    profile = payload.get('profile')
    return {
        'gmb_id': location_id,
        'gmb_name': payload.get('title'),
        'description': profile.get('description') if isinstance(profile, Mapping) else None,
    }


def sync_location_details(
    db: LocationStore,
    publisher: MessagePublisher,
    location_id: str,
    payload: Mapping[str, Any],
    organization_id: Any,
    notification_type_key: str,
) -> LocationSyncResult:
    """
    Sync one fetched location profile into the database.

    Flow:
    1. Build the row from the payload and load the stored row
    2. Request a keyword-stuffing check if the name was never checked
    3. New location: insert and stop
    4. Known location: diff, route the changes, overwrite the row,
       insert history and notification rows, request content checks

    Args:
        db: Database interface
        publisher: Queue publisher for content-check messages
        location_id: Provider location id
        payload: Location JSON as returned by the provider
        organization_id: Organization that owns the location
        notification_type_key: Notification type for status changes

    Returns:
        LocationSyncResult describing what was written

    Raises:
        DatabaseError: If a read or write fails. Rows already written stay written.
    """
    logger.info("Syncing location details", extra={'gmb_id': location_id})

    new_row = build_location_row(location_id, payload)
    existing = db.fetch_location(location_id)
    result = LocationSyncResult(outcome=OUTCOME_UNCHANGED)

    # Read from the fetched payload; a timestamp on the stored row does not count
    checked_at = payload.get(KEYWORD_STUFFING_CHECKED_FIELD)
    stuffing_message = _keyword_stuffing_message(location_id, payload)
    if not checked_at:
        logger.info("Requesting keyword stuffing check", extra={'gmb_id': location_id})
        publisher.send_batch([stuffing_message], QUEUE_KEYWORD_STUFFING)
        result.side_channel_sends += 1

    if existing is None:
        db.insert_location(new_row)
        result.outcome = OUTCOME_INSERTED
        logger.info("Inserted location", extra={'gmb_id': location_id})
        return result

    changes = diff_records(existing, new_row, LOCATION_TRACKED_FIELDS)
    if not changes:
        logger.info("Location already up to date", extra={'gmb_id': location_id})
        return result

    routed = route_changes(
        db,
        location_id,
        organization_id,
        payload.get('title'),
        changes,
        notification_type_key,
    )

    db.update_location(location_id, new_row)
    db.insert_history_batch(routed.history_rows)
    if routed.notification_rows:
        db.insert_notifications_batch(routed.notification_rows)

    for _ in range(routed.side_channel_sends):
        logger.info(
            "Business name or description changed, requesting keyword stuffing check",
            extra={'gmb_id': location_id}
        )
        publisher.send_batch([stuffing_message], QUEUE_KEYWORD_STUFFING)

    result.outcome = OUTCOME_UPDATED
    result.changed_fields = [change.field for change in changes]
    result.history_rows = len(routed.history_rows)
    result.notification_rows = len(routed.notification_rows)
    result.side_channel_sends += routed.side_channel_sends

    logger.info(
        "Updated location",
        extra={'gmb_id': location_id, 'changed_fields': result.changed_fields}
    )
    return result


def sync_reviews(
    db: ReviewStore,
    location_id: str,
    reviews: Iterable[Mapping[str, Any]],
) -> dict[str, int]:
    """
    Sync every fetched review of a location into the database.

    New reviews are inserted with a backup timestamp. Known reviews are
    overwritten only when a tracked field changed; the backup timestamp is
    left as it was. Stored reviews missing from `reviews` are not touched.

    Args:
        db: Database interface
        location_id: Provider location id
        reviews: Review JSON objects, e.g. ProfileProvider.fetch_reviews(...)

    Returns:
        Dictionary with statistics:
        - fetched: Number of reviews seen
        - inserted: Number of new reviews stored
        - updated: Number of reviews overwritten
        - unchanged: Number of reviews already up to date
        - skipped: Number of reviews without an id
    """
    stats = {
        'fetched': 0,
        'inserted': 0,
        'updated': 0,
        'unchanged': 0,
        'skipped': 0,
    }

    existing_by_id = {
        row['id']: row for row in db.fetch_reviews_for_location(location_id)
    }

    for review in reviews:
        stats['fetched'] += 1
        new_row = build_review_row(location_id, review)
        review_id = new_row['id']

        if not review_id:
            stats['skipped'] += 1
            logger.warning("Review has no id, skipping", extra={'gmb_id': location_id})
            continue

        existing = existing_by_id.get(review_id)

        if existing is None:
            db.insert_review(stamp_backup_time(new_row))
            existing_by_id[review_id] = new_row
            stats['inserted'] += 1
            logger.debug("Inserted new review", extra={'review_id': review_id})
            continue

        changes = diff_flat_records(existing, new_row, REVIEW_TRACKED_FIELDS)
        if changes:
            db.update_review(review_id, new_row)
            existing_by_id[review_id] = new_row
            stats['updated'] += 1
            logger.debug(
                "Updated review",
                extra={'review_id': review_id, 'changed_fields': [c.field for c in changes]}
            )
        else:
            stats['unchanged'] += 1

    logger.info(
        "Synced reviews",
        extra={'gmb_id': location_id, **stats}
    )
    return stats
