"""In-memory stand-ins for the sync job's collaborators."""
from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from gbp_sync.provider.base import ProfileProvider, ProviderError


class StubSyncDB:
    """In-memory stub of SyncDB. Every write is also recorded as a call."""

    def __init__(
        self,
        locations: list[dict[str, Any]] | None = None,
        reviews: list[dict[str, Any]] | None = None,
        bridges: list[dict[str, Any]] | None = None,
        credentials: list[dict[str, Any]] | None = None,
        members: dict[Any, list[Any]] | None = None,
        notification_types: dict[str, Any] | None = None,
    ):
        self.locations = {row['id']: dict(row) for row in locations or []}
        self.reviews = {row['id']: dict(row) for row in reviews or []}
        self.bridges = list(bridges or [])
        self.credentials = list(credentials or [])
        self.members = dict(members or {})
        self.notification_types = dict(notification_types or {'VOICE_OF_MERCHANT_UPDATED': 7})

        self.history: list[dict[str, Any]] = []
        self.notifications: list[dict[str, Any]] = []
        self.calls: list[str] = []
        self.review_count_calls = 0

    # Job inputs
    def fetch_location_organizations(self, location_id: str | None = None) -> list[dict[str, Any]]:
        return [b for b in self.bridges if location_id is None or b.get('gmb_id') == location_id]

    def fetch_google_credential(self, organization_id: Any, account_id: str) -> dict[str, Any] | None:
        for credential in self.credentials:
            if credential.get('organization_id') == organization_id and credential.get('sub') == account_id:
                return credential
        return None

    # Locations
    def fetch_location(self, location_id: str) -> dict[str, Any] | None:
        row = self.locations.get(location_id)
        return copy.deepcopy(row) if row is not None else None

    def insert_location(self, row: Mapping[str, Any]) -> int:
        self.calls.append('insert_location')
        self.locations[row['id']] = copy.deepcopy(dict(row))
        return 1

    def update_location(self, location_id: str, row: Mapping[str, Any]) -> int:
        self.calls.append('update_location')
        self.locations[location_id].update(copy.deepcopy(dict(row)))
        return 1

    # Reviews
    def fetch_reviews_for_location(self, location_id: str) -> list[dict[str, Any]]:
        return [dict(r) for r in self.reviews.values() if r.get('gmb_id') == location_id]

    def insert_review(self, row: Mapping[str, Any]) -> int:
        self.calls.append('insert_review')
        self.reviews[row['id']] = dict(row)
        return 1

    def update_review(self, review_id: str, row: Mapping[str, Any]) -> int:
        self.calls.append('update_review')
        self.reviews[review_id].update(dict(row))
        return 1

    def count_live_reviews(self, location_id: str) -> int:
        self.review_count_calls += 1
        return sum(
            1 for r in self.reviews.values()
            if r.get('gmb_id') == location_id and r.get('is_review_live_on_google') is True
        )

    # History and notifications
    def insert_history_batch(self, rows: list[dict[str, Any]]) -> int:
        self.calls.append('insert_history_batch')
        self.history.extend(rows)
        return len(rows)

    def insert_notifications_batch(self, rows: list[dict[str, Any]]) -> int:
        self.calls.append('insert_notifications_batch')
        self.notifications.extend(rows)
        return len(rows)

    def fetch_user_ids_for_organization(self, organization_id: Any) -> list[Any]:
        return list(self.members.get(organization_id, []))

    def fetch_notification_type_id(self, type_key: str) -> Any:
        return self.notification_types[type_key]


class RecordingPublisher:
    """Publisher that keeps every batch instead of sending it."""

    def __init__(self, fail_on: set[str] | None = None):
        self.sent: list[tuple[str, list[dict[str, Any]]]] = []
        self.fail_on = fail_on or set()

    def send_batch(self, messages, queue_key: str) -> None:
        if queue_key in self.fail_on:
            raise KeyError(f"No URL configured for queue '{queue_key}'")
        if messages:
            self.sent.append((queue_key, [dict(m) for m in messages]))

    def messages_for(self, queue_key: str) -> list[dict[str, Any]]:
        return [m for key, batch in self.sent if key == queue_key for m in batch]


class StubProvider(ProfileProvider):
    """Provider serving canned payloads, or raising ProviderError for unknown ids."""

    def __init__(
        self,
        locations: dict[str, dict[str, Any]] | None = None,
        reviews: dict[str, list[dict[str, Any]]] | None = None,
    ):
        self.locations = locations or {}
        self.reviews = reviews or {}

    def fetch_location(self, location_id: str) -> dict[str, Any]:
        if location_id not in self.locations:
            raise ProviderError(f"API error 404: location {location_id} not found", status_code=404)
        return copy.deepcopy(self.locations[location_id])

    def fetch_verification_status(self, location_id: str) -> str:
        return self.fetch_location(location_id).get('verificationStatus', 'UNKNOWN')

    def fetch_reviews(self, account_id: str, location_id: str) -> Iterator[dict[str, Any]]:
        yield from copy.deepcopy(self.reviews.get(location_id, []))


class StubCredentials:
    """Credential service that maps refresh tokens to access tokens."""

    def __init__(self, failing_tokens: set[str] | None = None):
        self.failing_tokens = failing_tokens or set()
        self.refreshed: list[str] = []

    def access_token_for(self, credential: dict[str, Any]) -> str:
        from gbp_sync.provider.credentials import CredentialError

        token = credential.get('google_refresh_token')
        self.refreshed.append(token)
        if token in self.failing_tokens:
            raise CredentialError("Token refresh rejected (400): invalid_grant")
        return f"access-{token}"
