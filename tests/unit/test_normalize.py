"""
Unit Tests for Record Normalization

These tests validate how provider payloads are projected onto stored rows,
and how values are canonicalized before comparison.

Test Organization:
- TestBuildLocationRow: location payload projection
- TestBuildReviewRow: review payload projection
- TestNormalizeValue: canonical instants and pass-through values
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from gbp_sync.sync.normalize import (
    LOCATION_TRACKED_FIELDS,
    REVIEW_BACKUP_FIELD,
    REVIEW_TRACKED_FIELDS,
    build_location_row,
    build_review_row,
    normalize_value,
    stamp_backup_time,
    to_canonical_instant,
)


class TestBuildLocationRow:
    """Tests for build_location_row"""

    def test_projects_nested_fields(self, sample_location_payload):
        row = build_location_row("1234567890", sample_location_payload)

        assert row["id"] == "1234567890"
        assert row["business_name"] == "Old Name"
        assert row["business_type"] == "CUSTOMER_AND_BUSINESS_LOCATION"
        assert row["language_code"] == "en"
        assert row["region_code"] == "CA"
        assert row["locality"] == "Montreal"
        assert row["address_lines"] == ["123 Rue Example"]
        assert row["service_areas"] == ["Montreal"]
        assert row["verification_status"] == "SOFT_SUSPENDED"
        assert row["place_id"] == "ChIJ123"
        assert row["maps_uri"] == "https://maps.google.com/?cid=1"
        assert row["primary_phone"] == "(514) 555-0100"
        assert row["primary_category"] == "Bakery"
        assert row["additional_categories"] == ["Cafe"]
        assert row["description"] == "Fresh bread daily"
        assert row["regular_hours"] == sample_location_payload["regularHours"]

    def test_row_keys_follow_tracked_field_order(self, sample_location_payload):
        row = build_location_row("1234567890", sample_location_payload)

        assert tuple(row.keys()) == LOCATION_TRACKED_FIELDS

    def test_missing_values_are_none(self):
        row = build_location_row("42", {"title": "Acme Bakery"})

        assert row["business_name"] == "Acme Bakery"
        assert row["sorting_code"] is None
        assert row["service_areas"] is None
        assert row["additional_categories"] is None
        assert row["regular_hours"] is None
        assert row["verification_status"] is None

    def test_wrong_shapes_do_not_raise(self):
        payload = {
            "storefrontAddress": "not a mapping",
            "categories": {"additionalCategories": "not a list"},
            "serviceArea": {"places": {"placeInfos": ["not a mapping"]}},
        }
        row = build_location_row("42", payload)

        assert row["locality"] is None
        assert row["additional_categories"] is None
        assert row["service_areas"] == [None]


class TestBuildReviewRow:
    """Tests for build_review_row and stamp_backup_time"""

    def test_projects_review_fields(self, sample_review):
        row = build_review_row("1234567890", sample_review)

        assert row["id"] == "r1"
        assert row["gmb_id"] == "1234567890"
        assert row["reviewer_display_name"] == "Jane D."
        assert row["reviewer_profile_photo_url"] == "https://photos/jane.png"
        assert row["star_rating"] == "FIVE"
        assert row["comment"] == "Great croissants"
        assert row["review_reply_comment"] == "Thank you!"
        assert row["review_reply_update_time"] == "2025-01-03T10:00:00Z"
        assert row["name"] == sample_review["name"]
        assert row["is_review_live_on_google"] is True

    def test_row_has_no_backup_timestamp(self, sample_review):
        row = build_review_row("1234567890", sample_review)

        assert REVIEW_BACKUP_FIELD not in row
        assert tuple(row.keys()) == REVIEW_TRACKED_FIELDS

    def test_review_without_reply(self, sample_review):
        del sample_review["reviewReply"]
        row = build_review_row("1234567890", sample_review)

        assert row["review_reply_comment"] is None
        assert row["review_reply_update_time"] is None

    def test_stamp_backup_time_copies_row(self, sample_review):
        row = build_review_row("1234567890", sample_review)
        now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

        stamped = stamp_backup_time(row, now=now)

        assert stamped[REVIEW_BACKUP_FIELD] == "2025-06-01T12:00:00.000Z"
        assert REVIEW_BACKUP_FIELD not in row


class TestNormalizeValue:
    """Tests for normalize_value and to_canonical_instant"""

    def test_none_stays_none(self):
        assert normalize_value(None) is None

    @pytest.mark.parametrize("value,expected", [
        ("2025-01-02T03:04:05Z", "2025-01-02T03:04:05.000Z"),
        ("2025-01-02T03:04:05.678Z", "2025-01-02T03:04:05.678Z"),
        ("2025-01-02T03:04:05.678901234Z", "2025-01-02T03:04:05.678Z"),
        ("2025-01-02T05:04:05+02:00", "2025-01-02T03:04:05.000Z"),
    ])
    def test_iso_strings_are_canonicalized(self, value, expected):
        assert normalize_value(value) == expected

    def test_datetime_and_string_agree(self):
        stored = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)

        assert normalize_value(stored) == normalize_value("2025-01-02T03:04:05.678Z")

    def test_non_utc_datetime_is_converted(self):
        eastern = timezone(timedelta(hours=-5))
        value = datetime(2025, 1, 1, 19, 0, tzinfo=eastern)

        assert to_canonical_instant(value) == "2025-01-02T00:00:00.000Z"

    def test_naive_datetime_is_taken_as_utc(self):
        assert to_canonical_instant(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02T03:04:05.000Z"

    def test_date_is_midnight_utc(self):
        assert normalize_value(date(2025, 1, 2)) == "2025-01-02T00:00:00.000Z"

    def test_unparseable_iso_like_string_passes_through(self):
        assert normalize_value("2025-13-45Tgarbage") == "2025-13-45Tgarbage"

    @pytest.mark.parametrize("value", ["FIVE", "2025-01-02", 5, True, ["a"]])
    def test_other_values_pass_through(self, value):
        assert normalize_value(value) == value
