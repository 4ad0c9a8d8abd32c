"""
Sync Service - Main Entry Point

This is the command-line interface and scheduled handler for the sync job.
It can be called directly from the terminal, from Airflow, or by a scheduler
that invokes `handler(event, context)`.

Usage:
    python -m gbp_sync.sync.main [OPTIONS]

Options:
    --location-id TEXT    Only sync this Google location id
    --config PATH         Path to sync.yml (default: config/sync.yml)
    --verbose             Enable debug logging
    --help                Show this message and exit

Examples:
    # Sync every registered location:
    python -m gbp_sync.sync.main

    # Sync one location with verbose logging:
    python -m gbp_sync.sync.main --location-id 1234567890 --verbose

Exit Codes:
    0: Success
    1: Some locations failed (others were synced)
    2: Fatal error (database connection, configuration, etc.)
"""

import argparse
import json
import logging
import os
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Optional

from dotenv import load_dotenv

from gbp_sync.messaging.base import MessagePublisher
from gbp_sync.messaging.sqs import SqsPublisher
from gbp_sync.provider.base import ProfileProvider, ProviderError
from gbp_sync.provider.credentials import CredentialError, GoogleCredentialService
from gbp_sync.provider.google_client import GoogleBusinessClient

from .config_loader import QUEUE_MEDIA, QUEUE_REVIEWS, SyncConfig, load_sync_config
from .db_operations import DatabaseError, SyncDB
from .orchestrator import OUTCOME_INSERTED, OUTCOME_UPDATED, sync_location_details, sync_reviews

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DONE_MESSAGE = 'Done pulling reviews and location data for all GMBs'

ClientFactory = Callable[[str], ProfileProvider]


def configure_logging() -> None:
    """Send INFO and above to stdout in the service log format."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description='Sync Google Business Profile locations and reviews into the database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--location-id',
        type=str,
        help='Only sync this Google location id',
        default=None,
        dest='location_id'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to sync.yml',
        default=None
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def _new_stats() -> dict[str, int]:
    return {
        'locations': 0,
        'skipped': 0,
        'credential_failed': 0,
        'location_inserted': 0,
        'location_updated': 0,
        'location_unchanged': 0,
        'location_failed': 0,
        'history_rows': 0,
        'notification_rows': 0,
        'reviews_inserted': 0,
        'reviews_updated': 0,
        'reviews_unchanged': 0,
        'review_sync_failed': 0,
        'review_sync_queued': 0,
        'media_queue_failed': 0,
    }


def _sync_location_reviews(
    db: SyncDB,
    client: ProfileProvider,
    account_id: str,
    location_id: str,
    stats: dict[str, int],
) -> None:
    """Fetch and store the reviews of one location, isolating any failure."""
    try:
        review_stats = sync_reviews(db, location_id, client.fetch_reviews(account_id, location_id))
    except (ProviderError, DatabaseError) as e:
        stats['review_sync_failed'] += 1
        logger.error(
            "Error fetching/updating reviews",
            extra={'gmb_id': location_id, 'error': str(e), 'error_type': type(e).__name__}
        )
        return
    except Exception as e:
        stats['review_sync_failed'] += 1
        logger.error(
            "Unexpected error syncing reviews",
            extra={'gmb_id': location_id, 'error': str(e), 'error_type': type(e).__name__},
            exc_info=True
        )
        return

    stats['reviews_inserted'] += review_stats['inserted']
    stats['reviews_updated'] += review_stats['updated']
    stats['reviews_unchanged'] += review_stats['unchanged']


def _refresh_token(
    db: SyncDB,
    credentials: GoogleCredentialService,
    organization_id: Any,
    account_id: str,
    location_id: str,
) -> tuple[bool, Optional[str]]:
    """
    Look up the stored credential and refresh its access token.

    Returns:
        (credential_found, access_token). The token is None if the refresh failed.
    """
    credential = db.fetch_google_credential(organization_id, account_id)
    if not credential:
        return False, None

    try:
        return True, credentials.access_token_for(credential)
    except CredentialError as e:
        logger.error(
            "Error refreshing access token",
            extra={'gmb_id': location_id, 'error': str(e), 'error_type': type(e).__name__}
        )
        return True, None


def run_sync(
    db: SyncDB,
    credentials: GoogleCredentialService,
    publisher: MessagePublisher,
    config: SyncConfig,
    client_factory: Optional[ClientFactory] = None,
    location_id: Optional[str] = None,
) -> dict[str, int]:
    """
    Main sync logic.

    Locations are processed one after another. A failure while fetching or
    writing one location is logged and counted, and the next location is
    processed as usual.

    Args:
        db: Database interface
        credentials: Access token source
        publisher: Queue publisher
        config: Sync configuration
        client_factory: Builds a provider from an access token
                        (default: GoogleBusinessClient)
        location_id: Only sync this location

    Returns:
        Dictionary with per-outcome counters (see _new_stats)
    """
    if client_factory is None:
        def client_factory(token: str) -> ProfileProvider:
            return GoogleBusinessClient(token, timeout=config.http_timeout_seconds)

    stats = _new_stats()
    start_time = datetime.now(timezone.utc)

    logger.info(
        "Starting sync service",
        extra={'location_filter': location_id, 'review_sync_mode': config.review_sync_mode}
    )

    bridges = db.fetch_location_organizations(location_id)
    media_messages: list[dict[str, Any]] = []

    for bridge in bridges:
        organization_id = bridge.get('organization_id')
        gmb_id = bridge.get('gmb_id')
        account_id = bridge.get('account_id')
        stats['locations'] += 1

        logger.info(
            "Processing location",
            extra={'gmb_id': gmb_id, 'organization_id': organization_id}
        )

        if not account_id:
            stats['skipped'] += 1
            logger.warning("Missing account_id for location", extra={'gmb_id': gmb_id})
            continue

        try:
            found, access_token = _refresh_token(db, credentials, organization_id, account_id, gmb_id)
        except DatabaseError as e:
            stats['location_failed'] += 1
            logger.error(
                "Error loading credential",
                extra={'gmb_id': gmb_id, 'error': str(e), 'error_type': type(e).__name__}
            )
            continue

        if not found:
            stats['skipped'] += 1
            logger.warning(
                "No Google credential found for account",
                extra={'gmb_id': gmb_id, 'account_id': account_id}
            )
            continue

        media_messages.append({
            'organization_id': organization_id,
            'account_id': account_id,
            'gmb_id': gmb_id,
        })

        client: Optional[ProfileProvider] = None
        if access_token is None:
            stats['credential_failed'] += 1
        else:
            client = client_factory(access_token)
            try:
                payload = client.fetch_location(gmb_id)
                result = sync_location_details(
                    db,
                    publisher,
                    gmb_id,
                    payload,
                    organization_id,
                    config.notification_type_key,
                )
                if result.outcome == OUTCOME_INSERTED:
                    stats['location_inserted'] += 1
                elif result.outcome == OUTCOME_UPDATED:
                    stats['location_updated'] += 1
                else:
                    stats['location_unchanged'] += 1
                stats['history_rows'] += result.history_rows
                stats['notification_rows'] += result.notification_rows
            except Exception as e:
                stats['location_failed'] += 1
                logger.error(
                    "Error fetching/updating location details",
                    extra={'gmb_id': gmb_id, 'error': str(e), 'error_type': type(e).__name__},
                    exc_info=not isinstance(e, (ProviderError, DatabaseError))
                )

        if config.review_sync_mode == 'queue':
            try:
                publisher.send_batch(
                    [{'organization_id': organization_id, 'gmb_id': gmb_id, 'account_id': account_id}],
                    QUEUE_REVIEWS,
                )
                stats['review_sync_queued'] += 1
            except Exception as e:
                stats['review_sync_failed'] += 1
                logger.error(
                    "Error queueing review sync",
                    extra={'gmb_id': gmb_id, 'error': str(e), 'error_type': type(e).__name__}
                )
        elif client is None:
            logger.warning("No access token, skipping review sync", extra={'gmb_id': gmb_id})
            stats['review_sync_failed'] += 1
        else:
            _sync_location_reviews(db, client, account_id, gmb_id, stats)

    try:
        publisher.send_batch(media_messages, QUEUE_MEDIA)
    except Exception as e:
        stats['media_queue_failed'] += 1
        logger.error(
            "Error queueing media sync",
            extra={'messages': len(media_messages), 'error': str(e), 'error_type': type(e).__name__}
        )

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Sync service completed",
        extra={'duration_seconds': duration, **stats}
    )

    return stats


def handle_review_messages(
    records: list[dict[str, Any]],
    db: SyncDB,
    credentials: GoogleCredentialService,
    client_factory: ClientFactory,
) -> dict[str, int]:
    """
    Sync reviews for each queued `{organization_id, gmb_id, account_id}` message.

    Args:
        records: SQS event records; each body is a JSON message from run_sync

    Returns:
        The same counters as run_sync (review fields only are filled in)
    """
    stats = _new_stats()

    for record in records:
        try:
            message = json.loads(record.get('body') or '{}')
        except ValueError:
            stats['skipped'] += 1
            logger.warning("Ignoring malformed review sync message", extra={'body': record.get('body')})
            continue

        if not isinstance(message, dict):
            stats['skipped'] += 1
            logger.warning("Review sync message is not an object", extra={'body': record.get('body')})
            continue

        gmb_id = message.get('gmb_id')
        account_id = message.get('account_id')
        stats['locations'] += 1

        if not gmb_id or not account_id:
            stats['skipped'] += 1
            logger.warning("Review sync message missing gmb_id or account_id", extra={'message': message})
            continue

        try:
            found, access_token = _refresh_token(
                db, credentials, message.get('organization_id'), account_id, gmb_id
            )
        except DatabaseError as e:
            stats['review_sync_failed'] += 1
            logger.error("Error loading credential", extra={'gmb_id': gmb_id, 'error': str(e)})
            continue

        if not found or access_token is None:
            stats['review_sync_failed'] += 1
            logger.warning("No usable credential, skipping review sync", extra={'gmb_id': gmb_id})
            continue

        _sync_location_reviews(db, client_factory(access_token), account_id, gmb_id, stats)

    return stats


def build_components(
    config: SyncConfig,
) -> tuple[SyncDB, GoogleCredentialService, SqsPublisher]:
    """
    Build the database, credential service and publisher from the environment.

    Raises:
        ValueError: If DATABASE_URL or the Google OAuth client is not configured
        DatabaseError: If the database cannot be reached
    """
    database_url = os.getenv('DATABASE_URL')
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set")

    logger.info("Connecting to database")
    db = SyncDB(database_url, tables=config.tables)
    credentials = GoogleCredentialService(timeout=config.http_timeout_seconds)
    publisher = SqsPublisher(config.queue_url)
    return db, credentials, publisher


def handler(event: Any = None, context: Any = None) -> dict[str, Any]:
    """
    Scheduled entry point. The event carries no input.

    Returns:
        {'statusCode': 200, 'body': <JSON string>} once every location was
        attempted, or statusCode 500 if the job could not start.
    """
    configure_logging()
    logger.info("Incoming scheduled event", extra={'event': event})

    try:
        config = load_sync_config()
        db, credentials, publisher = build_components(config)
        run_sync(db, credentials, publisher, config)
    except (ValueError, FileNotFoundError, DatabaseError) as e:
        logger.error("Sync could not run", extra={'error': str(e), 'error_type': type(e).__name__})
        return {'statusCode': 500, 'body': json.dumps(f'Sync failed: {e}')}

    return {'statusCode': 200, 'body': json.dumps(DONE_MESSAGE)}


def review_handler(event: Any = None, context: Any = None) -> dict[str, Any]:
    """Entry point for the reviews queue consumer."""
    configure_logging()
    records = (event or {}).get('Records') or []

    try:
        config = load_sync_config()
        db, credentials, _ = build_components(config)
    except (ValueError, FileNotFoundError, DatabaseError) as e:
        logger.error("Review sync could not run", extra={'error': str(e), 'error_type': type(e).__name__})
        return {'statusCode': 500, 'body': json.dumps(f'Review sync failed: {e}')}

    stats = handle_review_messages(
        records,
        db,
        credentials,
        lambda token: GoogleBusinessClient(token, timeout=config.http_timeout_seconds),
    )
    return {'statusCode': 200, 'body': json.dumps(stats)}


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the sync service.

    Returns:
        Exit code (0 = success, 1 = partial failure, 2 = fatal error)
    """
    args = parse_args(argv)
    configure_logging()

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    try:
        config = load_sync_config(args.config)
        db, credentials, publisher = build_components(config)

        stats = run_sync(
            db=db,
            credentials=credentials,
            publisher=publisher,
            config=config,
            location_id=args.location_id,
        )

        failures = (
            stats['location_failed']
            + stats['credential_failed']
            + stats['review_sync_failed']
            + stats['media_queue_failed']
        )
        if failures > 0:
            logger.warning(f"Completed with errors: {failures} location step(s) failed")
            return 1  # Partial failure

        logger.info(DONE_MESSAGE)
        return 0

    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        return 2  # Fatal error

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # Standard Unix exit code for SIGINT

    except Exception as e:
        logger.error(
            "Unexpected fatal error",
            extra={
                'error': str(e),
                'error_type': type(e).__name__,
            },
            exc_info=True
        )
        return 2  # Fatal error


if __name__ == '__main__':
    sys.exit(main())
