"""
Configuration Loader for the Sync Service

This module loads and validates the sync settings from `config/sync.yml`:
table names, queue URLs, the notification type key, the review sync mode and
the HTTP timeout. Secrets (database URL, OAuth client) stay in the environment.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


REVIEW_SYNC_MODES = {'inline', 'queue'}

QUEUE_KEYWORD_STUFFING = 'keyword_stuffing'
QUEUE_REVIEWS = 'reviews'
QUEUE_MEDIA = 'media'


@dataclass
class TableNames:
    """Database tables used by the job. Names may be schema-qualified."""

    locations: str = 'gmb_locations'
    reviews: str = 'gmb_reviews'
    location_organizations: str = 'gmb_location_organization_bridge'
    google_credentials: str = 'google_credentials'
    user_organizations: str = 'user_organization_bridge'
    history: str = 'gmb_history'
    notifications: str = 'notifications'
    notification_types: str = 'notification_types'


@dataclass
class SyncConfig:
    """Complete sync configuration."""

    tables: TableNames = field(default_factory=TableNames)
    queues: dict[str, str] = field(default_factory=dict)
    notification_type_key: str = 'VOICE_OF_MERCHANT_UPDATED'
    review_sync_mode: str = 'inline'
    http_timeout_seconds: float = 30.0

    def queue_url(self, queue_key: str) -> str:
        """
        Resolve a queue key to its URL.

        `SQS_QUEUE_URL_<KEY>` in the environment takes precedence over the file.

        Raises:
            KeyError: If the queue is not configured anywhere
        """
        env_name = f"SQS_QUEUE_URL_{queue_key.upper()}"
        url = os.getenv(env_name) or self.queues.get(queue_key)
        if not url:
            raise KeyError(f"No URL configured for queue '{queue_key}' (set {env_name})")
        return url


def _project_root() -> Path:
    """Return the project root path based on this file's location."""
    return Path(__file__).resolve().parent.parent.parent


def _default_config_path() -> Path:
    override = os.getenv('GBP_SYNC_CONFIG')
    return Path(override) if override else _project_root() / 'config' / 'sync.yml'


def _parse_tables(section: Any) -> TableNames:
    if section is None:
        return TableNames()
    if not isinstance(section, Mapping):
        raise ValueError("`tables` section must be a mapping")

    known = set(TableNames.__dataclass_fields__)
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown table keys in sync configuration: {sorted(unknown)}")

    for key, value in section.items():
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Table name for '{key}' must be a non-empty string")

    return TableNames(**{key: value.strip() for key, value in section.items()})


def _parse_queues(section: Any) -> dict[str, str]:
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError("`queues` section must be a mapping of queue key to URL")

    # Empty values are allowed so that URLs can come from the environment
    return {str(key): str(value) for key, value in section.items() if value}


def load_sync_config(config_path: str | None = None) -> SyncConfig:
    """
    Load sync configuration from YAML file.

    Args:
        config_path: Optional override for the config file path. When omitted,
            `GBP_SYNC_CONFIG` is used, then `config/sync.yml` relative to the
            project root.

    Returns:
        SyncConfig populated from the file, with defaults for omitted keys.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the YAML file cannot be parsed or has invalid structure.
    """
    path = Path(config_path) if config_path else _default_config_path()
    if not path.exists():
        logger.error("Sync configuration file not found: %s", path)
        raise FileNotFoundError(f"Sync configuration file not found: {path}")

    try:
        with path.open('r', encoding='utf-8') as handle:
            raw_config: Mapping[str, Any] | None = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse sync configuration: %s", exc)
        raise ValueError(f"Invalid YAML in sync configuration: {exc}") from exc

    if not raw_config:
        logger.warning("Sync configuration file is empty, using defaults: %s", path)
        return SyncConfig()

    if not isinstance(raw_config, Mapping):
        raise ValueError("Sync configuration must be a mapping at the top level")

    review_sync_mode = str(raw_config.get('review_sync_mode', 'inline')).strip().lower()
    if review_sync_mode not in REVIEW_SYNC_MODES:
        raise ValueError(
            f"`review_sync_mode` must be one of {sorted(REVIEW_SYNC_MODES)}, got '{review_sync_mode}'"
        )

    timeout = raw_config.get('http_timeout_seconds', 30)
    try:
        timeout = float(timeout)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"`http_timeout_seconds` must be numeric, got: {timeout}") from exc

    notification_type_key = raw_config.get('notification_type_key', 'VOICE_OF_MERCHANT_UPDATED')
    if not isinstance(notification_type_key, str) or not notification_type_key.strip():
        raise ValueError("`notification_type_key` must be a non-empty string")

    config = SyncConfig(
        tables=_parse_tables(raw_config.get('tables')),
        queues=_parse_queues(raw_config.get('queues')),
        notification_type_key=notification_type_key.strip(),
        review_sync_mode=review_sync_mode,
        http_timeout_seconds=timeout,
    )

    logger.info(
        "Loaded sync configuration",
        extra={
            'config_path': str(path),
            'review_sync_mode': config.review_sync_mode,
            'queues': sorted(config.queues),
        },
    )
    return config


__all__ = [
    'QUEUE_KEYWORD_STUFFING',
    'QUEUE_MEDIA',
    'QUEUE_REVIEWS',
    'SyncConfig',
    'TableNames',
    'load_sync_config',
]
