"""Unit tests for the sync configuration loader."""

from pathlib import Path

import pytest

from gbp_sync.sync.config_loader import SyncConfig, TableNames, load_sync_config


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "sync.yml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadSyncConfig:
    """Test cases for load_sync_config."""

    def test_repository_config_loads(self, monkeypatch):
        """The checked-in config/sync.yml is valid."""
        monkeypatch.delenv("GBP_SYNC_CONFIG", raising=False)
        config = load_sync_config()

        assert config.tables.locations == "gmb_locations"
        assert config.review_sync_mode == "inline"
        assert config.notification_type_key == "VOICE_OF_MERCHANT_UPDATED"

    def test_full_file(self, tmp_path):
        """Every section is read."""
        path = _write(tmp_path, """
tables:
  locations: gbp.locations
  reviews: gbp.reviews
queues:
  media: https://sqs.example/media
  reviews: ""
notification_type_key: STATUS_CHANGED
review_sync_mode: Queue
http_timeout_seconds: 12
""")
        config = load_sync_config(path)

        assert config.tables.locations == "gbp.locations"
        assert config.tables.reviews == "gbp.reviews"
        assert config.tables.history == TableNames().history
        assert config.queues == {"media": "https://sqs.example/media"}
        assert config.notification_type_key == "STATUS_CHANGED"
        assert config.review_sync_mode == "queue"
        assert config.http_timeout_seconds == 12.0

    def test_empty_file_uses_defaults(self, tmp_path):
        """An empty file gives the default configuration."""
        assert load_sync_config(_write(tmp_path, "")) == SyncConfig()

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        """GBP_SYNC_CONFIG is used when no path is passed."""
        monkeypatch.setenv("GBP_SYNC_CONFIG", _write(tmp_path, "review_sync_mode: queue\n"))

        assert load_sync_config().review_sync_mode == "queue"

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_sync_config(str(tmp_path / "nope.yml"))

    @pytest.mark.parametrize("text,message", [
        ("tables: [a, b]\n", "must be a mapping"),
        ("tables:\n  bogus: x\n", "Unknown table keys"),
        ("tables:\n  locations: ''\n", "non-empty string"),
        ("queues: [a]\n", "must be a mapping"),
        ("review_sync_mode: batch\n", "review_sync_mode"),
        ("http_timeout_seconds: soon\n", "must be numeric"),
        ("notification_type_key: ''\n", "notification_type_key"),
        ("- just\n- a list\n", "top level"),
        ("tables: {locations: [\n", "Invalid YAML"),
    ])
    def test_invalid_files(self, tmp_path, text, message):
        """Structural problems raise ValueError."""
        with pytest.raises(ValueError, match=message):
            load_sync_config(_write(tmp_path, text))


class TestQueueUrl:
    """Test cases for SyncConfig.queue_url."""

    def test_file_value(self, monkeypatch):
        monkeypatch.delenv("SQS_QUEUE_URL_MEDIA", raising=False)
        config = SyncConfig(queues={"media": "https://sqs.example/media"})

        assert config.queue_url("media") == "https://sqs.example/media"

    def test_environment_wins(self, monkeypatch):
        monkeypatch.setenv("SQS_QUEUE_URL_KEYWORD_STUFFING", "https://sqs.example/env")
        config = SyncConfig(queues={"keyword_stuffing": "https://sqs.example/file"})

        assert config.queue_url("keyword_stuffing") == "https://sqs.example/env"

    def test_unconfigured_queue(self, monkeypatch):
        monkeypatch.delenv("SQS_QUEUE_URL_REVIEWS", raising=False)

        with pytest.raises(KeyError, match="reviews"):
            SyncConfig().queue_url("reviews")
