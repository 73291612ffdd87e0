"""Unit tests for Settings."""

import pytest

from payout_service.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DEFAULT_CURRENCY", raising=False)
        monkeypatch.delenv("HTTP_PORT", raising=False)

        settings = Settings(_env_file=None)

        assert settings.default_currency == "TRY"
        assert settings.http_port == 8000
        assert settings.kafka_topic_prefix == "payouts"
        assert settings.outbox_max_retries == 5
        assert settings.jwt_algorithm == "HS256"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEFAULT_CURRENCY", "EUR")
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("OUTBOX_BATCH_SIZE", "25")

        settings = Settings(_env_file=None)

        assert settings.default_currency == "EUR"
        assert settings.rate_limit_enabled is False
        assert settings.outbox_batch_size == 25

    def test_log_format_is_validated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError):
            Settings(_env_file=None)
