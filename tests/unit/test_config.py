"""Unit tests for acc_admin.config module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from acc_admin.config import Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None, database_url="postgresql://localhost/acc")

    assert settings.irc_notifications_enabled is True
    assert settings.irc_instance_name == "acc-admin"
    assert settings.geolocation_api_key is None
    assert settings.geolocation_cache_max_age_days == 30
    assert settings.rate_limit_requests_per_minute == 120
    assert settings.protected_proxies == []


def test_database_url_is_required():
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_protected_proxies_parsed(settings):
    assert settings.protected_proxies == ["10.0.0.1", "10.0.0.2"]


def test_notifications_url_falls_back_to_primary():
    settings = Settings(_env_file=None, database_url="postgresql://localhost/acc")
    assert settings.effective_notifications_database_url == "postgresql://localhost/acc"

    settings = Settings(
        _env_file=None,
        database_url="postgresql://localhost/acc",
        notifications_database_url="postgresql://localhost/notifications",
    )
    assert settings.effective_notifications_database_url == "postgresql://localhost/notifications"


def test_sample_rate_bounds():
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            database_url="postgresql://localhost/acc",
            sentry_traces_sample_rate=1.5,
        )


def test_get_settings_reads_environment():
    get_settings.cache_clear()
    try:
        with patch.dict(
            os.environ,
            {
                "DATABASE_URL": "postgresql://env/acc",
                "IRC_INSTANCE_NAME": "acc-env",
                "SQUID_LIST": "192.0.2.10",
            },
        ):
            settings = get_settings()
            assert settings.database_url == "postgresql://env/acc"
            assert settings.irc_instance_name == "acc-env"
            assert settings.protected_proxies == ["192.0.2.10"]
            assert get_settings() is settings
    finally:
        get_settings.cache_clear()
