import pytest

from wakeup.config import ConfigurationError, Settings
from wakeup.main import create_app


def test_missing_secret_is_fatal():
    with pytest.raises(ConfigurationError, match="JWT_SECRET"):
        Settings.from_env({})


def test_blank_secret_is_fatal():
    with pytest.raises(ConfigurationError):
        Settings.from_env({"JWT_SECRET": "   "})


def test_create_app_without_secret_fails(monkeypatch):
    """The app factory refuses to build a keyless service."""
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.setattr("wakeup.config.load_dotenv", lambda: False)

    with pytest.raises(ConfigurationError):
        create_app()


def test_defaults():
    settings = Settings.from_env({"JWT_SECRET": "s3cret"})

    assert settings.jwt_secret == "s3cret"
    assert settings.jwt_algorithm == "HS256"
    assert settings.access_token_expire_minutes == 15
    assert settings.refresh_token_expire_days == 7
    assert settings.api_prefix == "/api/v1"
    assert settings.cors_origins == ["*"]
    assert settings.google_timeout_seconds == 10.0


def test_overrides():
    settings = Settings.from_env({
        "JWT_SECRET": "s3cret",
        "ACCESS_TOKEN_EXPIRE_MINUTES": "5",
        "REFRESH_TOKEN_EXPIRE_DAYS": "30",
        "GOOGLE_TIMEOUT_SECONDS": "2.5",
        "API_PREFIX": "/api/v2/",
        "CORS_ORIGINS": "https://a.example, https://b.example",
        "LOG_LEVEL": "debug",
    })

    assert settings.access_token_expire_minutes == 5
    assert settings.refresh_token_expire_days == 30
    assert settings.google_timeout_seconds == 2.5
    assert settings.api_prefix == "/api/v2"
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["abc", "0", "-3"])
def test_bad_integer_rejected(value):
    with pytest.raises(ConfigurationError, match="ACCESS_TOKEN_EXPIRE_MINUTES"):
        Settings.from_env({"JWT_SECRET": "s3cret", "ACCESS_TOKEN_EXPIRE_MINUTES": value})


def test_secret_not_in_repr():
    settings = Settings.from_env({"JWT_SECRET": "s3cret"})
    assert "s3cret" not in repr(settings)


def test_settings_are_frozen():
    settings = Settings.from_env({"JWT_SECRET": "s3cret"})
    with pytest.raises(Exception):
        settings.jwt_secret = "other"


def test_short_secret_logs_warning(caplog):
    with caplog.at_level("WARNING"):
        Settings.from_env({"JWT_SECRET": "s3cret"})
    assert "config.weak_secret" in caplog.text
    assert "s3cret" not in caplog.text

    caplog.clear()
    with caplog.at_level("WARNING"):
        Settings.from_env({"JWT_SECRET": "k" * 32})
    assert "config.weak_secret" not in caplog.text
