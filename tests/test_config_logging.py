"""Settings normalisation and log redaction."""

import pytest

from ira_registration.core.config import Settings, normalise_api_base_url
from ira_registration.core.exceptions import InvalidCredentialsError, SessionExpiredError, StepValidationError
from ira_registration.core.logging_config import get_log_level, redact_sensitive


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("http://localhost:5000", "http://localhost:5000/api"),
        ("http://localhost:5000/", "http://localhost:5000/api"),
        ("https://api.example.com/api", "https://api.example.com/api"),
        ("https://api.example.com/api//", "https://api.example.com/api"),
        ("  ", "http://localhost:5000/api"),
    ],
)
def test_base_url_normalisation(raw, expected):
    assert normalise_api_base_url(raw) == expected


def test_settings_normalise_base_url():
    assert Settings(api_base_url="https://api.example.com").api_base_url == "https://api.example.com/api"


def test_production_requires_https():
    with pytest.raises(ValueError):
        Settings(environment="production", api_base_url="http://api.example.com")
    assert Settings(environment="production", api_base_url="https://api.example.com").environment == "production"


def test_read_retry_bounds():
    with pytest.raises(ValueError):
        Settings(read_retry_attempts=0)


def test_redaction_masks_sensitive_context():
    event = redact_sensitive(None, "info", {"event": "step_saved", "ssn": "123-45-6789", "password": "x", "step": 2})
    assert event == {"event": "step_saved", "ssn": "***", "password": "***", "step": 2}


def test_explicit_log_level_wins(monkeypatch):
    from ira_registration.core import logging_config

    monkeypatch.setattr(logging_config.settings, "log_level", "debug")
    assert get_log_level("production") == "DEBUG"
    monkeypatch.setattr(logging_config.settings, "log_level", "")
    assert get_log_level("test") == "WARNING"


def test_exception_defaults():
    assert SessionExpiredError().status_code == 401
    assert "Incorrect user ID or password" in InvalidCredentialsError().message
    error = StepValidationError(6, {"primaryPercentage": "x", "name-a": "y"})
    assert error.details == {"step": 6, "fields": ["name-a", "primaryPercentage"]}
