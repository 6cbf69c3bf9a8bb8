"""Tests for configuration validation."""

from pathlib import Path

import pytest

from worksync.core.config import DEFAULT_SECRET_KEY, Constants, Settings
from worksync.main import validate_startup_configuration


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(secret_key="s3cret")

    result = settings.require_credential("secret_key", "Session signing")

    assert result == "s3cret"


def test_require_credential_with_empty_string_raises_error() -> None:
    """Test require_credential raises ValueError when credential is empty."""
    settings = Settings(secret_key="")

    with pytest.raises(ValueError, match="Session signing credential not configured"):
        settings.require_credential("secret_key", "Session signing")


def test_require_credential_error_message_includes_field_name() -> None:
    """Test error message includes the environment variable name."""
    settings = Settings(logfire_token=None)

    with pytest.raises(ValueError, match="LOGFIRE_TOKEN"):
        settings.require_credential("logfire_token", "Logfire")


def test_defaults() -> None:
    """Test file library limits and session defaults."""
    settings = Settings()

    assert settings.max_upload_files == 100
    assert settings.max_upload_file_size_bytes == 200 * 1024 * 1024
    assert settings.file_activity_default_days == 30
    assert settings.session_max_age_seconds == 86400


@pytest.mark.parametrize(("environment", "expected"), [("production", True), ("PRODUCTION", True), ("test", False)])
def test_is_production(environment: str, expected: bool) -> None:
    """Test is_production is case-insensitive."""
    assert Settings(environment=environment).is_production is expected


def test_environment_variables_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings are read from the environment."""
    monkeypatch.setenv("MAX_UPLOAD_FILES", "5")
    monkeypatch.setenv("FILE_STORAGE_ROOT", "/srv/files")

    settings = Settings()

    assert settings.max_upload_files == 5
    assert settings.file_storage_root == "/srv/files"


def test_startup_validation_passes_in_development(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the development secret is accepted outside production."""
    monkeypatch.setattr("worksync.main.settings", Settings(environment="development", secret_key=DEFAULT_SECRET_KEY))

    validate_startup_configuration()


def test_startup_fails_with_default_secret_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test production refuses to start with the development secret."""
    monkeypatch.setattr("worksync.main.settings", Settings(environment="production", secret_key=DEFAULT_SECRET_KEY))

    with pytest.raises(SystemExit) as exc_info:
        validate_startup_configuration()

    assert exc_info.value.code == 1


def test_startup_fails_without_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test startup fails when the secret is empty."""
    monkeypatch.setattr("worksync.main.settings", Settings(secret_key=""))

    with pytest.raises(SystemExit):
        validate_startup_configuration()


def test_constants_hold_no_filesystem_paths() -> None:
    """Test storage locations come only from Settings."""
    values = {name: getattr(Constants, name) for name in dir(Constants) if name.isupper()}

    assert not [name for name, value in values.items() if isinstance(value, Path)]
    assert values["LIST_BATCH_SIZE"] == 500
    assert values["MAX_PAGE_SIZE"] <= values["LIST_BATCH_SIZE"]
