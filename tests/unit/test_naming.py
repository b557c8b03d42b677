"""Tests for naming module."""

import pytest

from ledgerlock.exceptions import ValidationError
from ledgerlock.naming import (
    DEFAULT_TABLE_NAME,
    TABLE_ENV_VAR,
    resolve_table_name,
    validate_table_name,
)


class TestValidateTableName:
    """Test validate_table_name function."""

    @pytest.mark.parametrize(
        "name",
        ["dbchangelog", "my-app.changelog", "App_Changelog_v2", "abc", "a" * 255],
    )
    def test_valid_names(self, name: str) -> None:
        validate_table_name(name)  # No exception

    def test_empty_name_raises(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_table_name("")
        assert "empty" in exc_info.value.reason

    def test_spaces_raise(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_table_name("my changelog")
        assert "spaces" in exc_info.value.reason

    def test_invalid_characters_raise(self) -> None:
        with pytest.raises(ValidationError):
            validate_table_name("changelog#1")

    def test_too_short_raises(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_table_name("ab")
        assert "Too short" in exc_info.value.reason

    def test_too_long_raises(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_table_name("a" * 256)
        assert "Too long" in exc_info.value.reason


class TestResolveTableName:
    """Test resolve_table_name function."""

    def test_explicit_name_wins(self, monkeypatch) -> None:
        monkeypatch.setenv(TABLE_ENV_VAR, "from-env")
        assert resolve_table_name("explicit") == "explicit"

    def test_env_var_used(self, monkeypatch) -> None:
        monkeypatch.setenv(TABLE_ENV_VAR, "from-env")
        assert resolve_table_name(None) == "from-env"

    def test_default(self, monkeypatch) -> None:
        monkeypatch.delenv(TABLE_ENV_VAR, raising=False)
        assert resolve_table_name(None) == DEFAULT_TABLE_NAME

    def test_invalid_env_value_raises(self, monkeypatch) -> None:
        monkeypatch.setenv(TABLE_ENV_VAR, "bad name")
        with pytest.raises(ValidationError):
            resolve_table_name(None)
