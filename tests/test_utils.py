"""
Tests for input validation helpers.
"""

from datetime import datetime, timezone

import pytest

from appstore_cli.exceptions import ValidationError
from appstore_cli.utils import (
    normalize_date,
    normalize_enum,
    normalize_enum_list,
    normalize_fields,
    normalize_rfc3339,
    parse_optional_bool,
    parse_rfc3339,
    resolve_app_id,
    split_csv,
    validate_limit,
    validate_locale,
    validate_platform,
    validate_sort,
    validate_version_string,
)


class TestLimits:
    """Test --limit validation."""

    def test_unset(self):
        assert validate_limit(0) is None
        assert validate_limit(None) is None

    def test_bounds(self):
        assert validate_limit(1) == 1
        assert validate_limit(200) == 200

    @pytest.mark.parametrize("value", [-1, 201])
    def test_out_of_range(self, value):
        with pytest.raises(ValidationError, match="--limit must be between 1 and 200"):
            validate_limit(value)


class TestLists:
    """Test comma-separated values."""

    def test_split_csv(self):
        assert split_csv(" a, ,b ,") == ["a", "b"]
        assert split_csv("  ") == []
        assert split_csv(None) == []

    def test_enum_list_dedupes(self):
        result = normalize_enum_list("new,existing,NEW", ["NEW", "EXISTING", "EXPIRED"], "--x")
        assert result == ["NEW", "EXISTING"]

    def test_enum_list_invalid(self):
        with pytest.raises(ValidationError, match="--x must be one of: NEW, EXISTING"):
            normalize_enum_list("new,lapsed", ["NEW", "EXISTING"], "--x")

    def test_fields(self):
        assert normalize_fields("name,identifier", ["name", "identifier"]) == ["name", "identifier"]
        with pytest.raises(ValidationError, match="--fields must be one of"):
            normalize_fields("secret", ["name"])


class TestEnums:
    """Test enum normalization."""

    def test_normalizes_case_and_separators(self):
        assert normalize_enum("non-consumable", ["NON_CONSUMABLE"], "--type") == "NON_CONSUMABLE"

    def test_optional_empty(self):
        assert normalize_enum("", ["A"], "--type") is None

    def test_required_empty(self):
        with pytest.raises(ValidationError, match="--type is required"):
            normalize_enum(" ", ["A"], "--type", required=True)

    def test_platform(self):
        assert validate_platform("ios") == "IOS"
        assert validate_platform("mac-os") == "MAC_OS"
        with pytest.raises(ValidationError):
            validate_platform("android")

    def test_sort(self):
        assert validate_sort("-name", "name", "-name") == "-name"
        assert validate_sort("", "name") is None
        with pytest.raises(ValidationError, match="--sort must be one of: name"):
            validate_sort("date", "name")


class TestDates:
    """Test date and timestamp flags."""

    def test_date(self):
        assert normalize_date(" 2026-03-01 ", "--expiration-date") == "2026-03-01"

    def test_date_invalid(self):
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            normalize_date("03/01/2026", "--expiration-date")

    def test_date_missing(self):
        with pytest.raises(ValidationError, match="--expiration-date is required"):
            normalize_date("", "--expiration-date")

    def test_rfc3339_utc(self):
        assert normalize_rfc3339("2026-05-01T10:00:00Z", "--start") == "2026-05-01T10:00:00Z"

    def test_rfc3339_offset(self):
        assert normalize_rfc3339("2026-05-01T10:00:00+02:00", "--start") == "2026-05-01T10:00:00+02:00"

    @pytest.mark.parametrize("value,expected", [
        ("2026-05-01T10:00:00.5Z", "2026-05-01T10:00:00Z"),
        ("2026-05-01T10:00:00.123456789+02:00", "2026-05-01T10:00:00+02:00"),
        ("2026-05-01T10:00:00-00:00", "2026-05-01T10:00:00Z"),
    ])
    def test_rfc3339_fractional_and_zero_offset(self, value, expected):
        assert normalize_rfc3339(value, "--start") == expected

    @pytest.mark.parametrize("value", [
        "2026-05-01", "2026-05-01T10:00:00", "tomorrow",
        "2026-13-01T10:00:00Z", "2026-05-01T10:00:00+25:00", "2026-05-01 10:00:00Z",
    ])
    def test_rfc3339_invalid(self, value):
        with pytest.raises(ValidationError, match="--start must be in RFC3339 format"):
            normalize_rfc3339(value, "--start")

    def test_rfc3339_required(self):
        assert normalize_rfc3339("", "--start") is None
        with pytest.raises(ValidationError, match="--start is required"):
            normalize_rfc3339("", "--start", required=True)

    def test_parse_rfc3339_keeps_fraction(self):
        parsed = parse_rfc3339("2026-05-01T10:00:00.1234567Z")
        assert parsed == datetime(2026, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

    def test_parse_rfc3339_malformed(self):
        assert parse_rfc3339("2026-05-01T25:00:00Z") is None
        assert parse_rfc3339(None) is None


class TestBooleans:
    """Test tri-state boolean flags."""

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("YES", True), ("1", True),
        ("false", False), ("no", False), ("0", False),
        ("", None), (None, None),
    ])
    def test_parse(self, value, expected):
        assert parse_optional_bool(value, "--active") is expected

    def test_invalid(self):
        with pytest.raises(ValidationError, match="--active must be true or false"):
            parse_optional_bool("maybe", "--active")


class TestResolveAppId:
    """Test app ID resolution order."""

    def test_flag_wins(self, monkeypatch):
        monkeypatch.setenv("ASC_APP_ID", "env")
        assert resolve_app_id(" flag ", "config") == "flag"

    def test_env_before_config(self, monkeypatch):
        monkeypatch.setenv("ASC_APP_ID", "env")
        assert resolve_app_id(None, "config") == "env"

    def test_config_fallback(self, monkeypatch):
        monkeypatch.delenv("ASC_APP_ID", raising=False)
        assert resolve_app_id("", "config") == "config"
        assert resolve_app_id("", None) == ""


class TestLocaleAndVersion:
    """Test locale and version string validation."""

    @pytest.mark.parametrize("locale", ["en-US", "de", "zh-Hans", "zh-Hans-CN", "es-419"])
    def test_valid_locale(self, locale):
        assert validate_locale(f" {locale} ") == locale

    @pytest.mark.parametrize("locale", ["english", "en_US", "en-", "e", "en-US/../x"])
    def test_invalid_locale(self, locale):
        with pytest.raises(ValidationError, match="Invalid locale format"):
            validate_locale(locale)

    def test_empty_locale(self):
        with pytest.raises(ValidationError):
            validate_locale("")

    @pytest.mark.parametrize("version", ["1", "1.2", "1.2.3"])
    def test_valid_version(self, version):
        assert validate_version_string(version) == version

    @pytest.mark.parametrize("version", ["1.2.3.4", "v1.0", "1.x"])
    def test_invalid_version(self, version):
        with pytest.raises(ValidationError, match="Invalid version format"):
            validate_version_string(version)
