"""
Utility functions for appstore-cli.

This module provides helper functions for validating and normalizing
command-line input before it is sent to the App Store Connect API.
"""

import os
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from .exceptions import ValidationError

MAX_PAGE_LIMIT = 200

VALID_PLATFORMS = ["IOS", "MAC_OS", "TV_OS", "VISION_OS"]

RFC3339_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$",
    re.ASCII,
)


def validate_limit(limit: Optional[int], flag_name: str = "--limit") -> Optional[int]:
    """
    Validate a page size limit.

    Args:
        limit: The requested page size (0 or None means "not set")
        flag_name: Flag name used in error messages

    Returns:
        The limit, or None when unset

    Raises:
        ValidationError: If the limit is outside 1-200
    """
    if not limit:
        return None
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f"{flag_name} must be between 1 and {MAX_PAGE_LIMIT}")
    return limit


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-separated flag value, dropping empty items."""
    if not value or not value.strip():
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def split_csv_upper(value: Optional[str]) -> List[str]:
    """Split a comma-separated flag value and upper-case every item."""
    return [item.upper() for item in split_csv(value)]


def normalize_enum(
    value: Optional[str],
    allowed: Iterable[str],
    flag_name: str,
    required: bool = False,
) -> Optional[str]:
    """
    Normalize an enum-like flag value to its upper-case API form.

    Args:
        value: Raw flag value
        allowed: Allowed upper-case values
        flag_name: Flag name used in error messages
        required: Whether an empty value is an error

    Returns:
        The normalized value, or None when empty and not required

    Raises:
        ValidationError: If the value is missing or not allowed
    """
    allowed = list(allowed)
    normalized = (value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if not normalized:
        if required:
            raise ValidationError(f"{flag_name} is required")
        return None
    if normalized not in allowed:
        raise ValidationError(f"{flag_name} must be one of: {', '.join(allowed)}")
    return normalized


def normalize_enum_list(
    value: Optional[str], allowed: Iterable[str], flag_name: str
) -> List[str]:
    """Normalize a comma-separated list of enum values, removing duplicates."""
    allowed = list(allowed)
    unique: List[str] = []
    for item in split_csv_upper(value):
        if item not in allowed:
            raise ValidationError(f"{flag_name} must be one of: {', '.join(allowed)}")
        if item not in unique:
            unique.append(item)
    return unique


def normalize_fields(
    value: Optional[str], allowed: Iterable[str], flag_name: str = "--fields"
) -> List[str]:
    """Validate a comma-separated fields/include list against allowed names."""
    allowed = list(allowed)
    fields = split_csv(value)
    for field in fields:
        if field not in allowed:
            raise ValidationError(f"{flag_name} must be one of: {', '.join(allowed)}")
    return fields


def validate_platform(platform: Optional[str]) -> Optional[str]:
    """Normalize a platform flag to IOS, MAC_OS, TV_OS or VISION_OS."""
    return normalize_enum(platform, VALID_PLATFORMS, "--platform")


def normalize_date(value: Optional[str], flag_name: str) -> str:
    """
    Validate a YYYY-MM-DD date flag.

    Raises:
        ValidationError: If the value is empty or not a valid date
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise ValidationError(f"{flag_name} is required")
    try:
        parsed = datetime.strptime(trimmed, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"{flag_name} must be in YYYY-MM-DD format")
    return parsed.strftime("%Y-%m-%d")


def parse_rfc3339(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 timestamp into an aware datetime, or None if malformed."""
    match = RFC3339_PATTERN.match((value or "").strip())
    if not match:
        return None
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    microsecond = int((fraction or ".")[1:7].ljust(6, "0"))
    try:
        if zone in ("Z", "z"):
            tzinfo = timezone.utc
        else:
            sign = -1 if zone[0] == "-" else 1
            tzinfo = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second),
            microsecond, tzinfo=tzinfo,
        )
    except ValueError:
        return None


def normalize_rfc3339(
    value: Optional[str], flag_name: str, required: bool = False
) -> Optional[str]:
    """
    Validate an RFC3339 timestamp flag.

    Returns:
        The timestamp re-serialized in RFC3339, or None when empty

    Raises:
        ValidationError: If the value is missing (when required) or malformed
    """
    trimmed = (value or "").strip()
    if not trimmed:
        if required:
            raise ValidationError(f"{flag_name} is required")
        return None

    parsed = parse_rfc3339(trimmed)
    if parsed is None:
        raise ValidationError(f"{flag_name} must be in RFC3339 format")

    # Fractional seconds are accepted but not sent
    formatted = parsed.replace(microsecond=0).isoformat()
    if formatted.endswith("+00:00"):
        formatted = formatted[:-6] + "Z"
    return formatted


def parse_optional_bool(value: Optional[str], flag_name: str) -> Optional[bool]:
    """Parse a tri-state true/false flag; empty means unset."""
    trimmed = (value or "").strip().lower()
    if not trimmed:
        return None
    if trimmed in ("true", "1", "yes", "t"):
        return True
    if trimmed in ("false", "0", "no", "f"):
        return False
    raise ValidationError(f"{flag_name} must be true or false")


def validate_sort(value: Optional[str], *allowed: str) -> Optional[str]:
    """Validate a --sort flag against the allowed sort keys."""
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    if trimmed not in allowed:
        raise ValidationError(f"--sort must be one of: {', '.join(allowed)}")
    return trimmed


def validate_locale(locale: str) -> str:
    """
    Validate a locale string.

    Args:
        locale: The locale to validate (e.g., 'en-US', 'fr-FR', 'zh-Hans', 'de')

    Returns:
        The validated locale string

    Raises:
        ValidationError: If the locale is invalid
    """
    if not locale:
        raise ValidationError("Locale cannot be empty")

    locale = locale.strip()

    # Language code plus any BCP-47 subtags, e.g. es-419 or zh-Hans-CN
    if len(locale) > 20 or not re.match(r"^[a-zA-Z]{2,3}(-[a-zA-Z0-9]+)*$", locale):
        raise ValidationError(
            f"Invalid locale format. Expected format: 'en-US', got: {locale}"
        )

    return locale


def validate_version_string(version: str) -> str:
    """
    Validate an app version string.

    Args:
        version: The version string to validate

    Returns:
        The validated version string

    Raises:
        ValidationError: If the version string is invalid
    """
    if not version:
        raise ValidationError("Version string cannot be empty")

    version = version.strip()

    # Basic semantic versioning pattern: X.Y.Z
    if not re.match(r"^\d+(\.\d+){0,2}$", version):
        raise ValidationError(
            f"Invalid version format. Expected format: 'X.Y.Z', got: {version}"
        )

    return version


def resolve_app_id(app_id: Optional[str], config_app_id: Optional[str] = None) -> str:
    """
    Resolve the app ID from the flag, ASC_APP_ID, or the config file.

    Args:
        app_id: Value passed on the command line
        config_app_id: ``app_id`` from the loaded config file, if any

    Returns:
        The resolved app ID, or an empty string
    """
    if app_id and app_id.strip():
        return app_id.strip()
    env_value = os.environ.get("ASC_APP_ID", "").strip()
    if env_value:
        return env_value
    return (config_app_id or "").strip()
