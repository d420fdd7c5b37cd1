"""
Configuration and credential resolution.

Settings come from a JSON file (``.asc/config.json``) and from ``ASC_*``
environment variables. The file is looked up at ``ASC_CONFIG_PATH``, then in
the nearest ``.asc`` directory above the working directory, then in the
home directory.
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .client import (
    AppStoreConnectAPI,
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
)
from .exceptions import ConfigError, MissingAuthError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".asc"
CONFIG_FILE_NAME = "config.json"
CONFIG_PATH_ENV = "ASC_CONFIG_PATH"


@dataclass
class Config:
    """Values read from ``config.json``; empty strings mean unset."""

    key_id: str = ""
    issuer_id: str = ""
    private_key_path: str = ""
    app_id: str = ""
    timeout: str = ""
    max_retries: str = ""
    base_delay: str = ""
    max_delay: str = ""
    path: Optional[Path] = None


@dataclass
class Credentials:
    key_id: str = ""
    issuer_id: str = ""
    private_key_path: str = ""
    private_key: str = ""

    @property
    def complete(self) -> bool:
        return bool(
            self.key_id
            and self.issuer_id
            and (self.private_key_path or self.private_key)
        )


def global_config_path() -> Path:
    """Return ``~/.asc/config.json``."""
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def find_local_config_path(start: Optional[Path] = None) -> Optional[Path]:
    """Walk up from ``start`` (the working directory) looking for ``.asc/config.json``."""
    directory = Path(start or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents]:
        candidate = candidate_dir / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def config_path() -> Path:
    """Return the active configuration file path."""
    env_path = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return find_local_config_path() or global_config_path()


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load the configuration file.

    A missing file yields an empty :class:`Config`.

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object
    """
    path = Path(path) if path else config_path()
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"no config file at {path}")
        return Config(path=path)
    except OSError as e:
        raise ConfigError(f"failed to read config: {e}")

    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigError(f"failed to parse config {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"failed to parse config {path}: expected a JSON object")

    return Config(
        key_id=_as_text(data.get("key_id")),
        issuer_id=_as_text(data.get("issuer_id")),
        private_key_path=_as_text(data.get("private_key_path")),
        app_id=_as_text(data.get("app_id")),
        timeout=_as_text(data.get("timeout")),
        max_retries=_as_text(data.get("max_retries")),
        base_delay=_as_text(data.get("base_delay")),
        max_delay=_as_text(data.get("max_delay")),
        path=path,
    )


def parse_duration(value: Optional[str]) -> Optional[float]:
    """
    Parse a duration such as ``30``, ``30s``, ``500ms`` or ``2m`` into seconds.

    Returns:
        Seconds as a positive float, or None if the value is empty or invalid
    """
    value = (value or "").strip().lower()
    if not value:
        return None
    multiplier = 1.0
    for suffix, factor in (("ms", 0.001), ("s", 1.0), ("m", 60.0), ("h", 3600.0)):
        if value.endswith(suffix):
            value = value[: -len(suffix)]
            multiplier = factor
            break
    try:
        seconds = float(value) * multiplier
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def _first_duration(*values: Optional[str]) -> Optional[float]:
    for value in values:
        parsed = parse_duration(value)
        if parsed is not None:
            return parsed
    return None


def resolve_timeout(config: Optional[Config] = None) -> float:
    """Request timeout from ASC_TIMEOUT, ASC_TIMEOUT_SECONDS or the config file."""
    config = config or Config()
    seconds_env = os.environ.get("ASC_TIMEOUT_SECONDS", "").strip()
    timeout = _first_duration(
        os.environ.get("ASC_TIMEOUT"),
        f"{seconds_env}s" if seconds_env else None,
        config.timeout,
    )
    return timeout if timeout is not None else DEFAULT_TIMEOUT


def resolve_retry_settings(config: Optional[Config] = None) -> Dict[str, Any]:
    """Retry settings from ASC_MAX_RETRIES/ASC_BASE_DELAY/ASC_MAX_DELAY or the config file."""
    config = config or Config()
    max_retries = DEFAULT_MAX_RETRIES
    for value in (os.environ.get("ASC_MAX_RETRIES"), config.max_retries):
        value = (value or "").strip()
        if value.isdigit():
            max_retries = int(value)
            break

    base_delay = _first_duration(os.environ.get("ASC_BASE_DELAY"), config.base_delay)
    max_delay = _first_duration(os.environ.get("ASC_MAX_DELAY"), config.max_delay)
    return {
        "max_retries": max_retries,
        "base_delay": base_delay if base_delay is not None else DEFAULT_BASE_DELAY,
        "max_delay": max_delay if max_delay is not None else DEFAULT_MAX_DELAY,
    }


def normalize_private_key(value: str) -> str:
    """Turn literal ``\\n`` sequences into newlines for single-line PEM values."""
    if "\\n" in value and "\n" not in value:
        return value.replace("\\n", "\n")
    return value


def decode_private_key_b64(value: str) -> str:
    """
    Decode a base64 encoded private key.

    Raises:
        ConfigError: If the value is not valid base64 or does not decode to text
    """
    compact = "".join(value.split())
    if not compact:
        raise ConfigError("ASC_PRIVATE_KEY_B64: empty value")
    try:
        decoded = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"ASC_PRIVATE_KEY_B64: {e}")
    if not decoded:
        raise ConfigError("ASC_PRIVATE_KEY_B64: decoded to empty value")
    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConfigError(f"ASC_PRIVATE_KEY_B64: decoded value is not PEM text: {e}")


def env_credentials() -> Credentials:
    """Read credentials from ASC_KEY_ID, ASC_ISSUER_ID and the private key variables."""
    creds = Credentials(
        key_id=os.environ.get("ASC_KEY_ID", "").strip(),
        issuer_id=os.environ.get("ASC_ISSUER_ID", "").strip(),
    )
    key_path = os.environ.get("ASC_PRIVATE_KEY_PATH", "").strip()
    key_b64 = os.environ.get("ASC_PRIVATE_KEY_B64", "").strip()
    key_value = os.environ.get("ASC_PRIVATE_KEY", "").strip()
    if key_path:
        creds.private_key_path = key_path
    elif key_b64:
        creds.private_key = decode_private_key_b64(key_b64)
    elif key_value:
        creds.private_key = normalize_private_key(key_value)
    return creds


def resolve_credentials(config: Optional[Config] = None) -> Credentials:
    """
    Resolve API credentials.

    Complete environment credentials win. Otherwise values from the config
    file are used and missing pieces are filled from the environment.

    Raises:
        MissingAuthError: If key ID, issuer ID or private key are still missing
    """
    config = config or load_config()
    env = env_credentials()
    if env.complete:
        return env

    creds = Credentials(
        key_id=config.key_id or env.key_id,
        issuer_id=config.issuer_id or env.issuer_id,
        private_key_path=config.private_key_path,
    )
    if not creds.private_key_path:
        creds.private_key_path = env.private_key_path
        creds.private_key = env.private_key

    if not creds.complete:
        path = config.path or config_path()
        raise MissingAuthError(
            "missing authentication. Set ASC_KEY_ID, ASC_ISSUER_ID and one of "
            "ASC_PRIVATE_KEY_PATH/ASC_PRIVATE_KEY/ASC_PRIVATE_KEY_B64, "
            f"or create {path}"
        )
    return creds


def create_client(config: Optional[Config] = None) -> AppStoreConnectAPI:
    """Build an API client from the resolved configuration."""
    config = config or load_config()
    creds = resolve_credentials(config)
    return AppStoreConnectAPI(
        key_id=creds.key_id,
        issuer_id=creds.issuer_id,
        private_key_path=(
            Path(creds.private_key_path).expanduser() if creds.private_key_path else None
        ),
        private_key=creds.private_key or None,
        timeout=resolve_timeout(config),
        **resolve_retry_settings(config),
    )
