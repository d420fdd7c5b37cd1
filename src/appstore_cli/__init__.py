"""
appstore-cli

A command-line client for the Apple App Store Connect API covering builds,
TestFlight, in-app purchases, offer codes, marketplace webhooks, app events,
agreements and pass type IDs.
"""

from .client import AppStoreConnectAPI
from .builds import BuildsManager
from .config import create_client, load_config
from .pagination import paginate_all
from .output import print_output
from .exceptions import (
    AppStoreConnectError,
    AuthenticationError,
    MissingAuthError,
    RateLimitError,
    ValidationError,
    ConfigError,
    NotFoundError,
    PermissionError,
    ConflictError,
    ServerError,
    PaginationError,
)
from . import utils

__version__ = "0.1.0"

__all__ = [
    "AppStoreConnectAPI",
    "BuildsManager",
    "create_client",
    "load_config",
    "paginate_all",
    "print_output",
    "AppStoreConnectError",
    "AuthenticationError",
    "MissingAuthError",
    "RateLimitError",
    "ValidationError",
    "ConfigError",
    "NotFoundError",
    "PermissionError",
    "ConflictError",
    "ServerError",
    "PaginationError",
    "utils",
]
