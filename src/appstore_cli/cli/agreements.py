"""
``asc agreements``: end user license agreement territories.
"""

import argparse
import logging
import re
from typing import Any
from urllib.parse import urlparse

from . import shared
from .shared import UsageError

logger = logging.getLogger(__name__)

_EULA_TERRITORIES_PATH = re.compile(
    r"^/v1/endUserLicenseAgreements/([^/]+)/(?:relationships/)?territories/?$"
)


def extract_eula_id_from_next_url(next_url: str) -> str:
    """
    Recover the agreement ID from a territories ``links.next`` URL.

    Args:
        next_url: A ``.../endUserLicenseAgreements/{id}/territories`` URL

    Returns:
        The agreement ID

    Raises:
        UsageError: If the URL does not point at agreement territories
    """
    match = _EULA_TERRITORIES_PATH.match(urlparse(next_url.strip()).path)
    if not match:
        raise UsageError(
            f"--next must be an end user license agreement territories URL, got {next_url!r}"
        )
    return match.group(1)


def cmd_territories_list(args: argparse.Namespace) -> Any:
    eula_id = (args.id or "").strip()
    if shared.has_next(args):
        next_id = extract_eula_id_from_next_url(args.next)
        if eula_id and eula_id != next_id:
            raise UsageError("--id and --next must reference the same agreement")
        eula_id = next_id
    if not eula_id:
        raise UsageError("--id or --next is required")

    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_end_user_license_agreement_territories(
            eula_id, limit=limit, next_url=next_url
        ),
    )


def register(subparsers: Any) -> None:
    """Register ``asc agreements``."""
    agreements = shared.add_group(
        subparsers, "agreements", "Manage App Store Connect agreements.", "agreements_command"
    )
    territories = shared.add_group(
        agreements,
        "territories",
        "Territories covered by an end user license agreement.",
        "territories_command",
    )
    p = shared.add_command(
        territories,
        "list",
        cmd_territories_list,
        "List territories for an end user license agreement.",
    )
    p.add_argument("--id", help="End user license agreement ID")
    shared.add_list_flags(p, "territories")
    shared.add_output_flags(p)
