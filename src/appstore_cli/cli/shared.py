"""
Helpers shared by every command family.
"""

import argparse
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional

from ..client import AppStoreConnectAPI
from ..config import create_client, load_config
from ..exceptions import AppStoreConnectError, ValidationError
from ..output import OUTPUT_FORMATS, default_output_format, print_output
from ..pagination import paginate_all
from ..utils import MAX_PAGE_LIMIT, resolve_app_id, validate_limit

logger = logging.getLogger(__name__)

PageFetcher = Callable[..., Dict[str, Any]]


class UsageError(AppStoreConnectError):
    """Raised when required flags are missing or flags conflict."""

    pass


@contextmanager
def usage_errors():
    """Report flag validation failures inside the block as usage errors."""
    try:
        yield
    except ValidationError as e:
        raise UsageError(str(e)) from e


def add_output_flags(parser: argparse.ArgumentParser) -> None:
    """Add --output and --pretty."""
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format: json, table, markdown (default from ASC_DEFAULT_OUTPUT or json)",
    )
    parser.add_argument(
        "--pretty", action="store_true", help="Pretty-print JSON output"
    )


def add_list_flags(parser: argparse.ArgumentParser, item: str = "items") -> None:
    """Add --limit, --next and --paginate."""
    parser.add_argument(
        "--limit", type=int, default=0, help=f"Maximum {item} per page (1-200)"
    )
    parser.add_argument("--next", default="", help="Fetch next page using a links.next URL")
    parser.add_argument(
        "--paginate",
        action="store_true",
        help="Automatically fetch all pages (aggregate results)",
    )


def add_confirm_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--confirm", action="store_true", help="Confirm the destructive operation"
    )


def add_command(
    subparsers: Any,
    name: str,
    handler: Callable[[argparse.Namespace], Any],
    help_text: str,
    **kwargs: Any,
) -> argparse.ArgumentParser:
    """Register a leaf command and attach its handler."""
    parser = subparsers.add_parser(name, help=help_text, description=help_text, **kwargs)
    parser.set_defaults(func=handler, command_parser=parser)
    return parser


def add_group(
    subparsers: Any, name: str, help_text: str, dest: str
) -> Any:
    """Register an intermediate command that only holds subcommands."""
    parser = subparsers.add_parser(name, help=help_text, description=help_text)
    parser.set_defaults(command_parser=parser)
    return parser.add_subparsers(dest=dest, metavar="<subcommand>", required=True)


def get_client() -> AppStoreConnectAPI:
    """Create the API client from config and environment."""
    return create_client(load_config())


def require(value: Optional[str], message: str) -> str:
    """
    Return a trimmed flag value.

    Raises:
        UsageError: If the value is empty
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise UsageError(message)
    return trimmed


def require_flag(value: Optional[str], flag_name: str) -> str:
    return require(value, f"{flag_name} is required")


def resolve_app(value: Optional[str]) -> str:
    """Resolve --app from the flag, ASC_APP_ID or the config file."""
    return resolve_app_id(value) or load_config().app_id


def require_app(value: Optional[str]) -> str:
    app_id = resolve_app(value)
    if not app_id:
        raise UsageError("--app is required (or set ASC_APP_ID)")
    return app_id


def require_confirm(args: argparse.Namespace) -> None:
    if not args.confirm:
        raise UsageError("--confirm is required")


def has_next(args: argparse.Namespace) -> bool:
    return bool((getattr(args, "next", "") or "").strip())


def check_to_many_flags(args: argparse.Namespace, to_many: bool) -> None:
    """Reject paging flags for to-one relationships."""
    if to_many:
        return
    if args.limit or has_next(args) or args.paginate:
        raise UsageError(
            "--limit, --next, and --paginate are only valid for to-many relationships"
        )


def list_pages(args: argparse.Namespace, fetch: PageFetcher) -> Dict[str, Any]:
    """
    Fetch a page, or every page with --paginate.

    The limit is validated before the client is created.

    Args:
        args: Parsed arguments carrying limit, next and paginate
        fetch: Callable taking the client plus ``limit`` and ``next_url``
            keyword arguments

    Returns:
        The page document, or the aggregate of all pages
    """
    limit = validate_limit(args.limit)
    next_url = (args.next or "").strip() or None
    api = get_client()

    if args.paginate:
        first_page = fetch(api, limit=MAX_PAGE_LIMIT, next_url=next_url)
        return paginate_all(first_page, api.get_url)
    return fetch(api, limit=limit, next_url=next_url)


def deleted(resource_id: str) -> Dict[str, Any]:
    """Result printed after a successful delete."""
    return {"id": resource_id, "deleted": True}


def print_result(args: argparse.Namespace, result: Any) -> None:
    """Print a result with the command's --output and --pretty flags."""
    print_output(result, args.output or default_output_format(), args.pretty)
