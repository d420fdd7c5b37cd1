"""
Command-line entry point for ``asc``.

Each resource family registers its own subcommand tree; handlers return the
result to print and raise exceptions from ``appstore_cli.exceptions`` on
failure. ``main`` maps those exceptions to process exit codes.
"""

import argparse
import logging
import sys
from typing import Iterator, List, Optional

from .. import __version__
from ..exceptions import (
    AppStoreConnectError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionError,
)
from . import (
    agreements,
    app_events,
    builds,
    iap,
    marketplace,
    offer_codes,
    pass_type_ids,
    shared,
    testflight,
)
from .shared import UsageError

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_AUTH = 3
EXIT_NOT_FOUND = 4
EXIT_CONFLICT = 5

FAMILIES = (
    builds,
    testflight,
    iap,
    offer_codes,
    marketplace,
    app_events,
    agreements,
    pass_type_ids,
)

_API_CODE_EXITS = {
    "NOT_FOUND": EXIT_NOT_FOUND,
    "CONFLICT": EXIT_CONFLICT,
    "UNAUTHORIZED": EXIT_AUTH,
    "FORBIDDEN": EXIT_AUTH,
    "BAD_REQUEST": 10,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the ``asc`` argument parser with every command family registered."""
    parser = argparse.ArgumentParser(
        prog="asc",
        description="A command-line client for the App Store Connect API.",
    )
    parser.add_argument("--version", action="version", version=f"asc {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--api-debug",
        action="store_true",
        help="Log HTTP requests and responses (sensitive values redacted)",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="<command>", required=True)
    for family in FAMILIES:
        family.register(subparsers)
    return parser


def configure_logging(debug: bool = False, api_debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    if api_debug:
        logging.getLogger("appstore_cli.client").setLevel(logging.DEBUG)


def _error_chain(error: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def _status_exit_code(status: int) -> Optional[int]:
    if status in (401, 403):
        return EXIT_AUTH
    if status == 404:
        return EXIT_NOT_FOUND
    if status == 409:
        return EXIT_CONFLICT
    if 400 <= status < 500:
        return min(10 + (status - 400), 59)
    if 500 <= status < 600:
        return min(60 + (status - 500), 99)
    return None


def exit_code_for(error: BaseException) -> int:
    """
    Map an exception to the process exit code.

    The ``__cause__`` chain is walked so that wrapped errors keep the code of
    the error they wrap.

    Args:
        error: The exception raised by a command

    Returns:
        Exit code between 1 and 99
    """
    chain = list(_error_chain(error))

    for err in chain:
        if isinstance(err, UsageError):
            return EXIT_USAGE
        if isinstance(err, (AuthenticationError, PermissionError)):
            return EXIT_AUTH
        if isinstance(err, NotFoundError):
            return EXIT_NOT_FOUND
        if isinstance(err, ConflictError):
            return EXIT_CONFLICT

    for err in chain:
        status = getattr(err, "status_code", None)
        if status:
            code = _status_exit_code(status)
            if code is not None:
                return code

    for err in chain:
        api_code = (getattr(err, "code", None) or "").upper()
        if api_code in _API_CODE_EXITS:
            return _API_CODE_EXITS[api_code]

    return EXIT_ERROR


def command_path(args: argparse.Namespace) -> str:
    """Return the invoked command path, e.g. ``builds list``."""
    parser = getattr(args, "command_parser", None)
    if parser is None:
        return ""
    return parser.prog.split(" ", 1)[-1]


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run ``asc`` with the given arguments.

    Returns:
        The process exit code
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        if e.code is None:
            return EXIT_SUCCESS
        return e.code if isinstance(e.code, int) else EXIT_USAGE

    configure_logging(args.debug, args.api_debug)

    try:
        result = args.func(args)
        if result is not None:
            shared.print_result(args, result)
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        args.command_parser.print_usage(sys.stderr)
        return EXIT_USAGE
    except AppStoreConnectError as e:
        logger.debug(f"{command_path(args)} failed", exc_info=True)
        print(f"Error: {command_path(args)}: {e}", file=sys.stderr)
        return exit_code_for(e)
    except KeyboardInterrupt:
        print("Error: interrupted", file=sys.stderr)
        return 130

    return EXIT_SUCCESS
