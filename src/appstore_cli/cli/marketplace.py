"""
``asc marketplace webhooks``: manage alternative marketplace webhooks.
"""

import argparse
import logging
from functools import wraps
from typing import Any, Callable

from ..utils import normalize_fields
from . import shared

logger = logging.getLogger(__name__)

WEBHOOK_FIELDS = ["endpointUrl"]


def deprecated_endpoint(func: Callable[[argparse.Namespace], Any]) -> Callable:
    """Warn that the marketplace webhook endpoints are deprecated before running."""

    @wraps(func)
    def wrapper(args: argparse.Namespace) -> Any:
        logger.warning(
            "marketplace webhooks endpoints are deprecated in App Store Connect API."
        )
        return func(args)

    return wrapper


@deprecated_endpoint
def cmd_webhooks_list(args: argparse.Namespace) -> Any:
    fields = normalize_fields(args.fields, WEBHOOK_FIELDS)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_marketplace_webhooks(
            fields=fields, limit=limit, next_url=next_url
        ),
    )


@deprecated_endpoint
def cmd_webhooks_get(args: argparse.Namespace) -> Any:
    webhook_id = shared.require_flag(args.webhook_id, "--webhook-id")
    return shared.get_client().get_marketplace_webhook(webhook_id)


@deprecated_endpoint
def cmd_webhooks_create(args: argparse.Namespace) -> Any:
    url = shared.require_flag(args.url, "--url")
    secret = shared.require_flag(args.secret, "--secret")
    return shared.get_client().create_marketplace_webhook(url, secret)


@deprecated_endpoint
def cmd_webhooks_update(args: argparse.Namespace) -> Any:
    webhook_id = shared.require_flag(args.webhook_id, "--webhook-id")
    if args.url is None and args.secret is None:
        raise shared.UsageError("at least one update flag is required")
    url = args.url.strip() if args.url is not None else None
    secret = args.secret.strip() if args.secret is not None else None
    return shared.get_client().update_marketplace_webhook(
        webhook_id, endpoint_url=url, secret=secret
    )


@deprecated_endpoint
def cmd_webhooks_delete(args: argparse.Namespace) -> Any:
    webhook_id = shared.require_flag(args.webhook_id, "--webhook-id")
    shared.require_confirm(args)
    shared.get_client().delete_marketplace_webhook(webhook_id)
    return shared.deleted(webhook_id)


def register(subparsers: Any) -> None:
    """Register ``asc marketplace``."""
    marketplace = shared.add_group(
        subparsers,
        "marketplace",
        "Manage alternative marketplace resources.",
        "marketplace_command",
    )
    webhooks = shared.add_group(
        marketplace,
        "webhooks",
        "Manage marketplace webhooks (deprecated endpoints).",
        "webhooks_command",
    )

    p = shared.add_command(webhooks, "list", cmd_webhooks_list, "List marketplace webhooks.")
    p.add_argument("--fields", help=f"Fields to include: {', '.join(WEBHOOK_FIELDS)}")
    shared.add_list_flags(p, "webhooks")
    shared.add_output_flags(p)

    p = shared.add_command(webhooks, "get", cmd_webhooks_get, "Get a marketplace webhook.")
    p.add_argument("--webhook-id", help="Marketplace webhook ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        webhooks, "create", cmd_webhooks_create, "Create a marketplace webhook."
    )
    p.add_argument("--url", help="Webhook endpoint URL")
    p.add_argument("--secret", help="Webhook secret")
    shared.add_output_flags(p)

    p = shared.add_command(
        webhooks, "update", cmd_webhooks_update, "Update a marketplace webhook."
    )
    p.add_argument("--webhook-id", help="Marketplace webhook ID")
    p.add_argument("--url", help="Webhook endpoint URL")
    p.add_argument("--secret", help="Webhook secret")
    shared.add_output_flags(p)

    p = shared.add_command(
        webhooks, "delete", cmd_webhooks_delete, "Delete a marketplace webhook."
    )
    p.add_argument("--webhook-id", help="Marketplace webhook ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)
