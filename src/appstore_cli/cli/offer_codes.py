"""
``asc offer-codes``: subscription offer codes, custom codes and prices.
"""

import argparse
import logging
from typing import Any

from ..utils import normalize_date, normalize_enum, normalize_enum_list, parse_optional_bool
from . import shared
from .iap import parse_offer_code_prices
from .shared import UsageError

logger = logging.getLogger(__name__)

DURATIONS = [
    "THREE_DAYS",
    "ONE_WEEK",
    "TWO_WEEKS",
    "ONE_MONTH",
    "TWO_MONTHS",
    "THREE_MONTHS",
    "SIX_MONTHS",
    "ONE_YEAR",
]
OFFER_MODES = ["PAY_AS_YOU_GO", "PAY_UP_FRONT", "FREE_TRIAL"]
OFFER_ELIGIBILITIES = ["STACK_WITH_INTRO_OFFERS", "REPLACE_INTRO_OFFERS"]
CUSTOMER_ELIGIBILITIES = ["NEW", "EXISTING", "EXPIRED"]


def _parse_active(value: str) -> bool:
    with shared.usage_errors():
        active = parse_optional_bool(value, "--active")
    if active is None:
        raise UsageError("--active is required")
    return active


# ===== OFFER CODES =====


def cmd_list(args: argparse.Namespace) -> Any:
    offer_code_id = (
        "" if shared.has_next(args) else shared.require_flag(args.offer_code_id, "--offer-code")
    )
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_subscription_offer_code_one_time_codes(
            offer_code_id, limit=limit, next_url=next_url
        ),
    )


def cmd_get(args: argparse.Namespace) -> Any:
    offer_code_id = shared.require_flag(args.offer_code_id, "--offer-code-id")
    return shared.get_client().get_subscription_offer_code(offer_code_id)


def cmd_create(args: argparse.Namespace) -> Any:
    subscription_id = shared.require_flag(args.subscription_id, "--subscription-id")
    name = shared.require_flag(args.name, "--name")

    with shared.usage_errors():
        customer_eligibilities = normalize_enum_list(
            args.customer_eligibilities, CUSTOMER_ELIGIBILITIES, "--customer-eligibilities"
        )
        if not customer_eligibilities:
            raise UsageError("--customer-eligibilities is required")
        offer_eligibility = normalize_enum(
            args.offer_eligibility, OFFER_ELIGIBILITIES, "--offer-eligibility", required=True
        )
        duration = normalize_enum(args.duration, DURATIONS, "--duration", required=True)
        offer_mode = normalize_enum(args.offer_mode, OFFER_MODES, "--offer-mode", required=True)
        auto_renew_enabled = parse_optional_bool(
            args.auto_renew_enabled, "--auto-renew-enabled"
        )

    if args.number_of_periods is None:
        raise UsageError("--number-of-periods is required")
    if args.number_of_periods <= 0:
        raise UsageError("--number-of-periods must be greater than 0")

    prices = parse_offer_code_prices(args.prices)
    if not prices:
        raise UsageError("--prices is required")

    attributes = {
        "name": name,
        "customerEligibilities": customer_eligibilities,
        "offerEligibility": offer_eligibility,
        "duration": duration,
        "offerMode": offer_mode,
        "numberOfPeriods": args.number_of_periods,
        "autoRenewEnabled": auto_renew_enabled,
    }
    return shared.get_client().create_subscription_offer_code(
        subscription_id, attributes, prices
    )


def cmd_update(args: argparse.Namespace) -> Any:
    offer_code_id = shared.require_flag(args.offer_code_id, "--offer-code-id")
    active = _parse_active(args.active)
    return shared.get_client().update_subscription_offer_code(offer_code_id, active)


# ===== CUSTOM CODES =====


def cmd_custom_codes_list(args: argparse.Namespace) -> Any:
    offer_code_id = (
        "" if shared.has_next(args) else shared.require_flag(args.offer_code_id, "--offer-code-id")
    )
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_subscription_offer_code_custom_codes(
            offer_code_id, limit=limit, next_url=next_url
        ),
    )


def cmd_custom_codes_get(args: argparse.Namespace) -> Any:
    custom_code_id = shared.require_flag(args.custom_code_id, "--custom-code-id")
    return shared.get_client().get_subscription_offer_code_custom_code(custom_code_id)


def cmd_custom_codes_create(args: argparse.Namespace) -> Any:
    offer_code_id = shared.require_flag(args.offer_code_id, "--offer-code-id")
    code = shared.require_flag(args.code, "--code")
    if args.quantity <= 0:
        raise UsageError("--quantity is required")

    expiration_date = None
    if (args.expiration_date or "").strip():
        with shared.usage_errors():
            expiration_date = normalize_date(args.expiration_date, "--expiration-date")

    return shared.get_client().create_subscription_offer_code_custom_code(
        offer_code_id, code, args.quantity, expiration_date
    )


def cmd_custom_codes_update(args: argparse.Namespace) -> Any:
    custom_code_id = shared.require_flag(args.custom_code_id, "--custom-code-id")
    active = _parse_active(args.active)
    return shared.get_client().update_subscription_offer_code_custom_code(
        custom_code_id, active
    )


# ===== PRICES =====


def cmd_prices_list(args: argparse.Namespace) -> Any:
    offer_code_id = (
        "" if shared.has_next(args) else shared.require_flag(args.offer_code_id, "--offer-code-id")
    )
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_subscription_offer_code_prices(
            offer_code_id, limit=limit, next_url=next_url
        ),
    )


def register(subparsers: Any) -> None:
    """Register ``asc offer-codes``."""
    offer_codes = shared.add_group(
        subparsers,
        "offer-codes",
        "Manage subscription offer codes.",
        "offer_codes_command",
    )

    p = shared.add_command(
        offer_codes, "list", cmd_list, "List one-time use offer code batches."
    )
    p.add_argument(
        "--offer-code", "--offer-code-id", dest="offer_code_id", help="Subscription offer code ID"
    )
    shared.add_list_flags(p, "batches")
    shared.add_output_flags(p)

    p = shared.add_command(offer_codes, "get", cmd_get, "Get a subscription offer code.")
    p.add_argument("--offer-code-id", help="Subscription offer code ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        offer_codes, "create", cmd_create, "Create a subscription offer code."
    )
    p.add_argument("--subscription-id", help="Subscription ID")
    p.add_argument("--name", help="Offer code name")
    p.add_argument(
        "--customer-eligibilities",
        help=f"Customer eligibilities: {', '.join(CUSTOMER_ELIGIBILITIES)}",
    )
    p.add_argument(
        "--offer-eligibility", help=f"Offer eligibility: {', '.join(OFFER_ELIGIBILITIES)}"
    )
    p.add_argument("--duration", help=f"Offer duration: {', '.join(DURATIONS)}")
    p.add_argument("--offer-mode", help=f"Offer mode: {', '.join(OFFER_MODES)}")
    p.add_argument("--number-of-periods", type=int, default=None, help="Number of periods")
    p.add_argument("--auto-renew-enabled", help="Auto-renew enabled (true/false)")
    p.add_argument("--prices", help="Prices: TERRITORY:PRICE_POINT_ID entries, comma-separated")
    shared.add_output_flags(p)

    p = shared.add_command(
        offer_codes, "update", cmd_update, "Activate or deactivate a subscription offer code."
    )
    p.add_argument("--offer-code-id", help="Subscription offer code ID")
    p.add_argument("--active", help="Set active (true/false)")
    shared.add_output_flags(p)

    custom_codes = shared.add_group(
        offer_codes, "custom-codes", "Manage offer code custom codes.", "custom_codes_command"
    )
    p = shared.add_command(custom_codes, "list", cmd_custom_codes_list, "List custom codes.")
    p.add_argument("--offer-code-id", help="Subscription offer code ID")
    shared.add_list_flags(p, "custom codes")
    shared.add_output_flags(p)

    p = shared.add_command(custom_codes, "get", cmd_custom_codes_get, "Get a custom code.")
    p.add_argument("--custom-code-id", help="Custom code ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        custom_codes, "create", cmd_custom_codes_create, "Create a custom code."
    )
    p.add_argument("--offer-code-id", help="Subscription offer code ID")
    p.add_argument("--code", help="Custom code value")
    p.add_argument("--quantity", type=int, default=0, help="Number of codes to create")
    p.add_argument("--expiration-date", help="Expiration date (YYYY-MM-DD)")
    shared.add_output_flags(p)

    p = shared.add_command(
        custom_codes, "update", cmd_custom_codes_update, "Activate or deactivate a custom code."
    )
    p.add_argument("--custom-code-id", help="Custom code ID")
    p.add_argument("--active", help="Set active (true/false)")
    shared.add_output_flags(p)

    prices = shared.add_group(
        offer_codes, "prices", "List offer code prices.", "prices_command"
    )
    p = shared.add_command(prices, "list", cmd_prices_list, "List offer code prices.")
    p.add_argument("--offer-code-id", help="Subscription offer code ID")
    shared.add_list_flags(p, "prices")
    shared.add_output_flags(p)
