"""
``asc iap``: in-app purchases, their localizations, offer codes, pricing
and availability.
"""

import argparse
import logging
from typing import Any, Dict, List

from ..utils import (
    normalize_date,
    normalize_enum,
    normalize_enum_list,
    parse_optional_bool,
    split_csv,
    split_csv_upper,
    validate_locale,
)
from . import shared
from .shared import UsageError

logger = logging.getLogger(__name__)

IAP_TYPES = ["CONSUMABLE", "NON_CONSUMABLE", "NON_RENEWING_SUBSCRIPTION"]
OFFER_CODE_ELIGIBILITIES = ["NON_SPENDER", "ACTIVE_SPENDER", "CHURNED_SPENDER"]


def parse_offer_code_prices(value: str) -> List[Dict[str, str]]:
    """
    Parse ``TERRITORY:PRICE_POINT_ID`` entries.

    Args:
        value: Comma-separated entries, e.g. ``USA:pp-1,GBR:pp-2``

    Returns:
        List of dicts with ``territory`` and ``price_point`` keys

    Raises:
        UsageError: If an entry is malformed
    """
    prices = []
    for entry in split_csv(value):
        territory, sep, price_point = entry.partition(":")
        territory = territory.strip().upper()
        price_point = price_point.strip()
        if not sep or not territory or not price_point:
            raise UsageError("--prices must use TERRITORY:PRICE_POINT_ID entries")
        prices.append({"territory": territory, "price_point": price_point})
    return prices


def parse_price_schedule_prices(value: str) -> List[Dict[str, str]]:
    """
    Parse ``PRICE_POINT_ID[:START[:END]]`` entries.

    Start and end dates are optional and use YYYY-MM-DD.

    Raises:
        UsageError: If an entry has no price point ID or a malformed date
    """
    prices = []
    for entry in split_csv(value):
        parts = [part.strip() for part in entry.split(":", 2)]
        price = {"price_point": parts[0]}
        if not price["price_point"]:
            raise UsageError("--prices must include a price point ID")
        with shared.usage_errors():
            if len(parts) > 1 and parts[1]:
                price["start_date"] = normalize_date(parts[1], "--prices start date")
            if len(parts) > 2 and parts[2]:
                price["end_date"] = normalize_date(parts[2], "--prices end date")
        prices.append(price)
    return prices


# ===== IN-APP PURCHASES =====


def cmd_list(args: argparse.Namespace) -> Any:
    app_id = "" if shared.has_next(args) else shared.require_app(args.app)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_in_app_purchases(
            app_id, limit=limit, next_url=next_url
        ),
    )


def cmd_get(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.id, "--id")
    return shared.get_client().get_in_app_purchase(iap_id)


def cmd_create(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    with shared.usage_errors():
        iap_type = normalize_enum(args.type, IAP_TYPES, "--type", required=True)
    name = shared.require_flag(args.ref_name, "--ref-name")
    product_id = shared.require_flag(args.product_id, "--product-id")
    return shared.get_client().create_in_app_purchase(app_id, name, product_id, iap_type)


def cmd_update(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.id, "--id")
    name = shared.require(args.ref_name, "at least one update flag is required")
    return shared.get_client().update_in_app_purchase(iap_id, {"name": name})


def cmd_delete(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.id, "--id")
    shared.require_confirm(args)
    shared.get_client().delete_in_app_purchase(iap_id)
    return shared.deleted(iap_id)


# ===== LOCALIZATIONS =====


def cmd_localizations_list(args: argparse.Namespace) -> Any:
    iap_id = "" if shared.has_next(args) else shared.require_flag(args.id, "--id")
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_in_app_purchase_localizations(
            iap_id, limit=limit, next_url=next_url
        ),
    )


def cmd_localizations_create(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    name = shared.require_flag(args.name, "--name")
    with shared.usage_errors():
        locale = validate_locale(shared.require_flag(args.locale, "--locale"))
    description = (args.description or "").strip() or None
    return shared.get_client().create_in_app_purchase_localization(
        iap_id, locale, name, description
    )


def cmd_localizations_update(args: argparse.Namespace) -> Any:
    localization_id = shared.require_flag(args.localization_id, "--localization-id")
    attributes = {}
    name = (args.name or "").strip()
    description = (args.description or "").strip()
    if name:
        attributes["name"] = name
    if description:
        attributes["description"] = description
    if not attributes:
        raise UsageError("at least one update flag is required")
    return shared.get_client().update_in_app_purchase_localization(
        localization_id, attributes
    )


def cmd_localizations_delete(args: argparse.Namespace) -> Any:
    localization_id = shared.require_flag(args.localization_id, "--localization-id")
    shared.require_confirm(args)
    shared.get_client().delete_in_app_purchase_localization(localization_id)
    return shared.deleted(localization_id)


# ===== OFFER CODES =====


def cmd_offer_codes_list(args: argparse.Namespace) -> Any:
    iap_id = "" if shared.has_next(args) else shared.require_flag(args.iap_id, "--iap-id")
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_in_app_purchase_offer_codes(
            iap_id, limit=limit, next_url=next_url
        ),
    )


def cmd_offer_codes_get(args: argparse.Namespace) -> Any:
    offer_code_id = shared.require_flag(args.offer_code_id, "--offer-code-id")
    return shared.get_client().get_in_app_purchase_offer_code(offer_code_id)


def cmd_offer_codes_create(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    name = shared.require_flag(args.name, "--name")
    with shared.usage_errors():
        eligibilities = normalize_enum_list(
            args.eligibilities, OFFER_CODE_ELIGIBILITIES, "--eligibilities"
        )
    if not eligibilities:
        eligibilities = list(OFFER_CODE_ELIGIBILITIES)
    prices = parse_offer_code_prices(args.prices)
    if not prices:
        raise UsageError("--prices is required")

    return shared.get_client().create_in_app_purchase_offer_code(
        iap_id, name, eligibilities, prices
    )


def cmd_offer_codes_update(args: argparse.Namespace) -> Any:
    offer_code_id = shared.require_flag(args.offer_code_id, "--offer-code-id")
    with shared.usage_errors():
        active = parse_optional_bool(args.active, "--active")
    if active is None:
        raise UsageError("--active is required (true or false)")
    return shared.get_client().update_in_app_purchase_offer_code(offer_code_id, active)


# ===== PRICING AND AVAILABILITY =====


def cmd_price_points_list(args: argparse.Namespace) -> Any:
    iap_id = "" if shared.has_next(args) else shared.require_flag(args.iap_id, "--iap-id")
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_in_app_purchase_price_points(
            iap_id, limit=limit, next_url=next_url
        ),
    )


def cmd_price_schedules_get(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    return shared.get_client().get_in_app_purchase_price_schedule(iap_id)


def cmd_price_schedules_create(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    base_territory = shared.require_flag(args.base_territory, "--base-territory")
    prices = parse_price_schedule_prices(args.prices)
    if not prices:
        raise UsageError("--prices is required")
    return shared.get_client().create_in_app_purchase_price_schedule(
        iap_id, base_territory, prices
    )


def cmd_availability_get(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    return shared.get_client().get_in_app_purchase_availability(iap_id)


def cmd_availability_set(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    territories = split_csv_upper(args.territories)
    if not territories:
        raise UsageError("--territories is required")
    return shared.get_client().create_in_app_purchase_availability(
        iap_id, territories, args.available_in_new_territories
    )


def cmd_submit(args: argparse.Namespace) -> Any:
    iap_id = shared.require_flag(args.iap_id, "--iap-id")
    shared.require_confirm(args)
    return shared.get_client().create_in_app_purchase_submission(iap_id)


def register(subparsers: Any) -> None:
    """Register ``asc iap``."""
    iap = shared.add_group(
        subparsers, "iap", "Manage in-app purchases in App Store Connect.", "iap_command"
    )

    p = shared.add_command(iap, "list", cmd_list, "List in-app purchases for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    shared.add_list_flags(p, "in-app purchases")
    shared.add_output_flags(p)

    p = shared.add_command(iap, "get", cmd_get, "Get an in-app purchase.")
    p.add_argument("--id", help="In-app purchase ID")
    shared.add_output_flags(p)

    p = shared.add_command(iap, "create", cmd_create, "Create an in-app purchase.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--type", help=f"IAP type: {', '.join(IAP_TYPES)}")
    p.add_argument("--ref-name", help="Reference name")
    p.add_argument("--product-id", help="Product ID (e.g., com.example.product)")
    shared.add_output_flags(p)

    p = shared.add_command(iap, "update", cmd_update, "Update an in-app purchase.")
    p.add_argument("--id", help="In-app purchase ID")
    p.add_argument("--ref-name", help="Reference name")
    shared.add_output_flags(p)

    p = shared.add_command(iap, "delete", cmd_delete, "Delete an in-app purchase.")
    p.add_argument("--id", help="In-app purchase ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    localizations = shared.add_group(
        iap, "localizations", "Manage in-app purchase localizations.", "localizations_command"
    )
    p = shared.add_command(
        localizations, "list", cmd_localizations_list, "List in-app purchase localizations."
    )
    p.add_argument("--id", "--iap-id", dest="id", help="In-app purchase ID")
    shared.add_list_flags(p, "localizations")
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "create", cmd_localizations_create, "Create a localization."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    p.add_argument("--name", help="Display name")
    p.add_argument("--locale", help="Locale (e.g., en-US)")
    p.add_argument("--description", help="Description")
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "update", cmd_localizations_update, "Update a localization."
    )
    p.add_argument("--localization-id", help="Localization ID")
    p.add_argument("--name", help="Display name")
    p.add_argument("--description", help="Description")
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "delete", cmd_localizations_delete, "Delete a localization."
    )
    p.add_argument("--localization-id", help="Localization ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    offer_codes = shared.add_group(
        iap, "offer-codes", "Manage in-app purchase offer codes.", "offer_codes_command"
    )
    p = shared.add_command(offer_codes, "list", cmd_offer_codes_list, "List offer codes.")
    p.add_argument("--iap-id", help="In-app purchase ID")
    shared.add_list_flags(p, "offer codes")
    shared.add_output_flags(p)

    p = shared.add_command(offer_codes, "get", cmd_offer_codes_get, "Get an offer code.")
    p.add_argument("--offer-code-id", help="Offer code ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        offer_codes, "create", cmd_offer_codes_create, "Create an offer code."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    p.add_argument("--name", help="Offer code name")
    p.add_argument(
        "--eligibilities",
        help=f"Customer eligibilities, comma-separated (default: all of {', '.join(OFFER_CODE_ELIGIBILITIES)})",
    )
    p.add_argument("--prices", help="Prices: TERRITORY:PRICE_POINT_ID entries, comma-separated")
    shared.add_output_flags(p)

    p = shared.add_command(
        offer_codes, "update", cmd_offer_codes_update, "Activate or deactivate an offer code."
    )
    p.add_argument("--offer-code-id", help="Offer code ID")
    p.add_argument("--active", help="Set active status: true or false")
    shared.add_output_flags(p)

    price_points = shared.add_group(
        iap, "price-points", "List in-app purchase price points.", "price_points_command"
    )
    p = shared.add_command(
        price_points, "list", cmd_price_points_list, "List price points for an in-app purchase."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    shared.add_list_flags(p, "price points")
    shared.add_output_flags(p)

    price_schedules = shared.add_group(
        iap, "price-schedules", "Manage in-app purchase price schedules.", "price_schedules_command"
    )
    p = shared.add_command(
        price_schedules, "get", cmd_price_schedules_get, "Get the price schedule."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        price_schedules, "create", cmd_price_schedules_create, "Create a price schedule."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    p.add_argument("--base-territory", help="Base territory (e.g., USA)")
    p.add_argument(
        "--prices",
        help="Prices: PRICE_POINT_ID[:START_DATE[:END_DATE]] entries, comma-separated",
    )
    shared.add_output_flags(p)

    availability = shared.add_group(
        iap, "availability", "Manage in-app purchase availability.", "availability_command"
    )
    p = shared.add_command(
        availability, "get", cmd_availability_get, "Get territory availability."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        availability, "set", cmd_availability_set, "Set territory availability."
    )
    p.add_argument("--iap-id", help="In-app purchase ID")
    p.add_argument("--territories", help="Territory codes, comma-separated (e.g., USA,GBR)")
    p.add_argument(
        "--available-in-new-territories",
        action="store_true",
        help="Make the purchase available in new territories",
    )
    shared.add_output_flags(p)

    p = shared.add_command(iap, "submit", cmd_submit, "Submit an in-app purchase for review.")
    p.add_argument("--iap-id", help="In-app purchase ID")
    p.add_argument("--confirm", action="store_true", help="Confirm submission")
    shared.add_output_flags(p)
