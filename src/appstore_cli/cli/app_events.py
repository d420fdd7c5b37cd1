"""
``asc app-events``: in-app events, their localizations and review submission.
"""

import argparse
import logging
from typing import Any, Dict, List, Optional

from ..utils import (
    normalize_enum,
    normalize_rfc3339,
    split_csv_upper,
    validate_locale,
    validate_platform,
)
from . import shared
from .shared import UsageError

logger = logging.getLogger(__name__)

BADGES = [
    "LIVE_EVENT",
    "PREMIERE",
    "CHALLENGE",
    "COMPETITION",
    "NEW_SEASON",
    "MAJOR_UPDATE",
    "SPECIAL_EVENT",
]
PRIORITIES = ["HIGH", "NORMAL"]
PURPOSES = [
    "APPROPRIATE_FOR_ALL_USERS",
    "ATTRACT_NEW_USERS",
    "KEEP_ACTIVE_USERS_INFORMED",
    "BRING_BACK_LAPSED_USERS",
]

SCHEDULE_FLAGS = ("start", "end", "publish_start", "territories")


def _trimmed(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


def territory_schedules(args: argparse.Namespace) -> Optional[List[Dict[str, Any]]]:
    """
    Build ``territorySchedules`` from the schedule flags.

    Returns None when no schedule flag was given. Once any of them is set,
    ``--start`` and ``--end`` become required.
    """
    if not any(_trimmed(getattr(args, name)) for name in SCHEDULE_FLAGS):
        return None

    with shared.usage_errors():
        event_start = normalize_rfc3339(args.start, "--start", required=True)
        event_end = normalize_rfc3339(args.end, "--end", required=True)
        publish_start = normalize_rfc3339(args.publish_start, "--publish-start")

    schedule: Dict[str, Any] = {"eventStart": event_start, "eventEnd": event_end}
    territories = split_csv_upper(args.territories)
    if territories:
        schedule["territories"] = territories
    if publish_start:
        schedule["publishStart"] = publish_start
    return [schedule]


def event_attributes(args: argparse.Namespace, badge_required: bool) -> Dict[str, Any]:
    """Collect app event attributes, leaving out unset flags."""
    with shared.usage_errors():
        badge = normalize_enum(args.event_type, BADGES, "--event-type", required=badge_required)
        priority = normalize_enum(args.priority, PRIORITIES, "--priority")
        purpose = normalize_enum(args.purpose, PURPOSES, "--purpose")

    attributes = {
        "referenceName": _trimmed(args.name),
        "badge": badge,
        "deepLink": _trimmed(args.deep_link),
        "purchaseRequirement": _trimmed(args.purchase_requirement),
        "primaryLocale": _trimmed(args.primary_locale),
        "priority": priority,
        "purpose": purpose,
        "territorySchedules": territory_schedules(args),
    }
    return {key: value for key, value in attributes.items() if value is not None}


# ===== APP EVENTS =====


def cmd_list(args: argparse.Namespace) -> Any:
    app_id = "" if shared.has_next(args) else shared.require_app(args.app)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_app_events(
            app_id, limit=limit, next_url=next_url
        ),
    )


def cmd_get(args: argparse.Namespace) -> Any:
    event_id = shared.require_flag(args.event_id, "--event-id")
    return shared.get_client().get_app_event(event_id)


def cmd_create(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    shared.require_flag(args.name, "--name")
    attributes = event_attributes(args, badge_required=True)
    return shared.get_client().create_app_event(app_id, attributes)


def cmd_update(args: argparse.Namespace) -> Any:
    event_id = shared.require_flag(args.event_id, "--event-id")
    attributes = event_attributes(args, badge_required=False)
    if not attributes:
        raise UsageError("at least one update flag is required")
    return shared.get_client().update_app_event(event_id, attributes)


def cmd_delete(args: argparse.Namespace) -> Any:
    event_id = shared.require_flag(args.event_id, "--event-id")
    shared.require_confirm(args)
    shared.get_client().delete_app_event(event_id)
    return shared.deleted(event_id)


# ===== LOCALIZATIONS =====


def localization_attributes(args: argparse.Namespace) -> Dict[str, Any]:
    attributes = {
        "name": _trimmed(args.name),
        "shortDescription": _trimmed(args.short_description),
        "longDescription": _trimmed(args.long_description),
    }
    return {key: value for key, value in attributes.items() if value is not None}


def cmd_localizations_list(args: argparse.Namespace) -> Any:
    event_id = "" if shared.has_next(args) else shared.require_flag(args.event_id, "--event-id")
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_app_event_localizations(
            event_id, limit=limit, next_url=next_url
        ),
    )


def cmd_localizations_get(args: argparse.Namespace) -> Any:
    localization_id = shared.require_flag(args.localization_id, "--localization-id")
    return shared.get_client().get_app_event_localization(localization_id)


def cmd_localizations_create(args: argparse.Namespace) -> Any:
    event_id = shared.require_flag(args.event_id, "--event-id")
    with shared.usage_errors():
        locale = validate_locale(shared.require_flag(args.locale, "--locale"))
    attributes = {"locale": locale}
    attributes.update(localization_attributes(args))
    return shared.get_client().create_app_event_localization(event_id, attributes)


def cmd_localizations_update(args: argparse.Namespace) -> Any:
    localization_id = shared.require_flag(args.localization_id, "--localization-id")
    attributes = localization_attributes(args)
    if not attributes:
        raise UsageError("at least one update flag is required")
    return shared.get_client().update_app_event_localization(localization_id, attributes)


def cmd_localizations_delete(args: argparse.Namespace) -> Any:
    localization_id = shared.require_flag(args.localization_id, "--localization-id")
    shared.require_confirm(args)
    shared.get_client().delete_app_event_localization(localization_id)
    return shared.deleted(localization_id)


# ===== REVIEW SUBMISSION =====


def cmd_submit(args: argparse.Namespace) -> Any:
    """Create a review submission holding one event and submit it."""
    if not args.confirm:
        raise UsageError("--confirm is required to submit for review")
    event_id = shared.require_flag(args.event_id, "--event-id")
    app_id = shared.require_app(args.app)
    platform = validate_platform(args.platform) or "IOS"

    api = shared.get_client()
    submission = api.create_review_submission(app_id, platform)
    submission_id = submission["data"]["id"]
    logger.info(f"Created review submission {submission_id} for app {app_id}")

    item = api.create_review_submission_item(submission_id, event_id)
    submitted = api.submit_review_submission(submission_id)

    result = {
        "submissionId": submitted["data"]["id"],
        "itemId": item["data"]["id"],
        "eventId": event_id,
        "appId": app_id,
        "platform": platform,
    }
    submitted_date = submitted["data"].get("attributes", {}).get("submittedDate")
    if submitted_date:
        result["submittedDate"] = submitted_date
    return result


def _add_event_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", help="Reference name")
    parser.add_argument("--event-type", help=f"Event type: {', '.join(BADGES)}")
    parser.add_argument("--start", help="Event start time (RFC3339)")
    parser.add_argument("--end", help="Event end time (RFC3339)")
    parser.add_argument("--publish-start", help="Publish start time (RFC3339)")
    parser.add_argument("--territories", help="Territory codes (comma-separated)")
    parser.add_argument("--deep-link", help="Deep link URL")
    parser.add_argument("--purchase-requirement", help="Purchase requirement")
    parser.add_argument("--primary-locale", help="Primary locale (e.g., en-US)")
    parser.add_argument("--priority", help=f"Priority: {', '.join(PRIORITIES)}")
    parser.add_argument("--purpose", help=f"Purpose: {', '.join(PURPOSES)}")


def _add_localization_text_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", help="Localized name")
    parser.add_argument("--short-description", help="Short description")
    parser.add_argument("--long-description", help="Long description")


def register(subparsers: Any) -> None:
    """Register ``asc app-events``."""
    events = shared.add_group(
        subparsers, "app-events", "Manage in-app events.", "app_events_command"
    )

    p = shared.add_command(events, "list", cmd_list, "List in-app events for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    shared.add_list_flags(p, "events")
    shared.add_output_flags(p)

    p = shared.add_command(events, "get", cmd_get, "Get an in-app event.")
    p.add_argument("--event-id", help="App event ID")
    shared.add_output_flags(p)

    p = shared.add_command(events, "create", cmd_create, "Create an in-app event.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    _add_event_flags(p)
    shared.add_output_flags(p)

    p = shared.add_command(events, "update", cmd_update, "Update an in-app event.")
    p.add_argument("--event-id", help="App event ID")
    _add_event_flags(p)
    shared.add_output_flags(p)

    p = shared.add_command(events, "delete", cmd_delete, "Delete an in-app event.")
    p.add_argument("--event-id", help="App event ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    localizations = shared.add_group(
        events, "localizations", "Manage in-app event localizations.", "localizations_command"
    )
    p = shared.add_command(
        localizations, "list", cmd_localizations_list, "List in-app event localizations."
    )
    p.add_argument("--event-id", help="App event ID")
    shared.add_list_flags(p, "localizations")
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "get", cmd_localizations_get, "Get an in-app event localization."
    )
    p.add_argument("--localization-id", help="App event localization ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "create", cmd_localizations_create, "Create an in-app event localization."
    )
    p.add_argument("--event-id", help="App event ID")
    p.add_argument("--locale", help="Locale (e.g., en-US)")
    _add_localization_text_flags(p)
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "update", cmd_localizations_update, "Update an in-app event localization."
    )
    p.add_argument("--localization-id", help="App event localization ID")
    _add_localization_text_flags(p)
    shared.add_output_flags(p)

    p = shared.add_command(
        localizations, "delete", cmd_localizations_delete, "Delete an in-app event localization."
    )
    p.add_argument("--localization-id", help="App event localization ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    p = shared.add_command(events, "submit", cmd_submit, "Submit an in-app event for review.")
    p.add_argument("--event-id", help="App event ID")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--platform", default="IOS", help="Platform: IOS, MAC_OS, TV_OS, VISION_OS")
    p.add_argument("--confirm", action="store_true", help="Confirm submission")
    shared.add_output_flags(p)
