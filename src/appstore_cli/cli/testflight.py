"""
``asc testflight``: beta groups, beta testers, beta license agreements and
build notifications.
"""

import argparse
import logging
from typing import Any, Dict, Optional

from ..client import AppStoreConnectAPI
from ..exceptions import AppStoreConnectError
from ..pagination import paginate_all
from ..utils import (
    MAX_PAGE_LIMIT,
    normalize_enum,
    parse_optional_bool,
    split_csv,
    validate_limit,
)
from . import shared
from .builds import get_relationship, relationship_type
from .shared import UsageError

logger = logging.getLogger(__name__)

BETA_GROUP_RELATIONSHIPS = {"betaTesters": True, "builds": True}
BETA_TESTER_RELATIONSHIPS = {"apps": True, "betaGroups": True, "builds": True}

PUBLIC_LINK_LIMIT_MAX = 10000
BETA_TESTER_USAGE_PERIODS = ["P7D", "P30D", "P90D", "P365D"]


def add_bool_flag(parser: argparse.ArgumentParser, name: str, help_text: str) -> None:
    """Add a flag that is unset, ``--name`` (true) or ``--name=false``."""
    parser.add_argument(name, nargs="?", const="true", default=None, help=help_text)


def resolve_beta_group_id(api: AppStoreConnectAPI, app_id: str, group: str) -> str:
    """
    Resolve a beta group given by ID or by name (case-insensitive).

    Raises:
        AppStoreConnectError: If no group or more than one group matches
    """
    group = group.strip()
    first_page = api.get_beta_groups(app_id, limit=MAX_PAGE_LIMIT)
    groups = (paginate_all(first_page, api.get_url) or {}).get("data", [])

    for item in groups:
        if item.get("id") == group:
            return group

    matches = [
        item["id"]
        for item in groups
        if ((item.get("attributes") or {}).get("name") or "").strip().lower()
        == group.lower()
    ]
    if not matches:
        raise AppStoreConnectError(f'beta group "{group}" not found')
    if len(matches) > 1:
        raise AppStoreConnectError(f'multiple beta groups named "{group}"; use group ID')
    return matches[0]


def find_beta_tester_id_by_email(
    api: AppStoreConnectAPI, app_id: str, email: str
) -> Optional[str]:
    """
    Find a beta tester of an app by email.

    Returns:
        The tester ID, or None when no tester has that email

    Raises:
        AppStoreConnectError: If several testers match
    """
    email = email.strip()
    testers = api.get_beta_testers(app_id, email=email, limit=2).get("data") or []
    if not testers:
        return None
    if len(testers) > 1:
        raise AppStoreConnectError(f'multiple beta testers found for "{email}"')
    return testers[0]["id"]


def _relationship_owner(
    args: argparse.Namespace, primary: Optional[str], flag_name: str
) -> str:
    primary_value = (primary or "").strip()
    alias_value = (args.id or "").strip()
    if not primary_value:
        primary_value = alias_value
    elif alias_value and alias_value != primary_value:
        raise UsageError(f"{flag_name} and --id must match")
    if not primary_value and not shared.has_next(args):
        raise UsageError(f"{flag_name} is required")
    return primary_value


# ===== BETA GROUPS =====


def cmd_groups_list(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    app_id = "" if shared.has_next(args) else shared.require_app(args.app)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_beta_groups(
            app_id, limit=limit, next_url=next_url
        ),
    )


def cmd_groups_create(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    name = shared.require_flag(args.name, "--name")
    return shared.get_client().create_beta_group(app_id, name)


def cmd_groups_get(args: argparse.Namespace) -> Any:
    group_id = shared.require_flag(args.id, "--id")
    return shared.get_client().get_beta_group(group_id)


def beta_group_update_attributes(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build the beta group update attributes from the update flags.

    Raises:
        UsageError: If no update flag is given or the public link limit is
            invalid or missing
    """
    with shared.usage_errors():
        attributes = {
            "name": (args.name or "").strip() or None,
            "publicLinkEnabled": parse_optional_bool(
                args.public_link_enabled, "--public-link-enabled"
            ),
            "publicLinkLimitEnabled": parse_optional_bool(
                args.public_link_limit_enabled, "--public-link-limit-enabled"
            ),
            "publicLinkLimit": args.public_link_limit,
            "feedbackEnabled": parse_optional_bool(
                args.feedback_enabled, "--feedback-enabled"
            ),
            "isInternalGroup": parse_optional_bool(args.internal, "--internal"),
            "hasAccessToAllBuilds": parse_optional_bool(args.all_builds, "--all-builds"),
        }

    limit = args.public_link_limit
    if limit is not None and not 1 <= limit <= PUBLIC_LINK_LIMIT_MAX:
        raise UsageError(
            f"--public-link-limit must be between 1 and {PUBLIC_LINK_LIMIT_MAX}"
        )
    if all(value is None for value in attributes.values()):
        raise UsageError("at least one update flag is required")
    if attributes["publicLinkLimitEnabled"] and limit is None:
        raise UsageError(
            "--public-link-limit is required when enabling public link limit"
        )
    return attributes


def cmd_groups_update(args: argparse.Namespace) -> Any:
    group_id = shared.require_flag(args.id, "--id")
    attributes = beta_group_update_attributes(args)
    return shared.get_client().update_beta_group(group_id, attributes)


def cmd_groups_delete(args: argparse.Namespace) -> Any:
    group_id = shared.require_flag(args.id, "--id")
    if not args.confirm:
        raise UsageError("--confirm is required to delete")
    shared.get_client().delete_beta_group(group_id)
    return shared.deleted(group_id)


def cmd_groups_add_testers(args: argparse.Namespace) -> Any:
    group_id = shared.require_flag(args.group, "--group")
    tester_ids = split_csv(args.tester)
    if not tester_ids:
        raise UsageError("--tester is required")
    shared.get_client().add_beta_group_testers(group_id, tester_ids)
    return {"groupId": group_id, "testerIds": tester_ids, "action": "added"}


def cmd_groups_remove_testers(args: argparse.Namespace) -> Any:
    group_id = shared.require_flag(args.group, "--group")
    tester_ids = split_csv(args.tester)
    if not tester_ids:
        raise UsageError("--tester is required")
    shared.get_client().remove_beta_group_testers(group_id, tester_ids)
    return {"groupId": group_id, "testerIds": tester_ids, "action": "removed"}


def cmd_groups_relationships_get(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    rel_type = relationship_type(args.type, BETA_GROUP_RELATIONSHIPS)
    group_id = _relationship_owner(args, args.group_id, "--group-id")
    to_many = BETA_GROUP_RELATIONSHIPS[rel_type]
    shared.check_to_many_flags(args, to_many)
    return get_relationship(args, f"/v1/betaGroups/{group_id}", rel_type, to_many)


# ===== BETA TESTERS =====


def cmd_testers_list(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    next_given = shared.has_next(args)
    app_id = "" if next_given else shared.require_app(args.app)
    build_id = (args.build or "").strip() or None
    email = (args.email or "").strip() or None
    group = (args.group or "").strip()

    def fetch(api: AppStoreConnectAPI, limit: Optional[int], next_url: Optional[str]):
        group_ids = None
        if group and not next_given:
            group_ids = [resolve_beta_group_id(api, app_id, group)]
        return api.get_beta_testers(
            app_id,
            build_id=build_id,
            email=email,
            group_ids=group_ids,
            limit=limit,
            next_url=next_url,
        )

    return shared.list_pages(args, fetch)


def cmd_testers_get(args: argparse.Namespace) -> Any:
    tester_id = shared.require_flag(args.id, "--id")
    return shared.get_client().get_beta_tester(tester_id)


def cmd_testers_add(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    email = shared.require_flag(args.email, "--email")
    group = shared.require_flag(args.group, "--group")

    api = shared.get_client()
    group_id = resolve_beta_group_id(api, app_id, group)
    return api.create_beta_tester(
        email,
        first_name=(args.first_name or "").strip() or None,
        last_name=(args.last_name or "").strip() or None,
        group_ids=[group_id],
    )


def cmd_testers_remove(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    email = shared.require_flag(args.email, "--email")

    api = shared.get_client()
    tester_id = find_beta_tester_id_by_email(api, app_id, email)
    if tester_id is None:
        raise AppStoreConnectError(f'no tester found for "{email}"')
    api.delete_beta_tester(tester_id)
    return {"id": tester_id, "email": email, "deleted": True}


def cmd_testers_invite(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    email = shared.require_flag(args.email, "--email")
    group = (args.group or "").strip()

    api = shared.get_client()
    tester_id = find_beta_tester_id_by_email(api, app_id, email)
    if tester_id is None:
        if not group:
            raise AppStoreConnectError(
                f'no tester found for "{email}" '
                "(use beta-testers add --group ... or pass --group here)"
            )
        group_id = resolve_beta_group_id(api, app_id, group)
        created = api.create_beta_tester(email, group_ids=[group_id])
        tester_id = created["data"]["id"]
        logger.info(f"created beta tester {tester_id} for {email}")

    invitation = api.create_beta_tester_invitation(app_id, tester_id)
    return {
        "invitationId": invitation["data"]["id"],
        "testerId": tester_id,
        "appId": app_id,
        "email": email,
    }


def cmd_testers_add_groups(args: argparse.Namespace) -> Any:
    tester_id = shared.require_flag(args.id, "--id")
    group_ids = split_csv(args.group)
    if not group_ids:
        raise UsageError("--group is required")
    shared.get_client().add_beta_tester_groups(tester_id, group_ids)
    return {"testerId": tester_id, "groupIds": group_ids, "action": "added"}


def cmd_testers_remove_groups(args: argparse.Namespace) -> Any:
    tester_id = shared.require_flag(args.id, "--id")
    group_ids = split_csv(args.group)
    if not group_ids:
        raise UsageError("--group is required")
    shared.get_client().remove_beta_tester_groups(tester_id, group_ids)
    return {"testerId": tester_id, "groupIds": group_ids, "action": "removed"}


def cmd_testers_relationships_get(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    rel_type = relationship_type(args.type, BETA_TESTER_RELATIONSHIPS)
    tester_id = _relationship_owner(args, args.tester_id, "--tester-id")
    to_many = BETA_TESTER_RELATIONSHIPS[rel_type]
    shared.check_to_many_flags(args, to_many)
    return get_relationship(args, f"/v1/betaTesters/{tester_id}", rel_type, to_many)


def cmd_testers_metrics(args: argparse.Namespace) -> Any:
    limit = validate_limit(args.limit)
    tester_id = (args.tester_id or "").strip()
    alias_id = (args.id or "").strip()
    if not tester_id:
        tester_id = alias_id
    elif alias_id and alias_id != tester_id:
        raise AppStoreConnectError("--tester-id and --id must match")
    with shared.usage_errors():
        period = normalize_enum(args.period, BETA_TESTER_USAGE_PERIODS, "--period")

    app_id = shared.resolve_app(args.app)
    if not shared.has_next(args):
        if not tester_id:
            raise UsageError("--tester-id is required")
        if not app_id:
            raise UsageError("--app is required (or set ASC_APP_ID)")

    return shared.get_client().get_beta_tester_usages_metrics(
        tester_id,
        app_id=app_id,
        period=period,
        limit=limit,
        next_url=(args.next or "").strip() or None,
    )


# ===== BETA NOTIFICATIONS =====


def cmd_notifications_create(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    return shared.get_client().create_build_beta_notification(build_id)


# ===== BETA LICENSE AGREEMENTS =====


def cmd_agreements_list(args: argparse.Namespace) -> Any:
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_beta_license_agreements(
            app_ids=split_csv(args.app),
            fields=split_csv(args.fields),
            app_fields=split_csv(args.app_fields),
            include=split_csv(args.include),
            limit=limit,
            next_url=next_url,
        ),
    )


def cmd_agreements_get(args: argparse.Namespace) -> Any:
    agreement_id = (args.id or "").strip()
    app_id = ""
    if not agreement_id:
        app_id = shared.resolve_app(args.app)
    if not agreement_id and not app_id:
        raise UsageError("--id or --app is required (or set ASC_APP_ID)")
    if agreement_id and (args.app or "").strip():
        raise UsageError("--id and --app are mutually exclusive")
    if app_id and ((args.app_fields or "").strip() or (args.include or "").strip()):
        raise UsageError("--app-fields and --include are only valid with --id")

    api = shared.get_client()
    if app_id:
        return api.get_app_beta_license_agreement(app_id, fields=split_csv(args.fields))
    return api.get_beta_license_agreement(
        agreement_id,
        fields=split_csv(args.fields),
        app_fields=split_csv(args.app_fields),
        include=split_csv(args.include),
    )


def cmd_agreements_update(args: argparse.Namespace) -> Any:
    agreement_id = shared.require_flag(args.id, "--id")
    text = shared.require_flag(args.agreement_text, "--agreement-text")
    return shared.get_client().update_beta_license_agreement(agreement_id, text)


def _register_groups(testflight: Any) -> None:
    groups = shared.add_group(
        testflight, "beta-groups", "Manage TestFlight beta groups.", "beta_groups_command"
    )

    p = shared.add_command(groups, "list", cmd_groups_list, "List beta groups for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    shared.add_list_flags(p, "groups")
    shared.add_output_flags(p)

    p = shared.add_command(groups, "create", cmd_groups_create, "Create a beta group.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--name", help="Beta group name")
    shared.add_output_flags(p)

    p = shared.add_command(groups, "get", cmd_groups_get, "Get a beta group.")
    p.add_argument("--id", help="Beta group ID")
    shared.add_output_flags(p)

    p = shared.add_command(groups, "update", cmd_groups_update, "Update a beta group.")
    p.add_argument("--id", help="Beta group ID")
    p.add_argument("--name", help="Beta group name")
    add_bool_flag(p, "--public-link-enabled", "Enable public link")
    add_bool_flag(p, "--public-link-limit-enabled", "Enable public link limit")
    p.add_argument(
        "--public-link-limit", type=int, default=None, help="Public link limit (1-10000)"
    )
    add_bool_flag(p, "--feedback-enabled", "Enable feedback")
    add_bool_flag(p, "--internal", "Set as internal group")
    add_bool_flag(p, "--all-builds", "Grant access to all builds")
    shared.add_output_flags(p)

    p = shared.add_command(groups, "delete", cmd_groups_delete, "Delete a beta group.")
    p.add_argument("--id", help="Beta group ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    for name, handler, help_text in (
        ("add-testers", cmd_groups_add_testers, "Add testers to a beta group."),
        ("remove-testers", cmd_groups_remove_testers, "Remove testers from a beta group."),
    ):
        p = shared.add_command(groups, name, handler, help_text)
        p.add_argument("--group", help="Beta group ID")
        p.add_argument("--tester", help="Beta tester ID(s), comma-separated")
        shared.add_output_flags(p)

    relationships = shared.add_group(
        groups, "relationships", "View beta group relationship linkages.", "relationships_command"
    )
    p = shared.add_command(
        relationships, "get", cmd_groups_relationships_get, "Get beta group relationship linkages."
    )
    p.add_argument("--group-id", help="Beta group ID")
    p.add_argument("--id", help="Beta group ID (alias of --group-id)")
    p.add_argument(
        "--type", help=f"Relationship type: {', '.join(sorted(BETA_GROUP_RELATIONSHIPS))}"
    )
    shared.add_list_flags(p, "linkages")
    shared.add_output_flags(p)


def _register_testers(testflight: Any) -> None:
    testers = shared.add_group(
        testflight, "beta-testers", "Manage TestFlight beta testers.", "beta_testers_command"
    )

    p = shared.add_command(testers, "list", cmd_testers_list, "List beta testers for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--build", help="Build ID to filter")
    p.add_argument("--group", help="Beta group name or ID to filter")
    p.add_argument("--email", help="Filter by tester email")
    shared.add_list_flags(p, "testers")
    shared.add_output_flags(p)

    p = shared.add_command(testers, "get", cmd_testers_get, "Get a beta tester.")
    p.add_argument("--id", help="Beta tester ID")
    shared.add_output_flags(p)

    p = shared.add_command(testers, "add", cmd_testers_add, "Add a beta tester to a group.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--email", help="Tester email address")
    p.add_argument("--first-name", help="Tester first name")
    p.add_argument("--last-name", help="Tester last name")
    p.add_argument("--group", help="Beta group name or ID")
    shared.add_output_flags(p)

    p = shared.add_command(testers, "remove", cmd_testers_remove, "Remove a beta tester.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--email", help="Tester email address")
    shared.add_output_flags(p)

    p = shared.add_command(
        testers, "invite", cmd_testers_invite, "Invite a beta tester to TestFlight."
    )
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--email", help="Tester email address")
    p.add_argument(
        "--group", help="Beta group name or ID (optional, creates tester if missing)"
    )
    shared.add_output_flags(p)

    for name, handler, help_text in (
        ("add-groups", cmd_testers_add_groups, "Add a beta tester to beta groups."),
        ("remove-groups", cmd_testers_remove_groups, "Remove a beta tester from beta groups."),
    ):
        p = shared.add_command(testers, name, handler, help_text)
        p.add_argument("--id", help="Beta tester ID")
        p.add_argument("--group", help="Comma-separated beta group IDs")
        shared.add_output_flags(p)

    relationships = shared.add_group(
        testers, "relationships", "View beta tester relationship linkages.", "relationships_command"
    )
    p = shared.add_command(
        relationships,
        "get",
        cmd_testers_relationships_get,
        "Get beta tester relationship linkages.",
    )
    p.add_argument("--tester-id", help="Beta tester ID")
    p.add_argument("--id", help="Beta tester ID (alias of --tester-id)")
    p.add_argument(
        "--type", help=f"Relationship type: {', '.join(sorted(BETA_TESTER_RELATIONSHIPS))}"
    )
    shared.add_list_flags(p, "linkages")
    shared.add_output_flags(p)

    p = shared.add_command(
        testers, "metrics", cmd_testers_metrics, "Fetch beta tester usage metrics."
    )
    p.add_argument("--tester-id", help="Beta tester ID")
    p.add_argument("--id", help="Beta tester ID (alias of --tester-id)")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument(
        "--period", help=f"Reporting period: {', '.join(BETA_TESTER_USAGE_PERIODS)}"
    )
    p.add_argument("--limit", type=int, default=0, help="Maximum results per page (1-200)")
    p.add_argument("--next", default="", help="Fetch next page using a links.next URL")
    shared.add_output_flags(p)


def _register_notifications(testflight: Any) -> None:
    notifications = shared.add_group(
        testflight,
        "beta-notifications",
        "Send TestFlight build notifications.",
        "beta_notifications_command",
    )
    p = shared.add_command(
        notifications,
        "create",
        cmd_notifications_create,
        "Notify testers that a build is available.",
    )
    p.add_argument("--build", help="Build ID")
    shared.add_output_flags(p)


def _register_agreements(testflight: Any) -> None:
    agreements = shared.add_group(
        testflight,
        "beta-license-agreements",
        "Manage TestFlight beta license agreements.",
        "beta_license_agreements_command",
    )

    p = shared.add_command(
        agreements, "list", cmd_agreements_list, "List beta license agreements."
    )
    p.add_argument("--app", help="App Store Connect app ID(s), comma-separated")
    p.add_argument("--fields", help="Fields to include (betaLicenseAgreements), comma-separated")
    p.add_argument("--app-fields", help="App fields to include, comma-separated")
    p.add_argument("--include", help="Include related resources (e.g., app), comma-separated")
    shared.add_list_flags(p, "agreements")
    shared.add_output_flags(p)

    p = shared.add_command(agreements, "get", cmd_agreements_get, "Get a beta license agreement.")
    p.add_argument("--id", help="Beta license agreement ID")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--fields", help="Fields to include (betaLicenseAgreements), comma-separated")
    p.add_argument("--app-fields", help="App fields to include, comma-separated")
    p.add_argument("--include", help="Include related resources (e.g., app), comma-separated")
    shared.add_output_flags(p)

    p = shared.add_command(
        agreements, "update", cmd_agreements_update, "Update a beta license agreement."
    )
    p.add_argument("--id", help="Beta license agreement ID")
    p.add_argument("--agreement-text", help="Updated agreement text")
    shared.add_output_flags(p)


def register(subparsers: Any) -> None:
    """Register ``asc testflight``."""
    testflight = shared.add_group(
        subparsers, "testflight", "Manage TestFlight distribution.", "testflight_command"
    )
    _register_groups(testflight)
    _register_testers(testflight)
    _register_agreements(testflight)
    _register_notifications(testflight)
