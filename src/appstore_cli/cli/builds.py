"""
``asc builds``: list, inspect, expire and manage builds and build uploads.
"""

import argparse
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from ..builds import BuildsManager, parse_older_than
from ..exceptions import AppStoreConnectError, ValidationError
from ..utils import (
    split_csv,
    split_csv_upper,
    validate_limit,
    validate_platform,
    validate_sort,
    validate_version_string,
)
from . import shared
from .shared import UsageError

logger = logging.getLogger(__name__)

BUILD_SORTS = (
    "uploadedDate",
    "-uploadedDate",
    "version",
    "-version",
    "preReleaseVersion",
    "-preReleaseVersion",
)
UPLOAD_SORTS = ("cfBundleVersion", "-cfBundleVersion", "uploadedDate", "-uploadedDate")
UPLOAD_STATES = ["AWAITING_UPLOAD", "PROCESSING", "FAILED", "COMPLETE"]

# Relationship name -> True when the relationship is to-many
BUILD_RELATIONSHIPS = {
    "app": False,
    "appStoreVersion": False,
    "buildBetaDetail": False,
    "preReleaseVersion": False,
    "betaBuildLocalizations": True,
    "diagnosticSignatures": True,
    "individualTesters": True,
    "icons": True,
}


def relationship_type(value: str, kinds: Dict[str, bool]) -> str:
    """Validate a --type value against a relationship table."""
    value = (value or "").strip()
    if not value:
        raise UsageError("--type is required")
    if value not in kinds:
        raise UsageError(f"--type must be one of: {', '.join(sorted(kinds))}")
    return value


def get_relationship(
    args: argparse.Namespace, resource_path: str, rel_type: str, to_many: bool
) -> Dict[str, Any]:
    """Fetch a to-one linkage, or a page (or all pages) of a to-many linkage."""
    if not to_many:
        return shared.get_client().get_relationship(resource_path, rel_type)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_relationship(
            resource_path, rel_type, limit=limit, next_url=next_url
        ),
    )


# ===== BUILDS =====


def cmd_list(args: argparse.Namespace) -> Any:
    with shared.usage_errors():
        sort = validate_sort(args.sort, *BUILD_SORTS)
    app_id = "" if shared.has_next(args) else shared.require_app(args.app)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_builds(
            app_id, sort=sort, limit=limit, next_url=next_url
        ),
    )


def cmd_info(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    return shared.get_client().get_build(build_id)


def cmd_latest(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    with shared.usage_errors():
        platform = validate_platform(args.platform)
        version = (
            validate_version_string(args.version) if (args.version or "").strip() else None
        )
    if args.initial_build_number < 1:
        raise UsageError("--initial-build-number must be >= 1")

    manager = BuildsManager(shared.get_client())
    if args.next_build_number:
        return manager.next_build_number(
            app_id, version, platform, initial_build_number=args.initial_build_number
        )
    return manager.get_latest_build(app_id, version, platform)


def cmd_expire(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    return shared.get_client().expire_build(build_id)


def cmd_expire_all(args: argparse.Namespace) -> Any:
    app_id = shared.require_app(args.app)
    older_than = (args.older_than or "").strip()
    if not older_than and args.keep_latest == 0:
        raise UsageError("--older-than or --keep-latest is required")
    if args.keep_latest < 0:
        raise ValidationError("--keep-latest must be greater than or equal to 0")
    if not args.dry_run and not args.confirm:
        raise UsageError("--confirm is required to expire builds")

    now = datetime.now(timezone.utc)
    threshold = parse_older_than(older_than, now) if older_than else None

    result = BuildsManager(shared.get_client()).expire_all(
        app_id,
        older_than=threshold,
        keep_latest=args.keep_latest,
        dry_run=args.dry_run,
        now=now,
    )
    if older_than:
        result["olderThan"] = older_than
    if args.keep_latest > 0:
        result["keepLatest"] = args.keep_latest

    failures = result.get("failures") or []
    if not failures:
        return result
    shared.print_result(args, result)
    raise AppStoreConnectError(f"{len(failures)} builds failed to expire")


def cmd_metrics_beta_usages(args: argparse.Namespace) -> Any:
    limit = validate_limit(args.limit)
    build_id = "" if shared.has_next(args) else shared.require_flag(args.build, "--build")
    return shared.get_client().get_build_beta_usages_metrics(
        build_id, limit=limit, next_url=(args.next or "").strip() or None
    )


def cmd_add_groups(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    group_ids = split_csv(args.group)
    if not group_ids:
        raise UsageError("--group is required")
    shared.get_client().add_build_beta_groups(build_id, group_ids)
    return {"buildId": build_id, "groupIds": group_ids, "action": "added"}


def cmd_remove_groups(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    group_ids = split_csv(args.group)
    if not group_ids:
        raise UsageError("--group is required")
    shared.require_confirm(args)
    shared.get_client().remove_build_beta_groups(build_id, group_ids)
    return {"buildId": build_id, "groupIds": group_ids, "action": "removed"}


# ===== INDIVIDUAL TESTERS =====


def cmd_individual_testers_list(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    build_id = "" if shared.has_next(args) else shared.require_flag(args.build, "--build")
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_build_individual_testers(
            build_id, limit=limit, next_url=next_url
        ),
    )


def cmd_individual_testers_add(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    tester_ids = split_csv(args.tester)
    if not tester_ids:
        raise UsageError("--tester is required")
    shared.get_client().add_build_individual_testers(build_id, tester_ids)
    return {"buildId": build_id, "testerIds": tester_ids, "action": "added"}


def cmd_individual_testers_remove(args: argparse.Namespace) -> Any:
    build_id = shared.require_flag(args.build, "--build")
    tester_ids = split_csv(args.tester)
    if not tester_ids:
        raise UsageError("--tester is required")
    shared.get_client().remove_build_individual_testers(build_id, tester_ids)
    return {"buildId": build_id, "testerIds": tester_ids, "action": "removed"}


# ===== RELATIONSHIPS =====


def cmd_relationships_get(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    rel_type = relationship_type(args.type, BUILD_RELATIONSHIPS)
    build_id = shared.require_flag(args.build, "--build")
    to_many = BUILD_RELATIONSHIPS[rel_type]
    shared.check_to_many_flags(args, to_many)
    return get_relationship(args, f"/v1/builds/{build_id}", rel_type, to_many)


# ===== UPLOADS =====


def cmd_uploads_list(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    with shared.usage_errors():
        sort = validate_sort(args.sort, *UPLOAD_SORTS)
        platforms = [validate_platform(p) for p in split_csv(args.platform)]
    app_id = "" if shared.has_next(args) else shared.require_app(args.app)
    states = split_csv_upper(args.state)
    for state in states:
        if state not in UPLOAD_STATES:
            raise UsageError(f"--state must be one of: {', '.join(UPLOAD_STATES)}")

    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_build_uploads(
            app_id,
            states=states,
            versions=split_csv(args.cf_bundle_short_version),
            build_numbers=split_csv(args.cf_bundle_version),
            platforms=platforms,
            sort=sort,
            limit=limit,
            next_url=next_url,
        ),
    )


def cmd_uploads_get(args: argparse.Namespace) -> Any:
    upload_id = shared.require_flag(args.id, "--id")
    return shared.get_client().get_build_upload(upload_id)


def cmd_uploads_delete(args: argparse.Namespace) -> Any:
    upload_id = shared.require_flag(args.id, "--id")
    shared.require_confirm(args)
    shared.get_client().delete_build_upload(upload_id)
    return shared.deleted(upload_id)


def register(subparsers: Any) -> None:
    """Register ``asc builds``."""
    builds = shared.add_group(
        subparsers, "builds", "Manage builds in App Store Connect.", "builds_command"
    )

    p = shared.add_command(builds, "list", cmd_list, "List builds for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--sort", help=f"Sort by {', '.join(BUILD_SORTS)}")
    shared.add_list_flags(p, "builds")
    shared.add_output_flags(p)

    p = shared.add_command(builds, "info", cmd_info, "Show build details.")
    p.add_argument("--build", help="Build ID")
    shared.add_output_flags(p)

    p = shared.add_command(builds, "latest", cmd_latest, "Get the latest build for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument("--version", help="Filter by version string (CFBundleShortVersionString)")
    p.add_argument("--platform", help="Filter by platform: IOS, MAC_OS, TV_OS, VISION_OS")
    p.add_argument(
        "--next",
        dest="next_build_number",
        action="store_true",
        help="Return the next collision-safe build number instead of the build",
    )
    p.add_argument(
        "--initial-build-number",
        type=int,
        default=1,
        help="Build number to use when no builds or uploads exist (default 1)",
    )
    shared.add_output_flags(p)

    p = shared.add_command(builds, "expire", cmd_expire, "Expire a build for TestFlight.")
    p.add_argument("--build", help="Build ID")
    shared.add_output_flags(p)

    p = shared.add_command(
        builds, "expire-all", cmd_expire_all, "Expire TestFlight builds in bulk."
    )
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument(
        "--older-than",
        help="Expire builds older than a duration (90d, 2w, 3m) or a date (YYYY-MM-DD)",
    )
    p.add_argument(
        "--keep-latest", type=int, default=0, help="Keep the N most recent builds"
    )
    p.add_argument(
        "--dry-run", action="store_true", help="Preview builds without expiring them"
    )
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    p = shared.add_command(builds, "add-groups", cmd_add_groups, "Add beta groups to a build.")
    p.add_argument("--build", help="Build ID")
    p.add_argument("--group", help="Beta group IDs, comma-separated")
    shared.add_output_flags(p)

    p = shared.add_command(
        builds, "remove-groups", cmd_remove_groups, "Remove beta groups from a build."
    )
    p.add_argument("--build", help="Build ID")
    p.add_argument("--group", help="Beta group IDs, comma-separated")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    testers = shared.add_group(
        builds,
        "individual-testers",
        "Manage individual testers assigned to a build.",
        "individual_testers_command",
    )
    p = shared.add_command(
        testers, "list", cmd_individual_testers_list, "List individual testers for a build."
    )
    p.add_argument("--build", help="Build ID")
    shared.add_list_flags(p, "testers")
    shared.add_output_flags(p)
    for name, handler, help_text in (
        ("add", cmd_individual_testers_add, "Add individual testers to a build."),
        ("remove", cmd_individual_testers_remove, "Remove individual testers from a build."),
    ):
        p = shared.add_command(testers, name, handler, help_text)
        p.add_argument("--build", help="Build ID")
        p.add_argument("--tester", help="Beta tester IDs, comma-separated")
        shared.add_output_flags(p)

    relationships = shared.add_group(
        builds, "relationships", "View build relationship linkages.", "relationships_command"
    )
    p = shared.add_command(
        relationships, "get", cmd_relationships_get, "Get build relationship linkages."
    )
    p.add_argument("--build", help="Build ID")
    p.add_argument("--type", help=f"Relationship type: {', '.join(sorted(BUILD_RELATIONSHIPS))}")
    shared.add_list_flags(p, "linkages")
    shared.add_output_flags(p)

    uploads = shared.add_group(builds, "uploads", "Manage build uploads.", "uploads_command")
    p = shared.add_command(uploads, "list", cmd_uploads_list, "List build uploads for an app.")
    p.add_argument("--app", help="App Store Connect app ID (or ASC_APP_ID)")
    p.add_argument(
        "--cf-bundle-short-version", help="Filter by CFBundleShortVersionString, comma-separated"
    )
    p.add_argument("--cf-bundle-version", help="Filter by CFBundleVersion, comma-separated")
    p.add_argument("--platform", help="Filter by platform(s), comma-separated")
    p.add_argument("--state", help=f"Filter by state(s): {', '.join(UPLOAD_STATES)}")
    p.add_argument("--sort", help=f"Sort by {', '.join(UPLOAD_SORTS)}")
    shared.add_list_flags(p, "uploads")
    shared.add_output_flags(p)

    p = shared.add_command(uploads, "get", cmd_uploads_get, "Get a build upload.")
    p.add_argument("--id", help="Build upload ID")
    shared.add_output_flags(p)

    p = shared.add_command(uploads, "delete", cmd_uploads_delete, "Delete a build upload.")
    p.add_argument("--id", help="Build upload ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    metrics = shared.add_group(builds, "metrics", "Fetch build metrics.", "metrics_command")
    p = shared.add_command(
        metrics,
        "beta-usages",
        cmd_metrics_beta_usages,
        "Fetch TestFlight usage metrics for a build.",
    )
    p.add_argument("--build", help="Build ID")
    p.add_argument("--limit", type=int, default=0, help="Maximum results per page (1-200)")
    p.add_argument("--next", default="", help="Fetch next page using a links.next URL")
    shared.add_output_flags(p)
