"""
Build lookup utilities for appstore-cli.

This module finds the most recent build of an app, computes the next
build number that is safe to upload (taking both processed builds and
in-flight build uploads into account) and expires old TestFlight builds
in bulk.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .client import AppStoreConnectAPI
from .exceptions import AppStoreConnectError, NotFoundError, ValidationError
from .pagination import paginate_all
from .utils import MAX_PAGE_LIMIT, parse_rfc3339

logger = logging.getLogger(__name__)

UPLOAD_STATES = ["AWAITING_UPLOAD", "PROCESSING", "COMPLETE"]

# --older-than duration unit -> days
OLDER_THAN_UNITS = {"d": 1, "w": 7, "m": 30}


def parse_build_number(raw: Optional[str], source: str) -> int:
    """
    Parse a build number (CFBundleVersion) as a positive integer.

    Args:
        raw: The build number as reported by the API
        source: Description of where the value came from, used in errors

    Returns:
        The build number

    Raises:
        ValidationError: If the value is missing, not numeric or below 1
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ValidationError(
            f"{source} build number is missing (expected a positive integer)"
        )
    # ASCII digits with an optional sign
    digits = trimmed[1:] if trimmed[:1] in ("+", "-") else trimmed
    if not (digits.isascii() and digits.isdigit()):
        raise ValidationError(
            f"{source} build number {raw!r} is not numeric (expected a positive integer)"
        )
    value = int(trimmed)
    if value < 1:
        raise ValidationError(f"{source} build number {raw!r} must be >= 1")
    return value


def parse_older_than(value: str, now: datetime) -> datetime:
    """
    Turn an --older-than value into a cutoff time.

    Accepts a date (YYYY-MM-DD, midnight UTC), an RFC3339 timestamp or a
    duration such as ``90d``, ``2w`` or ``3m`` (a month is 30 days).

    Raises:
        ValidationError: If the value is none of those
    """
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError("--older-than must not be empty")
    try:
        return datetime.strptime(trimmed, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    timestamp = parse_rfc3339(trimmed)
    if timestamp is not None:
        return timestamp

    lowered = trimmed.lower()
    number, unit = lowered[:-1].strip(), lowered[-1:]
    if unit not in OLDER_THAN_UNITS or not (number.isascii() and number.isdigit()):
        raise ValidationError("--older-than must be a duration like 90d, 2w, or 3m")
    if int(number) <= 0:
        raise ValidationError("--older-than must be a duration like 90d, 2w, or 3m")
    return now - timedelta(days=int(number) * OLDER_THAN_UNITS[unit])


class BuildsManager:
    """
    High-level build queries for App Store Connect apps.

    Builds are grouped by pre-release version (the TestFlight train, one per
    version and platform). Uploads that have not finished processing are not
    builds yet, so they are read from the build uploads endpoint.
    """

    def __init__(self, api: AppStoreConnectAPI):
        """Initialize with an API client."""
        self.api = api

    def find_pre_release_version_ids(
        self, app_id: str, version: Optional[str] = None, platform: Optional[str] = None
    ) -> List[str]:
        """
        Look up pre-release version IDs matching a version and/or platform.

        With a version only the first match is needed. With a platform alone
        every pre-release version of that platform is collected.

        Returns:
            Matching pre-release version IDs (possibly empty)
        """
        if version:
            response = self.api.get_pre_release_versions(
                app_id, version=version, platform=platform, limit=1
            )
            data = response.get("data") or []
            return [data[0]["id"]] if data else []

        first_page = self.api.get_pre_release_versions(
            app_id, platform=platform, limit=MAX_PAGE_LIMIT
        )
        all_versions = paginate_all(
            first_page,
            lambda next_url: self.api.get_pre_release_versions(next_url=next_url),
        )
        return [item["id"] for item in (all_versions or {}).get("data", [])]

    def _latest_for(
        self, app_id: str, pre_release_version: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        builds = self.api.get_builds(
            app_id,
            sort="-uploadedDate",
            limit=1,
            pre_release_version=pre_release_version,
        )
        data = builds.get("data") or []
        if not data:
            return None
        return {"data": data[0], "links": builds.get("links") or {}}

    def get_latest_build(
        self,
        app_id: str,
        version: Optional[str] = None,
        platform: Optional[str] = None,
        required: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """
        Get the most recently uploaded build.

        Args:
            app_id: App Store Connect app ID
            version: Marketing version (CFBundleShortVersionString) filter
            platform: Platform filter (IOS, MAC_OS, TV_OS, VISION_OS)
            required: Raise when nothing matches instead of returning None

        Returns:
            A single-build document ``{"data": {...}, "links": {...}}``, or
            None when nothing matches and ``required`` is False

        Raises:
            NotFoundError: If no build matches and ``required`` is True
        """
        if not version and not platform:
            latest = self._latest_for(app_id)
            if latest is None and required:
                raise NotFoundError(f"no builds found for app {app_id}")
            return latest

        version_ids = self.find_pre_release_version_ids(app_id, version, platform)
        if not version_ids:
            if not required:
                return None
            if version and platform:
                raise NotFoundError(
                    f'no pre-release version found for version "{version}" '
                    f"on platform {platform}"
                )
            if version:
                raise NotFoundError(
                    f'no pre-release version found for version "{version}"'
                )
            raise NotFoundError(f"no pre-release version found for platform {platform}")

        if len(version_ids) == 1:
            latest = self._latest_for(app_id, version_ids[0])
        else:
            # Several trains for one platform: keep the newest upload across them
            latest = None
            newest_date = ""
            for version_id in version_ids:
                candidate = self._latest_for(app_id, version_id)
                if candidate is None:
                    continue
                uploaded = (candidate["data"].get("attributes") or {}).get(
                    "uploadedDate"
                ) or ""
                if latest is None or uploaded > newest_date:
                    latest = {"data": candidate["data"]}
                    newest_date = uploaded

        if latest is None and required:
            raise NotFoundError("no builds found matching filters")
        return latest

    def fetch_build_uploads(
        self, app_id: str, version: Optional[str] = None, platform: Optional[str] = None
    ) -> Dict[str, Any]:
        """Fetch every build upload that is awaiting upload, processing or complete."""
        first_page = self.api.get_build_uploads(
            app_id,
            states=UPLOAD_STATES,
            versions=[version] if version else None,
            platforms=[platform] if platform else None,
            limit=MAX_PAGE_LIMIT,
        )
        if not ((first_page or {}).get("links") or {}).get("next"):
            return first_page
        return paginate_all(
            first_page,
            lambda next_url: self.api.get_build_uploads(app_id, next_url=next_url),
        )

    def next_build_number(
        self,
        app_id: str,
        version: Optional[str] = None,
        platform: Optional[str] = None,
        initial_build_number: int = 1,
    ) -> Dict[str, Any]:
        """
        Compute the next build number that will not collide with existing builds.

        The highest number among the latest processed build and all in-flight
        uploads is the latest observed build number; the next number is one
        above it, or ``initial_build_number`` when nothing has been uploaded.

        Returns:
            Dictionary with latestProcessedBuildNumber, latestUploadBuildNumber,
            latestObservedBuildNumber, nextBuildNumber and sourcesConsidered

        Raises:
            ValidationError: If ``initial_build_number`` is below 1 or the API
                reports a non-numeric build number
        """
        if initial_build_number < 1:
            raise ValidationError("--initial-build-number must be >= 1")

        sources: List[str] = []
        latest_processed: Optional[int] = None
        latest_upload: Optional[int] = None

        latest_build = self.get_latest_build(app_id, version, platform, required=False)
        if latest_build is not None:
            build = latest_build["data"]
            latest_processed = parse_build_number(
                (build.get("attributes") or {}).get("version"),
                f"processed build {build.get('id')}",
            )
            sources.append("processed_builds")

        uploads = self.fetch_build_uploads(app_id, version, platform) or {}
        for upload in uploads.get("data") or []:
            parsed = parse_build_number(
                (upload.get("attributes") or {}).get("cfBundleVersion"),
                f"build upload {upload.get('id')}",
            )
            if latest_upload is None or parsed > latest_upload:
                latest_upload = parsed
        if latest_upload is not None:
            sources.append("build_uploads")

        observed = [n for n in (latest_processed, latest_upload) if n is not None]
        latest_observed = max(observed) if observed else None
        next_number = (
            latest_observed + 1 if latest_observed is not None else initial_build_number
        )
        logger.debug(
            f"next_build_number: processed={latest_processed} "
            f"upload={latest_upload} next={next_number}"
        )

        return {
            "latestProcessedBuildNumber": _as_str(latest_processed),
            "latestUploadBuildNumber": _as_str(latest_upload),
            "latestObservedBuildNumber": _as_str(latest_observed),
            "nextBuildNumber": str(next_number),
            "sourcesConsidered": sources,
        }

    def expire_all(
        self,
        app_id: str,
        older_than: Optional[datetime] = None,
        keep_latest: int = 0,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Expire every unexpired build of an app that matches the filters.

        Builds are ordered newest first; the ``keep_latest`` newest are
        spared, then only builds uploaded before ``older_than`` are kept.
        A build that fails to expire is reported and the rest continue.

        Args:
            app_id: App Store Connect app ID
            older_than: Expire only builds uploaded before this time
            keep_latest: Number of newest builds to keep
            dry_run: Select builds without expiring them
            now: Reference time for ``ageDays`` (defaults to the current time)

        Returns:
            Dictionary with dryRun, appId, selectedCount, expiredCount,
            builds and failures, plus skippedExpiredCount and
            skippedInvalidCount when builds were skipped
        """
        now = now or datetime.now(timezone.utc)
        first_page = self.api.get_builds(app_id, sort="-uploadedDate", limit=MAX_PAGE_LIMIT)
        all_builds = paginate_all(
            first_page,
            lambda next_url: self.api.get_builds(app_id, next_url=next_url),
        )

        candidates = []
        skipped_expired = 0
        skipped_invalid = 0
        for build in (all_builds or {}).get("data") or []:
            attributes = build.get("attributes") or {}
            if attributes.get("expired"):
                skipped_expired += 1
                continue
            uploaded_at = parse_rfc3339(attributes.get("uploadedDate"))
            if uploaded_at is None:
                skipped_invalid += 1
                logger.warning(
                    f"build {build.get('id')} has invalid uploadedDate "
                    f"{attributes.get('uploadedDate')!r}"
                )
                continue
            candidates.append((uploaded_at, build))

        candidates.sort(key=lambda candidate: candidate[0], reverse=True)
        if keep_latest > 0:
            candidates = candidates[keep_latest:]
        if older_than is not None:
            candidates = [c for c in candidates if c[0] < older_than]

        items = []
        failures = []
        for uploaded_at, build in candidates:
            attributes = build.get("attributes") or {}
            item = {
                "id": build["id"],
                "version": attributes.get("version", ""),
                "uploadedDate": attributes.get("uploadedDate", ""),
                "ageDays": max(int((now - uploaded_at).total_seconds() // 86400), 0),
            }
            if not dry_run:
                try:
                    self.api.expire_build(build["id"])
                except AppStoreConnectError as e:
                    logger.warning(f"failed to expire build {build['id']}: {e}")
                    failures.append({"id": build["id"], "error": str(e)})
                    continue
                item["expired"] = True
            items.append(item)

        result: Dict[str, Any] = {
            "dryRun": dry_run,
            "appId": app_id,
            "selectedCount": len(candidates),
            "expiredCount": len(items) if not dry_run else 0,
        }
        if skipped_expired:
            result["skippedExpiredCount"] = skipped_expired
        if skipped_invalid:
            result["skippedInvalidCount"] = skipped_invalid
        result["builds"] = items
        if failures:
            result["failures"] = failures
        return result


def _as_str(value: Optional[int]) -> Optional[str]:
    return str(value) if value is not None else None
