"""
Apple App Store Connect API client.

This module provides the HTTP client shared by every command: JWT
authentication, rate limiting, retries for throttled reads, error mapping
and one method per App Store Connect endpoint the CLI uses.
"""

import jwt
import re
import requests
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse
from ratelimit import limits, sleep_and_retry
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
import logging

from .exceptions import (
    AppStoreConnectError,
    AuthenticationError,
    ConflictError,
    RateLimitError,
    ServerError,
    ValidationError,
    NotFoundError,
    PermissionError,
)
from .pagination import validate_next_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0

RETRYABLE_METHODS = ("GET", "HEAD")
RETRY_STATUSES = (429, 503)

SENSITIVE_QUERY_KEYS = (
    "signature",
    "x-amz-signature",
    "x-amz-credential",
    "x-amz-security-token",
    "token",
    "secret",
)

_CONTROL_CHARS = re.compile(r"\x1b\[[0-9;]*[A-Za-z]|[\x00-\x08\x0b-\x1f\x7f]")


def _sanitize(value: Any) -> str:
    """Strip terminal escape sequences and control characters."""
    if value is None:
        return ""
    return _CONTROL_CHARS.sub("", str(value)).strip()


def parse_retry_after(value: Optional[str]) -> float:
    """
    Parse a Retry-After header value.

    Args:
        value: Header value, either delta-seconds or an HTTP-date

    Returns:
        Seconds to wait, or 0 when the header is missing or unusable
    """
    value = (value or "").strip()
    if not value:
        return 0.0
    if value.isdigit():
        return float(int(value))
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return 0.0
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delay = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return delay if delay > 0 else 0.0


def format_api_error(
    title: str,
    detail: str,
    code: str,
    associated_errors: Optional[Dict[str, List[Dict[str, str]]]] = None,
) -> str:
    """
    Build a human-readable message from an App Store Connect error object.

    The base message is ``title: detail`` and falls back to title, detail,
    code and finally ``API error``. Associated errors are appended as one
    section per resource, sorted by resource path.
    """
    title, detail, code = _sanitize(title), _sanitize(detail), _sanitize(code)
    if title and detail:
        message = f"{title}: {detail}"
    else:
        message = title or detail or code or "API error"

    sections = []
    for resource in sorted(associated_errors or {}):
        lines = [f"Associated errors for {_sanitize(resource) or '(unknown resource)'}:"]
        for entry in associated_errors[resource] or []:
            text = _sanitize(entry.get("detail")) or _sanitize(entry.get("code"))
            if text:
                lines.append(f"  - {text}")
        if len(lines) > 1:
            sections.append("\n".join(lines))

    if sections:
        message = message + "\n\n" + "\n\n".join(sections)
    return message


def redact_url(url: str) -> str:
    """Mask sensitive query parameters before a URL is logged."""
    parsed = urlparse(url)
    if not parsed.query:
        return url
    query = [
        (key, "REDACTED" if key.lower() in SENSITIVE_QUERY_KEYS else value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
    ]
    return urlunparse(parsed._replace(query=urlencode(query, safe="[],")))


def _resource_identifiers(resource_type: str, ids: List[str]) -> Dict:
    return {"data": [{"type": resource_type, "id": resource_id} for resource_id in ids]}


def _relationship(resource_type: str, resource_id: str) -> Dict:
    return {"data": {"type": resource_type, "id": resource_id}}


def _set_param(params: Dict[str, Any], key: str, value: Any) -> None:
    if value is None or value == "" or value == []:
        return
    if isinstance(value, (list, tuple)):
        value = ",".join(str(item) for item in value)
    params[key] = value


class AppStoreConnectAPI:
    """
    Apple App Store Connect API client.

    Args:
        key_id: Your App Store Connect API key ID
        issuer_id: Your App Store Connect API issuer ID
        private_key_path: Path to your .p8 private key file
        private_key: PEM content of the private key, used instead of a path
        timeout: Request timeout in seconds
        max_retries: Retries for throttled GET/HEAD requests (0 disables)
        base_delay: Initial backoff delay in seconds
        max_delay: Maximum backoff delay in seconds
    """

    BASE_URL = "https://api.appstoreconnect.apple.com"

    def __init__(
        self,
        key_id: str,
        issuer_id: str,
        private_key_path: Optional[Union[str, Path]] = None,
        private_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ):
        """Initialize the App Store Connect API client."""
        self.key_id = key_id
        self.issuer_id = issuer_id
        self.private_key_path = Path(private_key_path) if private_key_path else None
        self._private_key = private_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay if base_delay > 0 else DEFAULT_BASE_DELAY
        self.max_delay = max_delay if max_delay > 0 else DEFAULT_MAX_DELAY
        self._token: Optional[str] = None
        self._token_expiry: Optional[int] = None

        # Validate required parameters
        if not all([key_id, issuer_id]) or not (private_key_path or private_key):
            raise ValidationError("Missing required authentication parameters")

        if self.private_key_path and not private_key:
            if not self.private_key_path.exists():
                raise ValidationError(
                    f"Private key file not found: {private_key_path}"
                )

        self.session = self._build_session()

    def _build_session(self) -> requests.Session:
        """Create the HTTP session, retrying throttled GET/HEAD calls."""
        session = requests.Session()
        if self.max_retries <= 0:
            return session
        retry = Retry(
            total=self.max_retries,
            connect=0,
            read=0,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset(RETRYABLE_METHODS),
            backoff_factor=self.base_delay,
            backoff_max=self.max_delay,
            backoff_jitter=self.base_delay * 0.25,
            respect_retry_after_header=True,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _load_private_key(self) -> str:
        """Load the private key from memory or file."""
        if self._private_key:
            return self._private_key
        try:
            with open(self.private_key_path, "r") as f:
                return f.read()
        except IOError as e:
            raise AuthenticationError(f"Failed to load private key: {e}")

    def _generate_token(self) -> str:
        """Generate a JWT token for App Store Connect API."""
        current_time = int(datetime.now(timezone.utc).timestamp())

        if self._token and self._token_expiry and current_time < self._token_expiry:
            return self._token

        private_key = self._load_private_key()

        # Token expires in 20 minutes (max allowed by Apple)
        expiry = current_time + 1200

        payload = {
            "iss": self.issuer_id,
            "iat": current_time,
            "exp": expiry,
            "aud": "appstoreconnect-v1",
        }

        headers = {"alg": "ES256", "kid": self.key_id, "typ": "JWT"}

        try:
            self._token = jwt.encode(
                payload, private_key, algorithm="ES256", headers=headers
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise AuthenticationError(f"Failed to generate JWT token: {e}")

        self._token_expiry = expiry - 60  # Refresh 1 minute before expiry
        return self._token

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests."""
        token = self._generate_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _error_from_response(self, response: requests.Response) -> AppStoreConnectError:
        """Map an error response to the matching exception."""
        status = response.status_code
        first: Dict[str, Any] = {}
        try:
            body = response.json()
            errors = body.get("errors") if isinstance(body, dict) else None
            if errors and isinstance(errors[0], dict):
                first = errors[0]
        except ValueError:
            body = None

        code = first.get("code") or ""
        title = first.get("title") or ""
        detail = first.get("detail") or ""
        meta = first.get("meta") or {}
        associated = meta.get("associatedErrors") if isinstance(meta, dict) else None
        associated = associated if isinstance(associated, dict) else {}

        if first:
            message = format_api_error(title, detail, code, associated)
        else:
            message = _sanitize(response.text) or ""

        kwargs = dict(
            status_code=status,
            code=code or None,
            title=title or None,
            detail=detail or None,
            associated_errors=associated,
        )
        retry_after = parse_retry_after(response.headers.get("Retry-After"))

        if status == 401:
            return AuthenticationError(
                message or "Authentication failed - check credentials", **kwargs
            )
        elif status == 403:
            return PermissionError(
                message or "Insufficient permissions for this operation", **kwargs
            )
        elif status == 404:
            return NotFoundError(message or "Requested resource not found", **kwargs)
        elif status == 409:
            return ConflictError(message or "Resource conflict", **kwargs)
        elif status == 429:
            return RateLimitError(
                message or "Rate limit exceeded", retry_after=retry_after, **kwargs
            )
        elif status >= 500:
            return ServerError(
                message or f"Server error {status}",
                retry_after=retry_after if status == 503 else 0.0,
                **kwargs,
            )
        logger.error(f"API Error {status}: {message}")
        return AppStoreConnectError(f"API Error {status}: {message}", **kwargs)

    def _make_request_raw(
        self,
        method: str = "GET",
        url: Optional[str] = None,
        endpoint: Optional[str] = None,
        params: Optional[Dict] = None,
        data: Optional[Dict] = None,
    ) -> requests.Response:
        """Make a single request to the API."""
        if url is None and endpoint is not None:
            url = f"{self.BASE_URL}{endpoint}"
        elif url is None:
            raise ValidationError("Either url or endpoint must be provided")

        headers = self._get_headers()

        logger.debug(f"_make_request: {method} {redact_url(url)}")
        if params:
            logger.debug(f"_make_request: params={params}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=data,
                timeout=self.timeout,
            )
            logger.debug(
                f"_make_request: Response received - status={response.status_code}"
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"_make_request: Request timed out after {self.timeout}s: {e}")
            raise AppStoreConnectError(f"Request failed: {e}")
        except requests.exceptions.RequestException as e:
            logger.error(f"_make_request: Request failed: {e}")
            raise AppStoreConnectError(f"Request failed: {e}")

        if response.status_code >= 400:
            error = self._error_from_response(response)
            if self._retries_exhausted(method, response.status_code):
                # The session already retried; this is the final response.
                raise type(error)(
                    f"retry limit exceeded after {self.max_retries + 1} retries: {error}",
                    retry_after=error.retry_after,
                    status_code=error.status_code,
                    code=error.code,
                    title=error.title,
                    detail=error.detail,
                    associated_errors=error.associated_errors,
                ) from error
            raise error

        return response

    def _retries_exhausted(self, method: str, status: int) -> bool:
        return (
            self.max_retries > 0
            and method.upper() in RETRYABLE_METHODS
            and status in RETRY_STATUSES
        )

    @sleep_and_retry
    @limits(calls=3500, period=3600)  # Apple's rate limit
    def _make_request(self, *args, **kwargs) -> requests.Response:
        """Rate-limited wrapper for _make_request_raw."""
        return self._make_request_raw(*args, **kwargs)

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict] = None,
        data: Optional[Dict] = None,
    ) -> requests.Response:
        """Send a request to a path or absolute API URL."""
        method = method.upper()
        if not url.startswith(("http://", "https://")):
            url = f"{self.BASE_URL}{url}"
        return self._make_request(method=method, url=url, params=params, data=data)

    @staticmethod
    def _json(response: requests.Response) -> Dict:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise AppStoreConnectError(f"failed to parse response: {e}")

    # ===== CORE METHODS =====

    def get(self, path: str, params: Optional[Dict] = None) -> Dict:
        """GET a path relative to the API base URL."""
        return self._json(self._request("GET", path, params=params))

    def get_url(self, next_url: str) -> Dict:
        """GET a ``links.next`` URL after checking it points at the API host."""
        validate_next_url(next_url)
        return self._json(self._request("GET", next_url))

    def post(self, path: str, data: Dict) -> Dict:
        """POST a JSON:API document."""
        return self._json(self._request("POST", path, data=data))

    def patch(self, path: str, data: Dict) -> Dict:
        """PATCH a JSON:API document."""
        return self._json(self._request("PATCH", path, data=data))

    def delete(self, path: str, data: Optional[Dict] = None) -> None:
        """DELETE a resource or relationship linkage."""
        self._request("DELETE", path, data=data)

    def list_resources(
        self,
        path: str,
        params: Optional[Dict] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """
        Fetch one page of a collection.

        Args:
            path: Collection path, e.g. ``/v1/betaGroups``
            params: Query parameters for the first page
            next_url: A ``links.next`` URL; when set ``path`` and ``params``
                are ignored

        Returns:
            The JSON:API collection document
        """
        if next_url:
            return self.get_url(next_url)
        return self.get(path, params=params or None)

    @staticmethod
    def build_resource(
        resource_type: str,
        attributes: Optional[Dict] = None,
        relationships: Optional[Dict] = None,
        resource_id: Optional[str] = None,
    ) -> Dict:
        """Build a JSON:API request document, dropping unset attributes."""
        data: Dict[str, Any] = {"type": resource_type}
        if resource_id:
            data["id"] = resource_id
        if attributes is not None:
            data["attributes"] = {
                key: value for key, value in attributes.items() if value is not None
            }
        if relationships:
            data["relationships"] = relationships
        return {"data": data}

    def get_relationship(
        self,
        resource_path: str,
        relationship: str,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """Fetch relationship linkage, e.g. ``/v1/builds/{id}/relationships/app``."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"{resource_path}/relationships/{relationship}", params, next_url
        )

    # ===== BUILDS METHODS =====

    def get_builds(
        self,
        app_id: Optional[str] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
        pre_release_version: Optional[str] = None,
        version: Optional[str] = None,
        processing_state: Optional[str] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """
        List builds for an app.

        ``/v1/apps/{id}/builds`` does not support sorting, limits or filters,
        so ``/v1/builds`` with ``filter[app]`` is used whenever one is given.
        """
        if next_url:
            return self.get_url(next_url)

        params: Dict[str, Any] = {}
        if sort or limit or pre_release_version or version or processing_state:
            _set_param(params, "filter[app]", app_id)
            _set_param(params, "sort", sort)
            _set_param(params, "limit", limit)
            _set_param(params, "filter[preReleaseVersion]", pre_release_version)
            _set_param(params, "filter[version]", version)
            _set_param(params, "filter[processingState]", processing_state)
            return self.get("/v1/builds", params)
        return self.get(f"/v1/apps/{app_id}/builds")

    def get_build(self, build_id: str) -> Dict:
        """Get a single build."""
        return self.get(f"/v1/builds/{build_id}")

    def expire_build(self, build_id: str) -> Dict:
        """Expire a build so testers can no longer install it."""
        body = self.build_resource("builds", {"expired": True}, resource_id=build_id)
        return self.patch(f"/v1/builds/{build_id}", body)

    def add_build_beta_groups(self, build_id: str, group_ids: List[str]) -> None:
        """Give beta groups access to a build."""
        self._request(
            "POST",
            f"/v1/builds/{build_id}/relationships/betaGroups",
            data=_resource_identifiers("betaGroups", group_ids),
        )

    def remove_build_beta_groups(self, build_id: str, group_ids: List[str]) -> None:
        """Remove beta groups from a build."""
        self.delete(
            f"/v1/builds/{build_id}/relationships/betaGroups",
            _resource_identifiers("betaGroups", group_ids),
        )

    def get_build_individual_testers(
        self,
        build_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List testers individually assigned to a build."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/builds/{build_id}/individualTesters", params, next_url
        )

    def add_build_individual_testers(self, build_id: str, tester_ids: List[str]) -> None:
        """Assign individual testers to a build."""
        self._request(
            "POST",
            f"/v1/builds/{build_id}/relationships/individualTesters",
            data=_resource_identifiers("betaTesters", tester_ids),
        )

    def remove_build_individual_testers(
        self, build_id: str, tester_ids: List[str]
    ) -> None:
        """Remove individually assigned testers from a build."""
        self.delete(
            f"/v1/builds/{build_id}/relationships/individualTesters",
            _resource_identifiers("betaTesters", tester_ids),
        )

    def get_pre_release_versions(
        self,
        app_id: Optional[str] = None,
        version: Optional[str] = None,
        platform: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List pre-release versions (TestFlight train versions)."""
        params: Dict[str, Any] = {}
        _set_param(params, "filter[app]", app_id)
        _set_param(params, "filter[platform]", platform)
        _set_param(params, "filter[version]", version)
        _set_param(params, "limit", limit)
        return self.list_resources("/v1/preReleaseVersions", params, next_url)

    def get_build_uploads(
        self,
        app_id: Optional[str] = None,
        states: Optional[List[str]] = None,
        versions: Optional[List[str]] = None,
        build_numbers: Optional[List[str]] = None,
        platforms: Optional[List[str]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List build uploads for an app."""
        params: Dict[str, Any] = {}
        _set_param(params, "filter[cfBundleShortVersionString]", versions)
        _set_param(params, "filter[cfBundleVersion]", build_numbers)
        _set_param(params, "filter[platform]", platforms)
        _set_param(params, "filter[state]", states)
        _set_param(params, "sort", sort)
        _set_param(params, "limit", limit)
        return self.list_resources(f"/v1/apps/{app_id}/buildUploads", params, next_url)

    def get_build_upload(self, upload_id: str) -> Dict:
        """Get a single build upload."""
        return self.get(f"/v1/buildUploads/{upload_id}")

    def delete_build_upload(self, upload_id: str) -> None:
        """Delete a build upload."""
        self.delete(f"/v1/buildUploads/{upload_id}")

    def get_build_beta_usages_metrics(
        self,
        build_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """Get TestFlight usage metrics for a build."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/builds/{build_id}/metrics/betaBuildUsages", params, next_url
        )

    def create_build_beta_notification(self, build_id: str) -> Dict:
        """Notify testers that a build is available."""
        body = self.build_resource(
            "buildBetaNotifications",
            relationships={"build": _relationship("builds", build_id)},
        )
        return self.post("/v1/buildBetaNotifications", body)

    # ===== TESTFLIGHT METHODS =====

    def get_beta_groups(
        self,
        app_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List beta groups for an app."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(f"/v1/apps/{app_id}/betaGroups", params, next_url)

    def get_beta_group(self, group_id: str) -> Dict:
        """Get a single beta group."""
        return self.get(f"/v1/betaGroups/{group_id}")

    def create_beta_group(self, app_id: str, name: str) -> Dict:
        """Create a beta group for an app."""
        body = self.build_resource(
            "betaGroups",
            {"name": name},
            {"app": _relationship("apps", app_id)},
        )
        return self.post("/v1/betaGroups", body)

    def update_beta_group(self, group_id: str, attributes: Dict) -> Dict:
        """Update beta group attributes."""
        body = self.build_resource("betaGroups", attributes, resource_id=group_id)
        return self.patch(f"/v1/betaGroups/{group_id}", body)

    def delete_beta_group(self, group_id: str) -> None:
        """Delete a beta group."""
        self.delete(f"/v1/betaGroups/{group_id}")

    def add_beta_group_testers(self, group_id: str, tester_ids: List[str]) -> None:
        """Add testers to a beta group."""
        self._request(
            "POST",
            f"/v1/betaGroups/{group_id}/relationships/betaTesters",
            data=_resource_identifiers("betaTesters", tester_ids),
        )

    def remove_beta_group_testers(self, group_id: str, tester_ids: List[str]) -> None:
        """Remove testers from a beta group."""
        self.delete(
            f"/v1/betaGroups/{group_id}/relationships/betaTesters",
            _resource_identifiers("betaTesters", tester_ids),
        )

    def get_beta_testers(
        self,
        app_id: Optional[str] = None,
        build_id: Optional[str] = None,
        email: Optional[str] = None,
        group_ids: Optional[List[str]] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """
        List beta testers.

        The API accepts only one relationship filter, so a build filter
        replaces the app filter.
        """
        params: Dict[str, Any] = {}
        if build_id:
            _set_param(params, "filter[builds]", build_id)
        else:
            _set_param(params, "filter[apps]", app_id)
        _set_param(params, "filter[email]", email)
        _set_param(params, "filter[betaGroups]", group_ids)
        _set_param(params, "limit", limit)
        return self.list_resources("/v1/betaTesters", params, next_url)

    def get_beta_tester(self, tester_id: str) -> Dict:
        """Get a single beta tester."""
        return self.get(f"/v1/betaTesters/{tester_id}")

    def create_beta_tester(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        group_ids: Optional[List[str]] = None,
    ) -> Dict:
        """Create a beta tester and add them to beta groups."""
        relationships = None
        if group_ids:
            relationships = {
                "betaGroups": _resource_identifiers("betaGroups", group_ids)
            }
        body = self.build_resource(
            "betaTesters",
            {
                "email": email,
                "firstName": first_name or None,
                "lastName": last_name or None,
            },
            relationships,
        )
        return self.post("/v1/betaTesters", body)

    def delete_beta_tester(self, tester_id: str) -> None:
        """Remove a beta tester from all apps."""
        self.delete(f"/v1/betaTesters/{tester_id}")

    def add_beta_tester_groups(self, tester_id: str, group_ids: List[str]) -> None:
        """Add a beta tester to beta groups."""
        self._request(
            "POST",
            f"/v1/betaTesters/{tester_id}/relationships/betaGroups",
            data=_resource_identifiers("betaGroups", group_ids),
        )

    def remove_beta_tester_groups(self, tester_id: str, group_ids: List[str]) -> None:
        """Remove a beta tester from beta groups."""
        self.delete(
            f"/v1/betaTesters/{tester_id}/relationships/betaGroups",
            _resource_identifiers("betaGroups", group_ids),
        )

    def create_beta_tester_invitation(self, app_id: str, tester_id: str) -> Dict:
        """Send a TestFlight invitation to a tester."""
        body = self.build_resource(
            "betaTesterInvitations",
            relationships={
                "app": _relationship("apps", app_id),
                "betaTester": _relationship("betaTesters", tester_id),
            },
        )
        return self.post("/v1/betaTesterInvitations", body)

    def get_beta_tester_usages_metrics(
        self,
        tester_id: Optional[str] = None,
        app_id: Optional[str] = None,
        period: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """Get TestFlight usage metrics for a tester within one app."""
        params: Dict[str, Any] = {}
        _set_param(params, "period", period)
        _set_param(params, "filter[apps]", app_id)
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/betaTesters/{tester_id}/metrics/betaTesterUsages", params, next_url
        )

    def get_beta_license_agreements(
        self,
        app_ids: Optional[List[str]] = None,
        fields: Optional[List[str]] = None,
        app_fields: Optional[List[str]] = None,
        include: Optional[List[str]] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List beta license agreements."""
        params: Dict[str, Any] = {}
        _set_param(params, "filter[app]", app_ids)
        _set_param(params, "fields[betaLicenseAgreements]", fields)
        _set_param(params, "fields[apps]", app_fields)
        _set_param(params, "include", include)
        _set_param(params, "limit", limit)
        return self.list_resources("/v1/betaLicenseAgreements", params, next_url)

    def get_beta_license_agreement(
        self,
        agreement_id: str,
        fields: Optional[List[str]] = None,
        app_fields: Optional[List[str]] = None,
        include: Optional[List[str]] = None,
    ) -> Dict:
        """Get a beta license agreement by ID."""
        params: Dict[str, Any] = {}
        _set_param(params, "fields[betaLicenseAgreements]", fields)
        _set_param(params, "fields[apps]", app_fields)
        _set_param(params, "include", include)
        return self.get(f"/v1/betaLicenseAgreements/{agreement_id}", params or None)

    def get_app_beta_license_agreement(
        self, app_id: str, fields: Optional[List[str]] = None
    ) -> Dict:
        """Get the beta license agreement of an app."""
        params: Dict[str, Any] = {}
        _set_param(params, "fields[betaLicenseAgreements]", fields)
        return self.get(f"/v1/apps/{app_id}/betaLicenseAgreement", params or None)

    def update_beta_license_agreement(self, agreement_id: str, agreement_text: str) -> Dict:
        """Replace the text of a beta license agreement."""
        body = self.build_resource(
            "betaLicenseAgreements",
            {"agreementText": agreement_text},
            resource_id=agreement_id,
        )
        return self.patch(f"/v1/betaLicenseAgreements/{agreement_id}", body)

    # ===== IN-APP PURCHASE METHODS =====

    def get_in_app_purchases(
        self,
        app_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List in-app purchases for an app."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/apps/{app_id}/inAppPurchasesV2", params, next_url
        )

    def get_in_app_purchase(self, iap_id: str) -> Dict:
        """Get a single in-app purchase."""
        return self.get(f"/v2/inAppPurchases/{iap_id}")

    def create_in_app_purchase(
        self, app_id: str, name: str, product_id: str, iap_type: str
    ) -> Dict:
        """Create an in-app purchase."""
        body = self.build_resource(
            "inAppPurchases",
            {"name": name, "productId": product_id, "inAppPurchaseType": iap_type},
            {"app": _relationship("apps", app_id)},
        )
        return self.post("/v2/inAppPurchases", body)

    def update_in_app_purchase(self, iap_id: str, attributes: Dict) -> Dict:
        """Update an in-app purchase."""
        body = self.build_resource("inAppPurchases", attributes, resource_id=iap_id)
        return self.patch(f"/v2/inAppPurchases/{iap_id}", body)

    def delete_in_app_purchase(self, iap_id: str) -> None:
        """Delete an in-app purchase."""
        self.delete(f"/v2/inAppPurchases/{iap_id}")

    def get_in_app_purchase_localizations(
        self,
        iap_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List localizations of an in-app purchase."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v2/inAppPurchases/{iap_id}/inAppPurchaseLocalizations", params, next_url
        )

    def create_in_app_purchase_localization(
        self,
        iap_id: str,
        locale: str,
        name: str,
        description: Optional[str] = None,
    ) -> Dict:
        """Create a localization for an in-app purchase."""
        body = self.build_resource(
            "inAppPurchaseLocalizations",
            {"locale": locale, "name": name, "description": description},
            {"inAppPurchaseV2": _relationship("inAppPurchases", iap_id)},
        )
        return self.post("/v1/inAppPurchaseLocalizations", body)

    def update_in_app_purchase_localization(
        self, localization_id: str, attributes: Dict
    ) -> Dict:
        """Update an in-app purchase localization."""
        body = self.build_resource(
            "inAppPurchaseLocalizations", attributes, resource_id=localization_id
        )
        return self.patch(f"/v1/inAppPurchaseLocalizations/{localization_id}", body)

    def delete_in_app_purchase_localization(self, localization_id: str) -> None:
        """Delete an in-app purchase localization."""
        self.delete(f"/v1/inAppPurchaseLocalizations/{localization_id}")

    def get_in_app_purchase_offer_codes(
        self,
        iap_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List offer codes of an in-app purchase."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v2/inAppPurchases/{iap_id}/offerCodes", params, next_url
        )

    def get_in_app_purchase_offer_code(self, offer_code_id: str) -> Dict:
        """Get a single in-app purchase offer code."""
        return self.get(f"/v1/inAppPurchaseOfferCodes/{offer_code_id}")

    def create_in_app_purchase_offer_code(
        self,
        iap_id: str,
        name: str,
        customer_eligibilities: List[str],
        prices: List[Dict[str, str]],
    ) -> Dict:
        """
        Create an in-app purchase offer code.

        Args:
            iap_id: In-app purchase ID
            name: Offer code name
            customer_eligibilities: NON_SPENDER, ACTIVE_SPENDER, CHURNED_SPENDER
            prices: Entries with ``territory`` and ``price_point`` keys

        Raises:
            ValidationError: If no price is given
        """
        if not prices:
            raise ValidationError("at least one price is required")

        included = []
        price_refs = []
        for index, price in enumerate(prices, start=1):
            local_id = f"${{local-price-{index}}}"
            price_refs.append({"type": "inAppPurchaseOfferPrices", "id": local_id})
            included.append(
                {
                    "type": "inAppPurchaseOfferPrices",
                    "id": local_id,
                    "relationships": {
                        "territory": _relationship("territories", price["territory"]),
                        "pricePoint": _relationship(
                            "inAppPurchasePricePoints", price["price_point"]
                        ),
                    },
                }
            )

        body = self.build_resource(
            "inAppPurchaseOfferCodes",
            {"name": name, "customerEligibilities": customer_eligibilities},
            {
                "inAppPurchase": _relationship("inAppPurchases", iap_id),
                "prices": {"data": price_refs},
            },
        )
        body["included"] = included
        return self.post("/v1/inAppPurchaseOfferCodes", body)

    def update_in_app_purchase_offer_code(self, offer_code_id: str, active: bool) -> Dict:
        """Activate or deactivate an in-app purchase offer code."""
        body = self.build_resource(
            "inAppPurchaseOfferCodes", {"active": active}, resource_id=offer_code_id
        )
        return self.patch(f"/v1/inAppPurchaseOfferCodes/{offer_code_id}", body)

    def get_in_app_purchase_price_points(
        self,
        iap_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List price points available to an in-app purchase."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v2/inAppPurchases/{iap_id}/pricePoints", params, next_url
        )

    def get_in_app_purchase_price_schedule(self, iap_id: str) -> Dict:
        """Get the price schedule of an in-app purchase."""
        return self.get(f"/v2/inAppPurchases/{iap_id}/iapPriceSchedule")

    def create_in_app_purchase_price_schedule(
        self,
        iap_id: str,
        base_territory: str,
        prices: List[Dict[str, str]],
    ) -> Dict:
        """
        Replace the manual prices of an in-app purchase.

        Args:
            iap_id: In-app purchase ID
            base_territory: Territory code the other prices derive from
            prices: Entries with a ``price_point`` key and optional
                ``start_date`` and ``end_date`` keys (YYYY-MM-DD)

        Raises:
            ValidationError: If no price is given
        """
        if not prices:
            raise ValidationError("at least one price is required")

        included = []
        price_refs = []
        for index, price in enumerate(prices, start=1):
            local_id = f"${{local-manual-price-{index}}}"
            price_refs.append({"type": "inAppPurchasePrices", "id": local_id})
            attributes = {}
            if price.get("start_date"):
                attributes["startDate"] = price["start_date"]
            if price.get("end_date"):
                attributes["endDate"] = price["end_date"]
            entry: Dict[str, Any] = {"type": "inAppPurchasePrices", "id": local_id}
            if attributes:
                entry["attributes"] = attributes
            entry["relationships"] = {
                "inAppPurchaseV2": _relationship("inAppPurchases", iap_id),
                "inAppPurchasePricePoint": _relationship(
                    "inAppPurchasePricePoints", price["price_point"]
                ),
            }
            included.append(entry)

        body = self.build_resource(
            "inAppPurchasePriceSchedules",
            relationships={
                "inAppPurchase": _relationship("inAppPurchases", iap_id),
                "baseTerritory": _relationship("territories", base_territory.upper()),
                "manualPrices": {"data": price_refs},
            },
        )
        body["included"] = included
        return self.post("/v1/inAppPurchasePriceSchedules", body)

    def get_in_app_purchase_availability(self, iap_id: str) -> Dict:
        """Get the territory availability of an in-app purchase."""
        return self.get(f"/v2/inAppPurchases/{iap_id}/inAppPurchaseAvailability")

    def create_in_app_purchase_availability(
        self,
        iap_id: str,
        territories: List[str],
        available_in_new_territories: bool,
    ) -> Dict:
        """Set the territories an in-app purchase is sold in."""
        body = self.build_resource(
            "inAppPurchaseAvailabilities",
            {"availableInNewTerritories": available_in_new_territories},
            {
                "inAppPurchase": _relationship("inAppPurchases", iap_id),
                "availableTerritories": _resource_identifiers(
                    "territories", [territory.upper() for territory in territories]
                ),
            },
        )
        return self.post("/v1/inAppPurchaseAvailabilities", body)

    def create_in_app_purchase_submission(self, iap_id: str) -> Dict:
        """Submit an in-app purchase for review."""
        body = self.build_resource(
            "inAppPurchaseSubmissions",
            relationships={"inAppPurchaseV2": _relationship("inAppPurchases", iap_id)},
        )
        return self.post("/v1/inAppPurchaseSubmissions", body)

    # ===== SUBSCRIPTION OFFER CODE METHODS =====

    def get_subscription_offer_code_one_time_codes(
        self,
        offer_code_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List one-time use code batches of a subscription offer code."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/subscriptionOfferCodes/{offer_code_id}/oneTimeUseCodes",
            params,
            next_url,
        )

    def get_subscription_offer_code(self, offer_code_id: str) -> Dict:
        """Get a subscription offer code."""
        return self.get(f"/v1/subscriptionOfferCodes/{offer_code_id}")

    def create_subscription_offer_code(
        self,
        subscription_id: str,
        attributes: Dict,
        prices: List[Dict[str, str]],
    ) -> Dict:
        """Create a subscription offer code with inline territory prices."""
        included = []
        price_refs = []
        for index, price in enumerate(prices, start=1):
            local_id = f"${{local-price-{index}}}"
            price_refs.append({"type": "subscriptionOfferCodePrices", "id": local_id})
            included.append(
                {
                    "type": "subscriptionOfferCodePrices",
                    "id": local_id,
                    "relationships": {
                        "territory": _relationship("territories", price["territory"]),
                        "subscriptionPricePoint": _relationship(
                            "subscriptionPricePoints", price["price_point"]
                        ),
                    },
                }
            )

        body = self.build_resource(
            "subscriptionOfferCodes",
            attributes,
            {
                "subscription": _relationship("subscriptions", subscription_id),
                "prices": {"data": price_refs},
            },
        )
        body["included"] = included
        return self.post("/v1/subscriptionOfferCodes", body)

    def update_subscription_offer_code(self, offer_code_id: str, active: bool) -> Dict:
        """Activate or deactivate a subscription offer code."""
        body = self.build_resource(
            "subscriptionOfferCodes", {"active": active}, resource_id=offer_code_id
        )
        return self.patch(f"/v1/subscriptionOfferCodes/{offer_code_id}", body)

    def get_subscription_offer_code_custom_codes(
        self,
        offer_code_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List custom codes of a subscription offer code."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/subscriptionOfferCodes/{offer_code_id}/customCodes", params, next_url
        )

    def get_subscription_offer_code_custom_code(self, custom_code_id: str) -> Dict:
        """Get a single custom code."""
        return self.get(f"/v1/subscriptionOfferCodeCustomCodes/{custom_code_id}")

    def create_subscription_offer_code_custom_code(
        self,
        offer_code_id: str,
        custom_code: str,
        number_of_codes: int,
        expiration_date: Optional[str] = None,
    ) -> Dict:
        """Create a custom code for a subscription offer code."""
        body = self.build_resource(
            "subscriptionOfferCodeCustomCodes",
            {
                "customCode": custom_code,
                "numberOfCodes": number_of_codes,
                "expirationDate": expiration_date,
            },
            {"offerCode": _relationship("subscriptionOfferCodes", offer_code_id)},
        )
        return self.post("/v1/subscriptionOfferCodeCustomCodes", body)

    def update_subscription_offer_code_custom_code(
        self, custom_code_id: str, active: bool
    ) -> Dict:
        """Activate or deactivate a custom code."""
        body = self.build_resource(
            "subscriptionOfferCodeCustomCodes",
            {"active": active},
            resource_id=custom_code_id,
        )
        return self.patch(
            f"/v1/subscriptionOfferCodeCustomCodes/{custom_code_id}", body
        )

    def get_subscription_offer_code_prices(
        self,
        offer_code_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List territory prices of a subscription offer code."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/subscriptionOfferCodes/{offer_code_id}/prices", params, next_url
        )

    # ===== MARKETPLACE WEBHOOK METHODS =====

    def get_marketplace_webhooks(
        self,
        fields: Optional[List[str]] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List marketplace webhooks."""
        params: Dict[str, Any] = {}
        _set_param(params, "fields[marketplaceWebhooks]", fields)
        _set_param(params, "limit", limit)
        return self.list_resources("/v1/marketplaceWebhooks", params, next_url)

    def get_marketplace_webhook(self, webhook_id: str) -> Dict:
        """Get a marketplace webhook."""
        return self.get(f"/v1/marketplaceWebhooks/{webhook_id}")

    def create_marketplace_webhook(self, endpoint_url: str, secret: str) -> Dict:
        """Create a marketplace webhook."""
        body = self.build_resource(
            "marketplaceWebhooks", {"endpointUrl": endpoint_url, "secret": secret}
        )
        return self.post("/v1/marketplaceWebhooks", body)

    def update_marketplace_webhook(
        self,
        webhook_id: str,
        endpoint_url: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> Dict:
        """Update the endpoint URL or secret of a marketplace webhook."""
        body = self.build_resource(
            "marketplaceWebhooks",
            {"endpointUrl": endpoint_url, "secret": secret},
            resource_id=webhook_id,
        )
        return self.patch(f"/v1/marketplaceWebhooks/{webhook_id}", body)

    def delete_marketplace_webhook(self, webhook_id: str) -> None:
        """Delete a marketplace webhook."""
        self.delete(f"/v1/marketplaceWebhooks/{webhook_id}")

    # ===== APP EVENT METHODS =====

    def get_app_events(
        self,
        app_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List in-app events of an app."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(f"/v1/apps/{app_id}/appEvents", params, next_url)

    def get_app_event(self, event_id: str) -> Dict:
        """Get an in-app event."""
        return self.get(f"/v1/appEvents/{event_id}")

    def create_app_event(self, app_id: str, attributes: Dict) -> Dict:
        """Create an in-app event."""
        body = self.build_resource(
            "appEvents", attributes, {"app": _relationship("apps", app_id)}
        )
        return self.post("/v1/appEvents", body)

    def update_app_event(self, event_id: str, attributes: Dict) -> Dict:
        """Update an in-app event."""
        body = self.build_resource("appEvents", attributes, resource_id=event_id)
        return self.patch(f"/v1/appEvents/{event_id}", body)

    def delete_app_event(self, event_id: str) -> None:
        """Delete an in-app event."""
        self.delete(f"/v1/appEvents/{event_id}")

    def get_app_event_localizations(
        self,
        event_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List localizations of an in-app event."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/appEvents/{event_id}/localizations", params, next_url
        )

    def get_app_event_localization(self, localization_id: str) -> Dict:
        """Get an in-app event localization."""
        return self.get(f"/v1/appEventLocalizations/{localization_id}")

    def create_app_event_localization(self, event_id: str, attributes: Dict) -> Dict:
        """Create an in-app event localization."""
        body = self.build_resource(
            "appEventLocalizations",
            attributes,
            {"appEvent": _relationship("appEvents", event_id)},
        )
        return self.post("/v1/appEventLocalizations", body)

    def update_app_event_localization(
        self, localization_id: str, attributes: Dict
    ) -> Dict:
        """Update an in-app event localization."""
        body = self.build_resource(
            "appEventLocalizations", attributes, resource_id=localization_id
        )
        return self.patch(f"/v1/appEventLocalizations/{localization_id}", body)

    def delete_app_event_localization(self, localization_id: str) -> None:
        """Delete an in-app event localization."""
        self.delete(f"/v1/appEventLocalizations/{localization_id}")

    # ===== REVIEW SUBMISSION METHODS =====

    def create_review_submission(self, app_id: str, platform: str) -> Dict:
        """Open a review submission for an app."""
        body = self.build_resource(
            "reviewSubmissions",
            {"platform": platform},
            {"app": _relationship("apps", app_id)},
        )
        return self.post("/v1/reviewSubmissions", body)

    def create_review_submission_item(self, submission_id: str, event_id: str) -> Dict:
        """Add an in-app event to a review submission."""
        body = self.build_resource(
            "reviewSubmissionItems",
            relationships={
                "reviewSubmission": _relationship("reviewSubmissions", submission_id),
                "appEvent": _relationship("appEvents", event_id),
            },
        )
        return self.post("/v1/reviewSubmissionItems", body)

    def submit_review_submission(self, submission_id: str) -> Dict:
        """Send a review submission to App Review."""
        body = self.build_resource(
            "reviewSubmissions", {"submitted": True}, resource_id=submission_id
        )
        return self.patch(f"/v1/reviewSubmissions/{submission_id}", body)

    # ===== AGREEMENT METHODS =====

    def get_end_user_license_agreement_territories(
        self,
        eula_id: Optional[str] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List territories covered by a custom end user license agreement."""
        params: Dict[str, Any] = {}
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/endUserLicenseAgreements/{eula_id}/territories", params, next_url
        )

    # ===== PASS TYPE ID METHODS =====

    def get_pass_type_ids(
        self,
        ids: Optional[List[str]] = None,
        identifiers: Optional[List[str]] = None,
        names: Optional[List[str]] = None,
        sort: Optional[str] = None,
        fields: Optional[List[str]] = None,
        certificate_fields: Optional[List[str]] = None,
        include: Optional[List[str]] = None,
        limit: Optional[int] = None,
        certificates_limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List pass type IDs."""
        params: Dict[str, Any] = {}
        _set_param(params, "filter[id]", ids)
        _set_param(params, "filter[identifier]", identifiers)
        _set_param(params, "filter[name]", names)
        _set_param(params, "sort", sort)
        _set_param(params, "fields[passTypeIds]", fields)
        _set_param(params, "fields[certificates]", certificate_fields)
        _set_param(params, "include", include)
        _set_param(params, "limit", limit)
        _set_param(params, "limit[certificates]", certificates_limit)
        return self.list_resources("/v1/passTypeIds", params, next_url)

    def get_pass_type_id(
        self,
        pass_type_id: str,
        fields: Optional[List[str]] = None,
        certificate_fields: Optional[List[str]] = None,
        include: Optional[List[str]] = None,
        certificates_limit: Optional[int] = None,
    ) -> Dict:
        """Get a pass type ID."""
        params: Dict[str, Any] = {}
        _set_param(params, "fields[passTypeIds]", fields)
        _set_param(params, "fields[certificates]", certificate_fields)
        _set_param(params, "include", include)
        _set_param(params, "limit[certificates]", certificates_limit)
        return self.get(f"/v1/passTypeIds/{pass_type_id}", params or None)

    def create_pass_type_id(self, identifier: str, name: str) -> Dict:
        """Register a pass type ID."""
        body = self.build_resource(
            "passTypeIds", {"identifier": identifier, "name": name}
        )
        return self.post("/v1/passTypeIds", body)

    def update_pass_type_id(self, pass_type_id: str, name: str) -> Dict:
        """Rename a pass type ID."""
        body = self.build_resource(
            "passTypeIds", {"name": name}, resource_id=pass_type_id
        )
        return self.patch(f"/v1/passTypeIds/{pass_type_id}", body)

    def delete_pass_type_id(self, pass_type_id: str) -> None:
        """Delete a pass type ID."""
        self.delete(f"/v1/passTypeIds/{pass_type_id}")

    def get_pass_type_id_certificates(
        self,
        pass_type_id: Optional[str] = None,
        fields: Optional[List[str]] = None,
        limit: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> Dict:
        """List certificates of a pass type ID."""
        params: Dict[str, Any] = {}
        _set_param(params, "fields[certificates]", fields)
        _set_param(params, "limit", limit)
        return self.list_resources(
            f"/v1/passTypeIds/{pass_type_id}/certificates", params, next_url
        )
