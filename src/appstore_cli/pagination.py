"""
Pagination helpers for App Store Connect list endpoints.

List endpoints return JSON:API documents whose ``links.next`` member points at
the following page. :func:`paginate_all` walks those links and concatenates
every page into a single document.
"""

import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

from .exceptions import AppStoreConnectError, PaginationError

logger = logging.getLogger(__name__)

API_HOST = "api.appstoreconnect.apple.com"

FetchNext = Callable[[str], Optional[Dict[str, Any]]]


def validate_next_url(next_url: Optional[str]) -> None:
    """
    Check that a pagination URL is safe to send credentials to.

    Relative URLs are always accepted. Absolute URLs must use https and
    point at the App Store Connect API host.

    Raises:
        PaginationError: If the URL is absolute and untrusted
    """
    if not next_url:
        return
    if not next_url.startswith(("http://", "https://")):
        return

    parsed = urlparse(next_url)
    if parsed.netloc != API_HOST:
        raise PaginationError(
            f"rejected pagination URL from untrusted host {parsed.netloc!r} "
            f"(expected {API_HOST!r})"
        )
    if parsed.scheme != "https":
        raise PaginationError(
            f"rejected pagination URL with insecure scheme {parsed.scheme!r} "
            "(expected https)"
        )


def _is_page(page: Any) -> bool:
    return isinstance(page, dict) and isinstance(page.get("data"), list)


def _next_link(page: Dict[str, Any]) -> str:
    links = page.get("links") or {}
    if not isinstance(links, dict):
        return ""
    return (links.get("next") or "").strip()


def paginate_all(
    first_page: Optional[Dict[str, Any]], fetch_next: FetchNext
) -> Optional[Dict[str, Any]]:
    """
    Follow ``links.next`` from the first page and aggregate all pages.

    Args:
        first_page: The already fetched first page, or None
        fetch_next: Callable that fetches the page behind a ``links.next`` URL

    Returns:
        A document ``{"data": [...], "links": {}}`` holding every resource in
        page order (plus ``included`` when any page carried it), or None when
        ``first_page`` is None

    Raises:
        PaginationError: If a page has an unsupported shape, a next link
            repeats, or fetching a page fails. ``result`` on the error holds
            the pages aggregated so far.
    """
    if first_page is None:
        return None
    if not _is_page(first_page):
        raise PaginationError("unsupported response type for pagination")

    result: Dict[str, Any] = {"data": [], "links": {}}
    seen = set()
    page = first_page
    page_number = 1

    while True:
        result["data"].extend(page["data"])
        if page.get("included"):
            result.setdefault("included", []).extend(page["included"])

        next_url = _next_link(page)
        if not next_url:
            break

        page_number += 1
        if next_url in seen:
            raise PaginationError(
                f"page {page_number}: detected repeated pagination URL",
                result=result,
            )
        seen.add(next_url)

        logger.debug(f"paginate_all: fetching page {page_number}")
        try:
            next_page = fetch_next(next_url)
        except AppStoreConnectError as e:
            raise PaginationError(
                f"page {page_number}: {e}",
                status_code=e.status_code,
                code=e.code,
                result=result,
            ) from e

        if not _is_page(next_page):
            raise PaginationError(
                f"page {page_number}: unexpected response type", result=result
            )
        page = next_page

    logger.debug(
        f"paginate_all: aggregated {len(result['data'])} items from "
        f"{page_number} pages"
    )
    return result
