"""
Wall of Apps generator.

Renders ``docs/wall-of-apps.json`` into a markdown table, writes it to
``docs/generated/app-wall.md`` and syncs it into ``README.md`` between the
``WALL-OF-APPS`` markers.
"""

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

START_MARKER = "<!-- WALL-OF-APPS:START -->"
END_MARKER = "<!-- WALL-OF-APPS:END -->"
GENERATED_HEADER = (
    "<!-- Generated from docs/wall-of-apps.json by asc-wallgen. -->\n\n"
)

PLATFORM_DISPLAY_NAMES = {
    "IOS": "iOS",
    "MAC_OS": "macOS",
    "TV_OS": "tvOS",
    "VISION_OS": "visionOS",
}

PLATFORM_ALIASES = {
    "ios": "IOS",
    "macos": "MAC_OS",
    "mac_os": "MAC_OS",
    "tvos": "TV_OS",
    "tv_os": "TV_OS",
    "visionos": "VISION_OS",
    "vision_os": "VISION_OS",
}


@dataclass
class WallEntry:
    app: str
    link: str
    creator: str
    platform: List[str]


@dataclass
class WallResult:
    """Paths written by :func:`generate`."""

    generated_path: Path
    readme_path: Path


def normalize_platform(value: str) -> Optional[str]:
    """Map a platform spelling such as ``iOS`` or ``vision-os`` to its API value."""
    key = value.strip().lower().replace("-", "_").replace(" ", "")
    return PLATFORM_ALIASES.get(key)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_entry(entry: Dict[str, Any], index: int) -> WallEntry:
    """
    Validate and normalize one source entry.

    Args:
        entry: Raw JSON object from the source file
        index: 1-based position used in error messages

    Raises:
        ValidationError: If a field is missing or invalid
    """
    if not isinstance(entry, dict):
        raise ValidationError(f"entry #{index}: expected an object")

    app = _text(entry.get("app"))
    link = _text(entry.get("link"))
    creator = _text(entry.get("creator"))
    if not app:
        raise ValidationError(f"entry #{index}: 'app' is required")
    if not link:
        raise ValidationError(f"entry #{index}: 'link' is required")
    if not creator:
        raise ValidationError(f"entry #{index}: 'creator' is required")

    parsed = urlparse(link)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"entry #{index}: 'link' must be a valid http/https URL")

    raw_platforms = entry.get("platform")
    if not isinstance(raw_platforms, list) or not raw_platforms:
        raise ValidationError(f"entry #{index}: 'platform' must be a non-empty array")

    platforms: List[str] = []
    for value in raw_platforms:
        token = _text(value)
        normalized = normalize_platform(token)
        if normalized is None:
            allowed = ", ".join(PLATFORM_DISPLAY_NAMES.values())
            raise ValidationError(
                f'entry #{index}: invalid platform "{token}" (allowed: {allowed})'
            )
        if normalized not in platforms:
            platforms.append(normalized)

    return WallEntry(app=app, link=link, creator=creator, platform=platforms)


def read_entries(source_path: Path) -> List[WallEntry]:
    """
    Read, validate and sort the wall entries.

    Entries are sorted case-insensitively by app name, then by link.

    Raises:
        ValidationError: If the file is missing, empty, malformed or has no entries
    """
    try:
        raw = source_path.read_text(encoding="utf-8")
    except OSError:
        raise ValidationError(f"missing source file: {source_path}")
    if not raw.strip():
        raise ValidationError(f"source file is empty: {source_path}")

    try:
        parsed = json.loads(raw)
    except ValueError as e:
        raise ValidationError(f"invalid JSON in {source_path}: {e}")
    if not isinstance(parsed, list):
        raise ValidationError(f"invalid JSON in {source_path}: expected an array")
    if not parsed:
        raise ValidationError(f"source file has no entries: {source_path}")

    entries = [normalize_entry(item, index) for index, item in enumerate(parsed, start=1)]
    entries.sort(key=lambda entry: (entry.app.lower(), entry.link.lower()))
    return entries


def escape_cell(value: str) -> str:
    """Escape a markdown table cell."""
    return value.replace("|", "\\|").replace("\n", " ").strip()


def build_snippet(entries: List[WallEntry]) -> str:
    """Render the Wall of Apps section as markdown."""
    lines = [
        "## Wall of Apps",
        "",
        "Apps shipping with asc-cli. "
        "[Add yours via PR](https://github.com/rudrankriyam/App-Store-Connect-CLI/pulls)!",
        "",
        "| App | Link | Creator | Platform |",
        "|:----|:-----|:--------|:---------|",
    ]
    for entry in entries:
        platforms = ", ".join(PLATFORM_DISPLAY_NAMES.get(p, p) for p in entry.platform)
        lines.append(
            f"| {escape_cell(entry.app)} | [Open]({entry.link}) | "
            f"{escape_cell(entry.creator)} | {escape_cell(platforms)} |"
        )
    return "\n".join(lines) + "\n"


def write_generated(snippet: str, generated_path: Path) -> None:
    generated_path.parent.mkdir(parents=True, exist_ok=True)
    generated_path.write_text(GENERATED_HEADER + snippet, encoding="utf-8")


def sync_readme(snippet: str, readme_path: Path) -> None:
    """
    Replace the README section between the WALL-OF-APPS markers.

    Raises:
        ValidationError: If the README is missing or lacks the markers
    """
    try:
        content = readme_path.read_text(encoding="utf-8")
    except OSError:
        raise ValidationError(f"missing README file: {readme_path}")

    start = content.find(START_MARKER)
    end = content.find(END_MARKER)
    if start == -1 or end == -1 or end < start:
        raise ValidationError(
            "README markers not found. Expected WALL-OF-APPS markers in README.md"
        )

    before = content[:start]
    after = content[end + len(END_MARKER):]
    readme_path.write_text(
        before + START_MARKER + "\n" + snippet + END_MARKER + after, encoding="utf-8"
    )


def generate(repo_root: Union[str, Path]) -> WallResult:
    """
    Regenerate the Wall of Apps docs for a repository.

    Args:
        repo_root: Repository root holding ``docs/`` and ``README.md``

    Returns:
        The generated snippet path and the synced README path
    """
    root = Path(repo_root)
    source_path = root / "docs" / "wall-of-apps.json"
    generated_path = root / "docs" / "generated" / "app-wall.md"
    readme_path = root / "README.md"

    entries = read_entries(source_path)
    snippet = build_snippet(entries)
    write_generated(snippet, generated_path)
    sync_readme(snippet, readme_path)
    logger.debug(f"wallgen: rendered {len(entries)} entries")

    return WallResult(generated_path=generated_path, readme_path=readme_path)


def main() -> int:
    """Entry point for ``asc-wallgen``; runs against the working directory."""
    try:
        result = generate(Path(".").resolve())
    except (ValidationError, OSError) as e:
        print(e, file=sys.stderr)
        return 1
    print(f"Updated {result.generated_path}")
    print(f"Synced snippet markers in {result.readme_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
