"""
Output formatting for command results.

Results are printed as JSON, as a plain-text table or as a markdown table.
Tables are rendered with pandas; markdown uses ``DataFrame.to_markdown``
which relies on tabulate.
"""

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, TextIO

import pandas as pd

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "table", "markdown", "md")
EMPTY_MESSAGE = "No results."


def default_output_format() -> str:
    """
    Return the default output format from ASC_DEFAULT_OUTPUT.

    Invalid values log a warning and fall back to ``json``.
    """
    value = os.environ.get("ASC_DEFAULT_OUTPUT", "").strip().lower()
    if not value:
        return "json"
    if value not in OUTPUT_FORMATS:
        logger.warning(
            f"invalid ASC_DEFAULT_OUTPUT {value!r}, expected json, table or "
            "markdown; using json"
        )
        return "json"
    return value


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return {key: _cell(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return ", ".join(
            json.dumps(item, separators=(",", ":")) if isinstance(item, dict) else str(_cell(item))
            for item in value
        )
    return str(value)


def _resource_row(item: Any) -> Dict[str, Any]:
    if not isinstance(item, dict):
        return {"value": _cell(item)}
    if "type" in item and ("attributes" in item or "id" in item):
        row: Dict[str, Any] = {"id": _cell(item.get("id")), "type": _cell(item.get("type"))}
        for key, value in (item.get("attributes") or {}).items():
            row[key] = _cell(value)
        return row
    return {key: _cell(value) for key, value in item.items()}


def extract_rows(data: Any) -> List[Dict[str, Any]]:
    """
    Turn a command result into table rows.

    JSON:API documents produce one row per resource with ``id``, ``type`` and
    the resource attributes. Other mappings produce a single row and lists
    produce one row per element.
    """
    if data is None:
        return []
    if isinstance(data, dict) and "data" in data:
        payload = data["data"]
        if payload is None:
            return []
        items = payload if isinstance(payload, list) else [payload]
        return [_resource_row(item) for item in items]
    if isinstance(data, dict):
        return [_resource_row(data)] if data else []
    if isinstance(data, (list, tuple)):
        return [_resource_row(item) for item in data]
    return [{"value": _cell(data)}]


def to_dataframe(data: Any) -> pd.DataFrame:
    """Build a DataFrame with nested mappings flattened to dotted columns."""
    rows = extract_rows(data)
    if not rows:
        return pd.DataFrame()
    return pd.json_normalize(rows, sep=".").fillna("")


def render(data: Any, fmt: str, pretty: bool = False) -> str:
    """
    Render a result in the requested format.

    Args:
        data: Result document
        fmt: ``json``, ``table``, ``markdown`` or ``md``
        pretty: Indent JSON output

    Returns:
        The rendered text without a trailing newline

    Raises:
        ValidationError: If the format is unknown or ``pretty`` is used with
            a table format
    """
    fmt = (fmt or "json").strip().lower()
    if fmt not in OUTPUT_FORMATS:
        raise ValidationError(f"unsupported format: {fmt}")

    if fmt == "json":
        if pretty:
            return json.dumps(data, indent=2)
        return json.dumps(data, separators=(",", ":"))

    if pretty:
        raise ValidationError("--pretty is only valid with JSON output")

    df = to_dataframe(data)
    if df.empty:
        return EMPTY_MESSAGE
    if fmt == "table":
        return df.to_string(index=False)
    return df.to_markdown(index=False)


def print_output(
    data: Any, fmt: str, pretty: bool = False, stream: Optional[TextIO] = None
) -> None:
    """Render a result and write it to ``stream`` (stdout by default)."""
    text = render(data, fmt, pretty)
    stream = stream or sys.stdout
    stream.write(text + "\n")
