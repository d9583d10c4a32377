"""Input validation and plain-text table rendering for the CLI."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from config.constants import GITHUB_USERNAME_PATTERN, LOCATION_PATTERN


def validate_username(username: str | None) -> str | None:
    """Validate a GitHub username. Returns None if invalid."""
    if not username:
        return None
    username = username.strip()
    if GITHUB_USERNAME_PATTERN.match(username):
        return username
    return None


def validate_location(location: str | None) -> str | None:
    """Validate a location filter. Returns None if invalid."""
    if not location:
        return None
    location = location.strip()
    if location and LOCATION_PATTERN.match(location):
        return location
    return None


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def truncate(text: str, max_length: int = 60, suffix: str = "...") -> str:
    """Truncate text to max length."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def format_table(rows: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> str:
    """Render rows as an aligned text table with a header line."""
    cells = [[truncate(format_cell(row.get(col))) for col in columns] for row in rows]
    widths = [
        max([len(col)] + [len(r[i]) for r in cells])
        for i, col in enumerate(columns)
    ]
    header = " | ".join(col.ljust(widths[i]) for i, col in enumerate(columns))
    rule = "-+-".join("-" * w for w in widths)
    body = [" | ".join(r[i].ljust(widths[i]) for i in range(len(columns))) for r in cells]
    return "\n".join([header, rule, *body])
