"""Timestamp helpers for the text timestamps stored in SQLite."""

from datetime import datetime
from typing import Optional


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way it is stored: local time, seconds precision."""
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.isoformat(timespec="seconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a stored timestamp into a naive local datetime.

    Accepts the current format as well as the shapes written by older
    app versions: "2024-01-05 10:00:00" and "2024-01-05T10:00:00.000Z".
    """
    if value is None or value == "":
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
