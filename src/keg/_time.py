"""Timestamp formatting and lenient parsing for side files and indices."""

from __future__ import annotations

from datetime import UTC, date, datetime

# Layouts tried after ISO 8601 parsing fails, oldest on-disk formats last
_LAYOUTS = (
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def format_rfc3339(value: datetime) -> str:
    """Format as RFC 3339 with second precision, "Z" for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def parse_timestamp(raw: object) -> datetime | None:
    """Parse a timestamp leniently; unparseable or empty input gives None.

    Naive values are taken as UTC.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        value = datetime(raw.year, raw.month, raw.day)
    else:
        text = str(raw).strip()
        if not text:
            return None
        value = _parse_text(text)
        if value is None:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _parse_text(text: str) -> datetime | None:
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass
    for layout in _LAYOUTS:
        try:
            return datetime.strptime(iso, layout)
        except ValueError:
            continue
    return None
