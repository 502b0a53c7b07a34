"""UTC timestamp formatting shared by every table."""

from datetime import UTC, datetime

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(dt: datetime | None = None) -> str:
    """Render *dt* (default: now) in the UTC format stored in every table."""
    return (dt or datetime.now(tz=UTC)).astimezone(UTC).strftime(TIMESTAMP_FORMAT)
