# The MIT License (MIT)
# Copyright © 2025 Entrius

from datetime import datetime, timezone
from typing import Optional


def parse_github_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO-8601 timestamp ("2024-01-15T10:30:00Z") into an aware UTC datetime.

    Raises:
        ValueError: if the value is not a valid timestamp. Callers treat this as fatal.
    """
    if not value:
        raise ValueError("Empty timestamp")
    parsed = datetime.fromisoformat(value.rstrip("Z"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_optional_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return parse_github_timestamp(value)


def format_github_timestamp(value: datetime) -> str:
    """Format a datetime for GitHub query parameters.

    GitHub does not accept fractional seconds, so they are dropped.
    """
    return value.astimezone(timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
