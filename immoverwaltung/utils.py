"""Utility functions for immoverwaltung."""
import re
import uuid
from datetime import date, datetime
from typing import Optional, Union

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def new_uuid() -> str:
    """Generate a new UUID string for primary keys."""
    return str(uuid.uuid4())


def is_valid_uuid(value) -> bool:
    """
    Check whether a value is a UUID string.

    Examples:
        >>> is_valid_uuid('3f2b8c1e-4d5a-4e6f-9a0b-1c2d3e4f5a6b')
        True
        >>> is_valid_uuid('temp-1718000000000')
        False
        >>> is_valid_uuid(None)
        False
    """
    if not isinstance(value, str):
        return False
    return bool(UUID_PATTERN.match(value))


def parse_datum(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an ISO calendar date.

    Accepts date objects, ISO date strings and ISO datetime strings
    (the time part is dropped). Empty values return None.

    Args:
        value: Date value as submitted by a form or read from the store

    Returns:
        date or None

    Raises:
        ValueError: If the value is not a valid ISO date

    Examples:
        >>> parse_datum('2024-03-31')
        datetime.date(2024, 3, 31)
        >>> parse_datum('') is None
        True
        >>> parse_datum('2024-03-31T22:00:00.000Z')
        datetime.date(2024, 3, 31)
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    value = str(value).strip()
    if not value:
        return None

    if 'T' in value:
        # JavaScript toISOString() endet auf Z, fromisoformat kennt das erst ab 3.11
        if value.endswith('Z'):
            value = value[:-1] + '+00:00'
        return datetime.fromisoformat(value).date()
    return date.fromisoformat(value)


def format_datum(value: Optional[date]) -> Optional[str]:
    """Format a date as ISO string, None stays None."""
    if value is None:
        return None
    return value.isoformat()
