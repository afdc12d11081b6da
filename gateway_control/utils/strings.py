"""String manipulation utilities."""

import re


def redact_url(url: str) -> str:
    """Redact credentials from a URL for safe logging.

    redis://:secret@host:6379/0  →  redis://***@host:6379/0
    postgresql+asyncpg://u:p@db/x →  postgresql+asyncpg://***@db/x
    redis://host:6379            →  redis://host:6379  (no change)
    """
    return re.sub(r"://[^@]+@", "://***@", url)


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate string to max length with suffix."""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
