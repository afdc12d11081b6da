"""Unit tests for string helpers."""

import pytest

from gateway_control.utils import redact_url, truncate_string


@pytest.mark.parametrize("url,expected", [
    ("redis://:secret@cache:6379/0", "redis://***@cache:6379/0"),
    ("postgresql+asyncpg://svc:pw@db:5432/gw", "postgresql+asyncpg://***@db:5432/gw"),
    ("redis://cache:6379", "redis://cache:6379"),
])
def test_redact_url(url, expected):
    assert redact_url(url) == expected


def test_truncate_string():
    assert truncate_string("short", 10) == "short"
    assert truncate_string("a" * 20, 10) == "aaaaaaa..."
