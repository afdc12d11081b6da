"""Utility helpers."""

from gateway_control.utils.strings import redact_url, truncate_string

__all__ = ["redact_url", "truncate_string"]
