"""Utilities for safe structured logging fields."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def safe_log_url(url: str | None) -> str:
    """Drop query string and fragment, which carry signed tokens on provider asset URLs."""
    text = (url or "").strip()
    if not text:
        return "url-missing"
    try:
        parts = urlsplit(text)
    except ValueError:
        return "url-invalid"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
