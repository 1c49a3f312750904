"""Normalize provider result payloads to a single asset URL.

Providers return results in several shapes depending on the model. Each
shape we understand is a named variant below, probed in priority order; the
first variant that yields a non-empty string wins.

====================  ==========================================
Variant               Shape
====================  ==========================================
``bare``              ``"https://..."``
``video.url``         ``{"video": {"url": "https://..."}}``
``video_url``         ``{"video_url": "https://..."}``
``url``               ``{"url": "https://..."}``
``audio.url``         ``{"audio": {"url": "https://..."}}``
``output_url``        ``{"output_url": "https://..."}``
``output[0]``         ``{"output": ["https://..."]}`` or
                      ``{"output": [{"url": "https://..."}]}``
``file``              ``{"file": "https://..."}``
``href``              ``{"href": "https://..."}``
====================  ==========================================
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from clipsa.errors import UnresolvedAsset


def _as_url(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _nested_url(key: str) -> Callable[[dict[str, Any]], str | None]:
    def probe(output: dict[str, Any]) -> str | None:
        nested = output.get(key)
        if isinstance(nested, dict):
            return _as_url(nested.get("url"))
        return None

    return probe


def _field(key: str) -> Callable[[dict[str, Any]], str | None]:
    def probe(output: dict[str, Any]) -> str | None:
        return _as_url(output.get(key))

    return probe


def _first_output(output: dict[str, Any]) -> str | None:
    items = output.get("output")
    if not isinstance(items, list) or not items:
        return None
    first = items[0]
    if isinstance(first, dict):
        return _as_url(first.get("url"))
    return _as_url(first)


OUTPUT_VARIANTS: tuple[tuple[str, Callable[[dict[str, Any]], str | None]], ...] = (
    ("video.url", _nested_url("video")),
    ("video_url", _field("video_url")),
    ("url", _field("url")),
    ("audio.url", _nested_url("audio")),
    ("output_url", _field("output_url")),
    ("output[0]", _first_output),
    ("file", _field("file")),
    ("href", _field("href")),
)


def match_output_variant(output: Any) -> tuple[str, str] | None:
    """Return ``(variant_name, url)`` for the first matching shape, or None."""
    if isinstance(output, str):
        return ("bare", output) if output else None
    if not isinstance(output, dict):
        return None
    for name, probe in OUTPUT_VARIANTS:
        url = probe(output)
        if url is not None:
            return name, url
    return None


def resolve_output_url(output: Any) -> str | None:
    match = match_output_variant(output)
    return match[1] if match is not None else None


def require_output_url(output: Any, *, context: str) -> str:
    url = resolve_output_url(output)
    if url is None:
        raise UnresolvedAsset(f"Could not resolve output URL for {context}")
    return url


__all__ = ["OUTPUT_VARIANTS", "match_output_variant", "require_output_url", "resolve_output_url"]
