"""Prompt-input sanitizing for user- and scrape-sourced strings."""

from __future__ import annotations

import re

MAX_NAME_LENGTH = 100
MAX_LOCATION_LENGTH = 50

_UNSAFE_CHARS = re.compile(r"[\"'`<>]")
_NEWLINES = re.compile(r"[\r\n]+")
_WHITESPACE = re.compile(r"\s+")
_UUID_V4 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def sanitize_for_prompt(text: str | None, max_length: int = 200) -> str:
    """Strip quotes, backticks, angle brackets and newlines, then cap the length."""
    if not text:
        return ""
    cleaned = _UNSAFE_CHARS.sub("", text)
    cleaned = _NEWLINES.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:max_length]


def sanitize_restaurant_name(name: str | None) -> str:
    return sanitize_for_prompt(name, MAX_NAME_LENGTH)


def sanitize_location(location: str | None) -> str:
    return sanitize_for_prompt(location, MAX_LOCATION_LENGTH)


def format_location(city: str, state: str | None = None) -> str:
    return f"{city}, {state}" if state else city


def is_valid_uuid(value: str | None) -> bool:
    return bool(value) and _UUID_V4.match(value) is not None


def slugify(value: str) -> str:
    """``"Tex-Mex & BBQ"`` -> ``"tex-mex-bbq"``."""
    return _SLUG_INVALID.sub("-", value.lower()).strip("-")
