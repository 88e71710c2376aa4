from __future__ import annotations

import re

IDENTIFIER_MAX_LENGTH = 128
IDENTIFIER_FALLBACK = "article"

_SEPARATOR_RUN = re.compile(r"[\W_]+")
_IDENTIFIER_PATTERN = re.compile(r"[^\W_]+(?:-[^\W_]+)*")


def sanitize_identifier(value: str | None) -> str:
    """Normalize arbitrary text into a `d` tag / slug identifier."""
    if not isinstance(value, str):
        return IDENTIFIER_FALLBACK
    normalized = _SEPARATOR_RUN.sub("-", value.lower().strip()).strip("-")
    # truncation can expose a hyphen at the cut
    normalized = normalized[:IDENTIFIER_MAX_LENGTH].rstrip("-")
    return normalized or IDENTIFIER_FALLBACK


def is_valid_identifier(value: str) -> bool:
    if not value or len(value) > IDENTIFIER_MAX_LENGTH:
        return False
    if value != value.lower():
        return False
    return _IDENTIFIER_PATTERN.fullmatch(value) is not None
