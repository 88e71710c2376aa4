from __future__ import annotations

import re

_ENTITY_REPLACEMENTS: dict[str, str] = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}
_ENTITY_PATTERN = re.compile("|".join(re.escape(entity) for entity in _ENTITY_REPLACEMENTS))


def decode_html_entities(text: str) -> str:
    """Decode the five reserved HTML entities in a single pass.

    Each entity is matched once against the original text, so `&amp;lt;`
    becomes `&lt;` and is not decoded again.
    """
    if not text:
        return ""
    return _ENTITY_PATTERN.sub(lambda match: _ENTITY_REPLACEMENTS[match.group(0)], text)
