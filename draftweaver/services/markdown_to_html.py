from __future__ import annotations

import re
from html import escape

_FENCE_PREFIX = "```"
_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
_BULLET_PATTERN = re.compile(r"^-\s+(.*\S.*)$")
_NUMBERED_PATTERN = re.compile(r"^\d+\.\s+(.*\S.*)$")
_CODE_SPAN_PATTERN = re.compile(r"`([^`]+)`")
_BOLD_PATTERN = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_PATTERN = re.compile(r"\*([^*]+)\*")
_IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)\)")
_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_UNSAFE_SCHEMES: tuple[str, ...] = ("javascript:", "vbscript:")


def markdown_to_html(markdown_text: str) -> str:
    """Render the Markdown subset produced by the importer as preview HTML.

    Reserved characters are escaped before any markup is generated, so text in
    the draft can never inject tags of its own.
    """
    if not markdown_text:
        return ""

    escaped = escape(re.sub(r"\r\n?", "\n", markdown_text), quote=False)
    lines = escaped.split("\n")
    rendered: list[str] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        stripped = line.strip()

        if stripped.startswith(_FENCE_PREFIX):
            closing_index = _find_closing_fence(lines, index + 1)
            if closing_index is not None:
                code = "\n".join(lines[index + 1 : closing_index]).strip("\n")
                rendered.append(f"<pre><code>{code}</code></pre>")
                index = closing_index + 1
                continue

        if not stripped:
            rendered.append("")
            index += 1
            continue

        heading_match = _HEADING_PATTERN.match(line)
        if heading_match is not None:
            level = len(heading_match.group(1))
            text = render_inline(heading_match.group(2).strip())
            rendered.append(f"<h{level}>{text}</h{level}>")
            index += 1
            continue

        list_items, index_after = _collect_list(lines, index, _BULLET_PATTERN)
        if list_items:
            rendered.append(_render_list("ul", list_items))
            index = index_after
            continue

        list_items, index_after = _collect_list(lines, index, _NUMBERED_PATTERN)
        if list_items:
            rendered.append(_render_list("ol", list_items))
            index = index_after
            continue

        rendered.append(f"<p>{render_inline(stripped)}</p>")
        index += 1
    return "\n".join(rendered)


def render_inline(text: str) -> str:
    """Render inline code, emphasis, images and links in already escaped text."""
    segments = _CODE_SPAN_PATTERN.split(text)
    parts: list[str] = []
    for position, segment in enumerate(segments):
        # odd positions are code span bodies
        if position % 2 == 1:
            parts.append(f"<code>{segment}</code>")
            continue
        segment = _BOLD_PATTERN.sub(r"<strong>\1</strong>", segment)
        segment = _ITALIC_PATTERN.sub(r"<em>\1</em>", segment)
        segment = _IMAGE_PATTERN.sub(_image_replacement, segment)
        segment = _LINK_PATTERN.sub(_link_replacement, segment)
        parts.append(segment)
    return "".join(parts)


def _find_closing_fence(lines: list[str], start_index: int) -> int | None:
    for index in range(start_index, len(lines)):
        if lines[index].strip().startswith(_FENCE_PREFIX):
            return index
    return None


def _collect_list(
    lines: list[str],
    start_index: int,
    pattern: re.Pattern[str],
) -> tuple[list[str], int]:
    items: list[str] = []
    index = start_index
    while index < len(lines):
        match = pattern.match(lines[index])
        if match is None:
            break
        items.append(match.group(1).strip())
        index += 1
    return items, index


def _render_list(tag: str, items: list[str]) -> str:
    rendered_items = "".join(f"<li>{render_inline(item)}</li>" for item in items)
    return f"<{tag}>{rendered_items}</{tag}>"


def _image_replacement(match: re.Match[str]) -> str:
    alt, source = match.group(1), match.group(2)
    if _is_unsafe_url(source):
        return alt
    return f'<img src="{_attribute(source)}" alt="{_attribute(alt)}">'


def _link_replacement(match: re.Match[str]) -> str:
    text, href = match.group(1), match.group(2)
    if _is_unsafe_url(href):
        return text
    return f'<a href="{_attribute(href)}" target="_blank" rel="noreferrer">{text}</a>'


def _attribute(value: str) -> str:
    return value.replace('"', "&quot;")


def _is_unsafe_url(value: str) -> bool:
    return value.strip().lower().startswith(_UNSAFE_SCHEMES)
