from __future__ import annotations

import re
from dataclasses import dataclass, field
from html.parser import HTMLParser

from draftweaver.services.entities import decode_html_entities
from draftweaver.services.url_resolver import UrlBase, absolutize, derive_base

_VOID_TAGS: frozenset[str] = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)
_PARAGRAPH_CLOSERS: frozenset[str] = frozenset(
    {"p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "pre", "div", "table", "blockquote"}
)
_LIST_TAGS: frozenset[str] = frozenset({"ul", "ol"})
_HEADING_LEVELS: dict[str, int] = {f"h{level}": level for level in range(1, 7)}
_FENCE = "```"
# any ampersand that does not start one of the five decoded entities is literal text
_BARE_AMPERSAND = re.compile(r"&(?!(?:amp|lt|gt|quot|#39);)")


@dataclass
class _Element:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[_Element | str] = field(default_factory=list)

    def text_content(self) -> str:
        parts: list[str] = []
        for child in self.children:
            if isinstance(child, str):
                parts.append(child)
            else:
                parts.append(child.text_content())
        return "".join(parts)

    def element_children(self) -> list[_Element]:
        return [child for child in self.children if isinstance(child, _Element)]


class _HtmlTreeBuilder(HTMLParser):
    """Builds a lenient element tree from an HTML fragment.

    Character references are kept verbatim in text nodes so that entity
    decoding happens exactly once, at render time. The input must already
    have its bare ampersands escaped (see `_protect_ampersands`), which makes
    every reference reaching the handlers a `;`-terminated one.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.root = _Element(tag="#root")
        self._stack: list[_Element] = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag_name = tag.lower()
        self._close_implicit(tag_name)
        element = _Element(
            tag=tag_name,
            attrs={name.lower(): (value or "") for name, value in attrs},
        )
        self._stack[-1].children.append(element)
        if tag_name not in _VOID_TAGS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag_name = tag.lower()
        self._stack[-1].children.append(
            _Element(
                tag=tag_name,
                attrs={name.lower(): (value or "") for name, value in attrs},
            )
        )

    def handle_endtag(self, tag: str) -> None:
        tag_name = tag.lower()
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag == tag_name:
                del self._stack[index:]
                return

    def handle_data(self, data: str) -> None:
        self._stack[-1].children.append(data)

    def handle_entityref(self, name: str) -> None:
        self._stack[-1].children.append(f"&{name};")

    def handle_charref(self, name: str) -> None:
        self._stack[-1].children.append(f"&#{name};")

    def _close_implicit(self, tag_name: str) -> None:
        if tag_name in _PARAGRAPH_CLOSERS and self._stack[-1].tag == "p":
            self._stack.pop()
            return
        if tag_name != "li":
            return
        for index in range(len(self._stack) - 1, 0, -1):
            current = self._stack[index].tag
            if current in _LIST_TAGS:
                return
            if current == "li":
                del self._stack[index:]
                return


class _MarkdownRenderer:
    def __init__(self, base: UrlBase | None) -> None:
        self._base = base

    def render(self, root: _Element) -> str:
        return self._render_children(root.children, inline=False)

    def _render_children(self, children: list[_Element | str], *, inline: bool) -> str:
        parts: list[str] = []
        after_break = False
        for child in children:
            if isinstance(child, str):
                text = decode_html_entities(child)
                if after_break:
                    text = text.lstrip()
                    if not text:
                        continue
                parts.append(text)
                after_break = False
                continue
            parts.append(self._render_element(child, inline=inline))
            after_break = child.tag == "br"
        return "".join(parts)

    def _render_element(self, element: _Element, *, inline: bool) -> str:
        tag = element.tag
        if tag in {"b", "strong"}:
            return _wrap_inline(self._render_children(element.children, inline=inline), "**")
        if tag in {"i", "em"}:
            return _wrap_inline(self._render_children(element.children, inline=inline), "*")
        if tag == "pre":
            return self._render_pre(element, inline=inline)
        if tag == "code":
            code = decode_html_entities(element.text_content())
            return f"`{code}`" if code else ""
        if tag in _HEADING_LEVELS:
            text = _collapse_whitespace(self._render_children(element.children, inline=True))
            if not text:
                return ""
            if inline:
                return f" {text} "
            return f"\n\n{'#' * _HEADING_LEVELS[tag]} {text}\n\n"
        if tag == "p":
            text = self._render_children(element.children, inline=inline).strip()
            if not text:
                return ""
            return f" {text} " if inline else f"\n\n{text}\n\n"
        if tag == "br":
            return " " if inline else "\n"
        if tag in _LIST_TAGS:
            return self._render_list(element, inline=inline)
        if tag == "img":
            return self._render_image(element)
        if tag == "a":
            return self._render_link(element, inline=inline)
        return self._render_children(element.children, inline=inline)

    def _render_pre(self, element: _Element, *, inline: bool) -> str:
        significant = [
            child
            for child in element.children
            if not (isinstance(child, str) and not child.strip())
        ]
        if len(significant) != 1 or not isinstance(significant[0], _Element):
            return self._render_children(element.children, inline=inline)
        code_element = significant[0]
        if code_element.tag != "code":
            return self._render_children(element.children, inline=inline)
        code = decode_html_entities(code_element.text_content()).strip("\n")
        if inline:
            return f"`{_collapse_whitespace(code)}`" if code.strip() else ""
        return f"\n\n{_FENCE}\n{code}\n{_FENCE}\n\n"

    def _render_list(self, element: _Element, *, inline: bool) -> str:
        ordered = element.tag == "ol"
        items: list[str] = []
        for child in element.element_children():
            if child.tag != "li":
                continue
            # nested blocks are flattened into the item text
            text = _collapse_whitespace(self._render_children(child.children, inline=True))
            if not text:
                continue
            marker = f"{len(items) + 1}." if ordered else "-"
            items.append(f"{marker} {text}")
        if not items:
            return ""
        if inline:
            return " " + " ".join(item.split(" ", 1)[1] for item in items) + " "
        return "\n\n" + "\n".join(items) + "\n\n"

    def _render_image(self, element: _Element) -> str:
        source = element.attrs.get("src", "").strip()
        if not source:
            return ""
        alt = element.attrs.get("alt", "")
        return f"![{alt}]({self._resolve(source)})"

    def _render_link(self, element: _Element, *, inline: bool) -> str:
        text = self._render_children(element.children, inline=inline)
        href = element.attrs.get("href", "").strip()
        if not href:
            return text
        return f"[{text}]({self._resolve(href)})"

    def _resolve(self, reference: str) -> str:
        if self._base is None:
            return reference
        return absolutize(reference, self._base.origin, self._base.base_path)


def html_to_markdown(html_text: str, base_url: str | None = None) -> str:
    """Convert a WordPress-style HTML fragment into Markdown.

    Best effort only: headings, paragraphs, emphasis, code, lists, images and
    links are mapped; every other tag is dropped and its text kept inline.
    Relative image and link targets are resolved against `base_url`.
    """
    if not html_text:
        return ""

    builder = _HtmlTreeBuilder()
    builder.feed(_protect_ampersands(re.sub(r"\r\n?", "\n", html_text)))
    builder.close()

    markdown_text = _MarkdownRenderer(derive_base(base_url)).render(builder.root)
    return _tidy_markdown(markdown_text)


def _protect_ampersands(html_text: str) -> str:
    # HTMLParser would otherwise read `AT&T` as a reference and unescape
    # attribute values with the full HTML5 entity table
    return _BARE_AMPERSAND.sub("&amp;", html_text)


def _wrap_inline(text: str, marker: str) -> str:
    stripped = text.strip()
    if not stripped:
        return text
    leading = text[: len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()) :]
    return f"{leading}{marker}{stripped}{marker}{trailing}"


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def _tidy_markdown(markdown_text: str) -> str:
    lines: list[str] = []
    in_code_block = False
    for line in markdown_text.split("\n"):
        if line == _FENCE:
            in_code_block = not in_code_block
            lines.append(line)
            continue
        if in_code_block:
            lines.append(line)
            continue
        if not line.strip():
            if lines and lines[-1] == "":
                continue
            lines.append("")
            continue
        lines.append(line)
    return "\n".join(lines).strip()
