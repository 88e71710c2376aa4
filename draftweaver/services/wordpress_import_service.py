from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from html import unescape
from html.parser import HTMLParser
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.parse import quote, unquote, urlparse
from urllib.request import Request, urlopen

from draftweaver.models.draft_contracts import SUMMARY_MAX_LENGTH, ArticleDraft
from draftweaver.services.html_to_markdown import html_to_markdown
from draftweaver.telemetry import TelemetryClient

LOGGER = logging.getLogger("draftweaver.wordpress_import")

_WP_JSON_MARKER = re.compile(r"wp-json/")
_TAG_TAXONOMY = "post_tag"


class WordPressImportError(Exception):
    pass


class WordPressUrlError(WordPressImportError):
    pass


class WordPressPostNotFoundError(WordPressImportError):
    pass


@dataclass(frozen=True)
class ImportedPost:
    draft: ArticleDraft
    source_html: str
    api_url: str


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []

    def handle_data(self, data: str) -> None:
        self._parts.append(data)

    @property
    def text(self) -> str:
        return " ".join("".join(self._parts).split())


def extract_text(html_text: str) -> str:
    if not html_text:
        return ""
    extractor = _TextExtractor()
    extractor.feed(html_text)
    extractor.close()
    return extractor.text


def resolve_api_url(post_url: str) -> str:
    """Map a public post URL onto the WordPress REST endpoint that serves it."""
    normalized = post_url.strip()
    parsed = urlparse(normalized)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        raise WordPressUrlError("Please paste an absolute http(s) WordPress post URL.")

    if _WP_JSON_MARKER.search(parsed.path):
        return normalized

    segments = [segment for segment in parsed.path.rstrip("/").split("/") if segment]
    if not segments:
        raise WordPressUrlError(
            "Could not infer post slug from URL. Please paste a direct post URL."
        )
    slug = quote(unquote(segments[-1]), safe="")
    return f"{parsed.scheme}://{parsed.netloc}/wp-json/wp/v2/posts?slug={slug}&_embed=1"


def map_post_to_draft(post: dict[str, Any], *, source_url: str) -> ArticleDraft:
    title = unescape(_rendered(post.get("title")))
    content_html = _rendered(post.get("content"))
    summary = extract_text(_rendered(post.get("excerpt")))[:SUMMARY_MAX_LENGTH]
    link = post.get("link")
    canonical_url = link.strip() if isinstance(link, str) and link.strip() else source_url.strip()

    return ArticleDraft.from_source(
        title=title,
        body=html_to_markdown(content_html, canonical_url),
        original_body=content_html,
        summary=summary,
        cover_image=_cover_image(post),
        canonical_url=canonical_url,
        labels=_labels(post),
    )


class WordPressImportService:
    def __init__(
        self,
        *,
        telemetry: TelemetryClient | None = None,
        fetch_timeout_seconds: float = 12.0,
        user_agent: str = "draftweaver/0.1",
    ) -> None:
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._fetch_timeout_seconds = max(1.0, fetch_timeout_seconds)
        self._user_agent = user_agent.strip() or "draftweaver/0.1"

    def import_post(self, post_url: str) -> ImportedPost:
        api_url = resolve_api_url(post_url)
        try:
            with self._telemetry.timed("wordpress.import", host=urlparse(api_url).hostname) as span:
                post = _first_post(self._fetch_json(api_url))
                if post is None:
                    raise WordPressPostNotFoundError("No post found for that URL.")
                draft = map_post_to_draft(post, source_url=post_url)
                span["identifier"] = draft.identifier
                span["labels"] = draft.labels
        except WordPressImportError as exc:
            LOGGER.warning("wordpress import failed api_url=%s error=%s", api_url, exc)
            raise

        LOGGER.info(
            "wordpress post imported api_url=%s identifier=%s labels=%s",
            api_url,
            draft.identifier,
            len(draft.labels),
        )
        return ImportedPost(draft=draft, source_html=draft.original_body, api_url=api_url)

    def _fetch_json(self, api_url: str) -> object:
        request = Request(
            api_url,
            headers={
                "Accept": "application/json",
                "User-Agent": self._user_agent,
            },
            method="GET",
        )
        try:
            with urlopen(request, timeout=self._fetch_timeout_seconds) as response:
                charset = response.headers.get_content_charset() or "utf-8"
                raw = response.read().decode(charset, errors="replace")
        except HTTPError as exc:
            raise WordPressImportError(f"WordPress API responded with {int(exc.code)}") from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise WordPressImportError(
                f"Could not reach the WordPress API ({type(exc).__name__})."
            ) from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise WordPressImportError("WordPress API returned invalid JSON.") from exc


def _first_post(payload: object) -> dict[str, Any] | None:
    candidate: object = payload
    if isinstance(payload, list):
        items = cast(list[object], payload)
        candidate = items[0] if items else None
    if not isinstance(candidate, dict):
        return None
    raw_dict = cast(dict[object, object], candidate)
    return {key: value for key, value in raw_dict.items() if isinstance(key, str)}


def _rendered(value: object) -> str:
    if isinstance(value, dict):
        rendered = cast(dict[str, object], value).get("rendered")
        if isinstance(rendered, str):
            return rendered
    if isinstance(value, str):
        return value
    return ""


def _labels(post: dict[str, Any]) -> list[str]:
    raw_tags = post.get("tags")
    if isinstance(raw_tags, list):
        names = [tag for tag in cast(list[object], raw_tags) if isinstance(tag, str)]
        if names:
            return names

    labels: list[str] = []
    for term in _embedded_terms(post):
        if term.get("taxonomy") != _TAG_TAXONOMY:
            continue
        name = term.get("name")
        if isinstance(name, str) and name.strip():
            labels.append(unescape(name.strip()))
    return labels


def _embedded_terms(post: dict[str, Any]) -> list[dict[str, object]]:
    embedded = post.get("_embedded")
    if not isinstance(embedded, dict):
        return []
    groups = cast(dict[str, object], embedded).get("wp:term")
    if not isinstance(groups, list):
        return []
    terms: list[dict[str, object]] = []
    for group in cast(list[object], groups):
        if not isinstance(group, list):
            continue
        for term in cast(list[object], group):
            if isinstance(term, dict):
                terms.append(cast(dict[str, object], term))
    return terms


def _cover_image(post: dict[str, Any]) -> str | None:
    jetpack_image = post.get("jetpack_featured_media_url")
    if isinstance(jetpack_image, str) and jetpack_image.strip():
        return jetpack_image.strip()

    embedded = post.get("_embedded")
    if not isinstance(embedded, dict):
        return None
    media = cast(dict[str, object], embedded).get("wp:featuredmedia")
    if not isinstance(media, list) or not media:
        return None
    first = cast(list[object], media)[0]
    if not isinstance(first, dict):
        return None
    source_url = cast(dict[str, object], first).get("source_url")
    if isinstance(source_url, str) and source_url.strip():
        return source_url.strip()
    return None
