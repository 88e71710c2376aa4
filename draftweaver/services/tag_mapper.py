from __future__ import annotations

import logging

from draftweaver.models.draft_contracts import ArticleDraft
from draftweaver.models.event_contracts import LongformEvent
from draftweaver.services.identifiers import sanitize_identifier
from draftweaver.services.signer import SigningIdentity

LOGGER = logging.getLogger("draftweaver.tag_mapper")

ALT_TEXT = "NIP-23 long-form article mapped from WordPress (markdown content)"
CLIENT_NAME = "draftweaver"


def derive_identifier(title: str | None, canonical_url: str | None = None) -> str:
    source = (title or "").strip() or (canonical_url or "").strip()
    return sanitize_identifier(source)


def build_tags(
    draft: ArticleDraft,
    signer: SigningIdentity | None = None,
    *,
    client: str = CLIENT_NAME,
) -> list[list[str]]:
    """Map a draft onto NIP-23 tags.

    The emission order is stable and consumers may rely on it: `d`, `title`,
    `summary`, `image`, `r`, one `t` per label, `alt`, `client` and finally
    `author` when the signer's key can be encoded.
    """
    tags: list[list[str]] = [["d", draft.identifier]]
    if draft.title:
        tags.append(["title", draft.title])
    if draft.summary:
        tags.append(["summary", draft.summary])
    if draft.cover_image:
        tags.append(["image", draft.cover_image])
    if draft.canonical_url:
        tags.append(["r", draft.canonical_url])

    for label in draft.labels:
        normalized = label.strip()
        if normalized:
            tags.append(["t", normalized.lower()])

    tags.append(["alt", ALT_TEXT])
    tags.append(["client", client])

    author = _encode_author(signer)
    if author is not None:
        tags.append(["author", author])
    return tags


def build_event(
    draft: ArticleDraft,
    signer: SigningIdentity | None = None,
    *,
    client: str = CLIENT_NAME,
) -> LongformEvent:
    return LongformEvent(content=draft.body, tags=build_tags(draft, signer, client=client))


def ensure_client_tag(event: LongformEvent, client: str = CLIENT_NAME) -> LongformEvent:
    if event.has_tag("client"):
        return event
    return event.with_tag(["client", client])


def _encode_author(signer: SigningIdentity | None) -> str | None:
    if signer is None:
        return None
    try:
        return signer.encode_public_key()
    except Exception:
        LOGGER.debug("author tag omitted; signer public key could not be encoded", exc_info=True)
        return None
