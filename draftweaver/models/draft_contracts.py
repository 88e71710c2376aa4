from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from draftweaver.services.identifiers import sanitize_identifier

SUMMARY_MAX_LENGTH = 280
SUMMARY_EDIT_MAX_LENGTH = 420


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized


def parse_labels(value: object) -> list[str]:
    """Accept a comma-separated string or a list of labels; drop empties."""
    if value is None:
        return []
    if isinstance(value, str):
        candidates: list[object] = list(value.split(","))
    elif isinstance(value, list | tuple):
        candidates = list(value)
    else:
        raise ValueError("labels must be a list of strings or a comma-separated string")
    labels: list[str] = []
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        normalized = candidate.strip()
        if normalized:
            labels.append(normalized)
    return labels


class DraftEdit(BaseModel):
    """A partial update coming from the editor; None leaves a field untouched."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    identifier: str | None = None
    summary: str | None = None
    body: str | None = None
    cover_image: str | None = None
    canonical_url: str | None = None
    labels: list[str] | str | None = None


class ArticleDraft(BaseModel):
    """The article being prepared for publication.

    `identifier` always satisfies the slug grammar: it is derived from the
    title (or the canonical URL) when missing and sanitized when given.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str = ""
    identifier: str = ""
    summary: str = ""
    body: str = ""
    original_body: str = ""
    cover_image: str | None = None
    canonical_url: str | None = None
    labels: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _derive_identifier(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if _normalize_optional_text(data.get("identifier")) is not None:
            return data
        title = data.get("title")
        canonical_url = data.get("canonical_url")
        source = _normalize_optional_text(title) or _normalize_optional_text(canonical_url)
        return {**data, "identifier": source or ""}

    @field_validator("title", "summary", "body", "original_body", mode="before")
    @classmethod
    def _normalize_text(cls, value: object) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("must be a string")
        return value

    @field_validator("identifier", mode="before")
    @classmethod
    def _sanitize_identifier(cls, value: object) -> str:
        return sanitize_identifier(value if isinstance(value, str) else None)

    @field_validator("cover_image", "canonical_url", mode="before")
    @classmethod
    def _normalize_urls(cls, value: object) -> str | None:
        return _normalize_optional_text(value)

    @field_validator("labels", mode="before")
    @classmethod
    def _normalize_labels(cls, value: object) -> list[str]:
        if isinstance(value, list):
            return [label for label in value if isinstance(label, str)]
        return parse_labels(value)

    @classmethod
    def from_source(
        cls,
        *,
        title: str,
        body: str,
        original_body: str = "",
        summary: str = "",
        cover_image: str | None = None,
        canonical_url: str | None = None,
        labels: list[str] | None = None,
    ) -> ArticleDraft:
        return cls.model_validate(
            {
                "title": title,
                "body": body,
                "original_body": original_body,
                "summary": summary[:SUMMARY_MAX_LENGTH],
                "cover_image": cover_image,
                "canonical_url": canonical_url,
                "labels": labels or [],
            }
        )

    def apply_edit(self, edit: DraftEdit) -> ArticleDraft:
        updates: dict[str, Any] = {}
        if edit.title is not None:
            updates["title"] = edit.title
            updates["identifier"] = sanitize_identifier(edit.title or self.identifier)
        if edit.identifier is not None:
            updates["identifier"] = sanitize_identifier(edit.identifier)
        if edit.summary is not None:
            updates["summary"] = edit.summary[:SUMMARY_EDIT_MAX_LENGTH]
        if edit.body is not None:
            updates["body"] = edit.body
        if edit.cover_image is not None:
            updates["cover_image"] = _normalize_optional_text(edit.cover_image)
        if edit.canonical_url is not None:
            updates["canonical_url"] = _normalize_optional_text(edit.canonical_url)
        if edit.labels is not None:
            updates["labels"] = parse_labels(edit.labels)
        if not updates:
            return self
        return ArticleDraft.model_validate({**self.model_dump(), **updates})

    @property
    def is_publishable(self) -> bool:
        return bool(self.identifier and self.title.strip() and self.body.strip())
