from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from draftweaver.models.draft_contracts import ArticleDraft, DraftEdit
from draftweaver.models.relay_contracts import RelayAccess, RelayDescriptor


class ImportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(max_length=2048)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        normalized = value.strip()
        if any(ord(character) < 32 for character in normalized):
            raise ValueError("url contains control characters")
        parsed = urlparse(normalized)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("url must be an absolute http/https URL")
        if parsed.username or parsed.password:
            raise ValueError("url must not contain credentials")
        return normalized


class ImportResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    draft: ArticleDraft
    source_html: str
    api_url: str


class EditRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    draft: ArticleDraft
    edit: DraftEdit


class ConvertRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    html: str
    base_url: str | None = None


class ConvertResponse(BaseModel):
    markdown: str


class RenderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    markdown: str


class RenderResponse(BaseModel):
    html: str


class DraftRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    draft: ArticleDraft


class PreviewResponse(BaseModel):
    event: dict[str, Any]
    html: str
    publishable: bool


class PublishResponse(BaseModel):
    event: dict[str, Any]
    accepted_relays: list[str]
    failed_relays: dict[str, str]


class RelayAddRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    read: bool = True
    write: bool = True


class RelayToggleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    access: RelayAccess


class RelayListResponse(BaseModel):
    relays: list[RelayDescriptor]
    changed: bool = False
