from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

LONGFORM_KIND = 30023


def _default_tags() -> list[list[str]]:
    return []


class LongformEvent(BaseModel):
    """Unsigned NIP-23 long-form event as shown in the preview."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal[30023] = LONGFORM_KIND
    content: str = ""
    tags: list[list[str]] = Field(default_factory=_default_tags)

    def has_tag(self, name: str) -> bool:
        return any(tag and tag[0] == name for tag in self.tags)

    def with_tag(self, tag: list[str]) -> LongformEvent:
        return LongformEvent(kind=self.kind, content=self.content, tags=[*self.tags, list(tag)])

    def to_wire(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "content": self.content,
            "tags": [list(tag) for tag in self.tags],
        }


class SignedEvent(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=64, max_length=64)
    pubkey: str = Field(min_length=64, max_length=64)
    created_at: int = Field(ge=0)
    kind: int
    tags: list[list[str]] = Field(default_factory=_default_tags)
    content: str = ""
    sig: str = Field(min_length=128, max_length=128)

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }
