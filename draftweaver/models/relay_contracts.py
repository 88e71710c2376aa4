from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Literal
from urllib.parse import urlparse, urlunparse

from pydantic import BaseModel, ConfigDict, field_validator

RelayAccess = Literal["read", "write"]


def normalize_relay_url(value: str | None) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized or any(ord(character) < 32 for character in normalized):
        return None
    try:
        parsed = urlparse(normalized)
        port = parsed.port
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    if scheme not in {"ws", "wss"}:
        return None
    host = (parsed.hostname or "").lower()
    if not host:
        return None
    netloc = host if port is None else f"{host}:{port}"
    path = parsed.path.rstrip("/")
    return urlunparse((scheme, netloc, path, "", parsed.query, ""))


class RelayDescriptor(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    read: bool = True
    write: bool = True

    @field_validator("url", mode="before")
    @classmethod
    def _validate_url(cls, value: object) -> str:
        normalized = normalize_relay_url(value if isinstance(value, str) else None)
        if normalized is None:
            raise ValueError("relay url must be an absolute ws:// or wss:// URL")
        return normalized


class RelayList:
    """User-managed relay list; it never drops below one relay."""

    def __init__(self, relays: Iterable[RelayDescriptor | str]) -> None:
        self._relays: list[RelayDescriptor] = []
        for relay in relays:
            descriptor = relay if isinstance(relay, RelayDescriptor) else RelayDescriptor(url=relay)
            if self.get(descriptor.url) is None:
                self._relays.append(descriptor)
        if not self._relays:
            raise ValueError("relay list requires at least one relay")

    def __iter__(self) -> Iterator[RelayDescriptor]:
        return iter(list(self._relays))

    def __len__(self) -> int:
        return len(self._relays)

    @property
    def relays(self) -> list[RelayDescriptor]:
        return list(self._relays)

    def get(self, url: str) -> RelayDescriptor | None:
        normalized = normalize_relay_url(url)
        for relay in self._relays:
            if relay.url == normalized:
                return relay
        return None

    def add(self, url: str, *, read: bool = True, write: bool = True) -> RelayDescriptor:
        existing = self.get(url)
        if existing is not None:
            return existing
        descriptor = RelayDescriptor(url=url, read=read, write=write)
        self._relays.append(descriptor)
        return descriptor

    def remove(self, url: str) -> bool:
        if len(self._relays) <= 1:
            return False
        existing = self.get(url)
        if existing is None:
            return False
        self._relays = [relay for relay in self._relays if relay.url != existing.url]
        return True

    def toggle(self, url: str, access: RelayAccess) -> RelayDescriptor | None:
        existing = self.get(url)
        if existing is None:
            return None
        if access == "read":
            updated = existing.model_copy(update={"read": not existing.read})
        elif access == "write":
            updated = existing.model_copy(update={"write": not existing.write})
        else:
            raise ValueError(f"unsupported relay access: {access}")
        self._relays = [updated if relay.url == existing.url else relay for relay in self._relays]
        return updated

    def write_urls(self) -> list[str]:
        return [relay.url for relay in self._relays if relay.write]
