from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

_SCHEME_PREFIX = re.compile(r"^[A-Za-z0-9+.\-]+:")


@dataclass(frozen=True)
class UrlBase:
    origin: str
    base_path: str | None


def has_scheme(reference: str) -> bool:
    return _SCHEME_PREFIX.match(reference) is not None


def derive_base(base_url: str | None) -> UrlBase | None:
    """Split a document address into its origin and directory path.

    Returns None when the address cannot serve as a base (no scheme, no host,
    invalid port).
    """
    if not isinstance(base_url, str) or not base_url.strip():
        return None
    try:
        parsed = urlparse(base_url.strip())
        port = parsed.port
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    host = parsed.hostname
    if not scheme or not host:
        return None

    netloc = host
    if ":" in host:
        netloc = f"[{host}]"
    if port is not None:
        netloc = f"{netloc}:{port}"

    path = parsed.path or "/"
    if not path.endswith("/"):
        path = path[: path.rfind("/") + 1] or "/"
    return UrlBase(origin=f"{scheme}://{netloc}", base_path=path)


def absolutize(
    reference: str,
    origin: str | None = None,
    base_path: str | None = None,
) -> str:
    """Resolve a possibly relative reference against a known origin and base path."""
    if not reference or has_scheme(reference):
        return reference
    if not origin:
        return reference
    # `//host/x` is treated as root-relative like any other leading slash
    if reference.startswith("/"):
        return f"{origin}{reference}"
    if base_path:
        return f"{origin}{base_path}{reference}"
    return f"{origin.rstrip('/')}/{reference}"


def resolve_reference(reference: str, base_url: str | None) -> str:
    base = derive_base(base_url)
    if base is None:
        return reference
    return absolutize(reference, base.origin, base.base_path)
