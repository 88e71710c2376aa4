from __future__ import annotations

import json
import logging
import time
from hashlib import sha256
from typing import Protocol

from bech32 import bech32_decode, bech32_encode, convertbits
from coincurve import PrivateKey, PublicKeyXOnly

from draftweaver.models.event_contracts import LongformEvent, SignedEvent

LOGGER = logging.getLogger("draftweaver.signer")

NPUB_PREFIX = "npub"
NSEC_PREFIX = "nsec"


class SignerError(Exception):
    pass


class MissingSignerError(SignerError):
    def __init__(self, message: str = "You must be logged in to publish.") -> None:
        super().__init__(message)


class SigningIdentity(Protocol):
    @property
    def public_key(self) -> str:
        ...

    def encode_public_key(self) -> str:
        ...


class EventSigner(SigningIdentity, Protocol):
    def sign_event(self, event: LongformEvent, *, created_at: int | None = None) -> SignedEvent:
        ...


def npub_encode(public_key_hex: str) -> str:
    """Encode a 32-byte x-only public key (hex) as a bech32 `npub`."""
    return _bech32_encode_key(NPUB_PREFIX, public_key_hex)


def nsec_encode(secret_key_hex: str) -> str:
    return _bech32_encode_key(NSEC_PREFIX, secret_key_hex)


def nsec_decode(value: str) -> bytes:
    hrp, data = bech32_decode(value.strip().lower())
    if hrp != NSEC_PREFIX or data is None:
        raise SignerError("secret key is not a valid nsec string")
    decoded = convertbits(data, 5, 8, False)
    if decoded is None or len(decoded) != 32:
        raise SignerError("secret key is not a valid nsec string")
    return bytes(decoded)


def compute_event_id(
    *,
    pubkey: str,
    created_at: int,
    kind: int,
    tags: list[list[str]],
    content: str,
) -> str:
    serialized = json.dumps(
        [0, pubkey, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return sha256(serialized.encode("utf-8")).hexdigest()


def verify_signed_event(event: SignedEvent) -> bool:
    expected_id = compute_event_id(
        pubkey=event.pubkey,
        created_at=event.created_at,
        kind=event.kind,
        tags=event.tags,
        content=event.content,
    )
    if expected_id != event.id:
        return False
    try:
        public_key = PublicKeyXOnly(bytes.fromhex(event.pubkey))
        return bool(public_key.verify(bytes.fromhex(event.sig), bytes.fromhex(event.id)))
    except ValueError:
        return False


class LocalKeySigner:
    """Signs events with a locally held secp256k1 secret key."""

    def __init__(self, private_key: PrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key_xonly.format().hex()

    @classmethod
    def from_secret(cls, secret: str) -> LocalKeySigner:
        normalized = secret.strip()
        if normalized.lower().startswith(NSEC_PREFIX + "1"):
            raw = nsec_decode(normalized)
        else:
            try:
                raw = bytes.fromhex(normalized)
            except ValueError as exc:
                raise SignerError("secret key must be 64 hex characters or an nsec string") from exc
            if len(raw) != 32:
                raise SignerError("secret key must be 64 hex characters or an nsec string")
        try:
            return cls(PrivateKey(raw))
        except ValueError as exc:
            raise SignerError("secret key is outside the secp256k1 range") from exc

    @classmethod
    def generate(cls) -> LocalKeySigner:
        return cls(PrivateKey())

    @property
    def public_key(self) -> str:
        return self._public_key

    def encode_public_key(self) -> str:
        return npub_encode(self._public_key)

    def export_secret(self) -> str:
        return nsec_encode(self._private_key.secret.hex())

    def sign_event(self, event: LongformEvent, *, created_at: int | None = None) -> SignedEvent:
        timestamp = int(time.time()) if created_at is None else created_at
        tags = [list(tag) for tag in event.tags]
        event_id = compute_event_id(
            pubkey=self._public_key,
            created_at=timestamp,
            kind=event.kind,
            tags=tags,
            content=event.content,
        )
        signature = self._private_key.sign_schnorr(bytes.fromhex(event_id))
        LOGGER.debug("event signed event_id=%s kind=%s tags=%s", event_id, event.kind, len(tags))
        return SignedEvent(
            id=event_id,
            pubkey=self._public_key,
            created_at=timestamp,
            kind=event.kind,
            tags=tags,
            content=event.content,
            sig=signature.hex(),
        )


def _bech32_encode_key(prefix: str, key_hex: str) -> str:
    raw = bytes.fromhex(key_hex)
    if len(raw) != 32:
        raise ValueError(f"{prefix} keys must be 32 bytes")
    data = convertbits(raw, 8, 5)
    if data is None:
        raise ValueError(f"could not convert key to {prefix}")
    return bech32_encode(prefix, data)
