from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, cast

import websockets
from websockets.exceptions import WebSocketException

from draftweaver.models.event_contracts import LongformEvent, SignedEvent
from draftweaver.models.relay_contracts import RelayList
from draftweaver.services.signer import EventSigner, MissingSignerError
from draftweaver.services.tag_mapper import CLIENT_NAME, ensure_client_tag
from draftweaver.telemetry import TelemetryClient

LOGGER = logging.getLogger("draftweaver.relay_publisher")

NO_WRITE_RELAYS_MESSAGE = (
    "No write-enabled relays configured. Please add wss://jumble.social or another relay."
)
ALL_RELAYS_FAILED_MESSAGE = (
    "Could not publish to any configured relays. "
    "Check that wss://jumble.social (or your selected relays) are reachable and write-enabled."
)


class RelayPublishError(Exception):
    def __init__(self, message: str, *, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures = dict(failures or {})


@dataclass(frozen=True)
class RelayOutcome:
    url: str
    accepted: bool
    message: str


@dataclass(frozen=True)
class PublishReport:
    event: SignedEvent
    accepted: tuple[str, ...]
    failed: tuple[RelayOutcome, ...]


class RelayPublisher:
    """Publishes signed events to relays over NIP-01 websockets.

    Every relay gets its own bounded wait; the publish counts as successful
    as soon as one relay acknowledges the event with `OK ... true`.
    """

    def __init__(
        self,
        *,
        telemetry: TelemetryClient | None = None,
        timeout_seconds: float = 8.0,
        client: str = CLIENT_NAME,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._timeout_seconds = max(0.1, timeout_seconds)
        self._client = client
        self._connect = connect if connect is not None else websockets.connect

    @property
    def client(self) -> str:
        return self._client

    async def publish(
        self,
        event: LongformEvent,
        *,
        signer: EventSigner | None,
        relays: RelayList | Iterable[str],
    ) -> PublishReport:
        if signer is None:
            raise MissingSignerError()
        signed = signer.sign_event(ensure_client_tag(event, self._client))
        relay_urls = relays.write_urls() if isinstance(relays, RelayList) else list(relays)
        return await self.publish_signed(signed, relay_urls)

    async def publish_signed(self, signed: SignedEvent, relay_urls: Iterable[str]) -> PublishReport:
        urls = list(dict.fromkeys(relay_urls))
        if not urls:
            raise RelayPublishError(NO_WRITE_RELAYS_MESSAGE)

        with self._telemetry.timed(
            "event.publish",
            event_id=signed.id,
            relay_count=len(urls),
        ) as span:
            outcomes = await asyncio.gather(*(self._send_to_relay(url, signed) for url in urls))
            accepted = tuple(outcome.url for outcome in outcomes if outcome.accepted)
            failed = tuple(outcome for outcome in outcomes if not outcome.accepted)
            span["accepted_count"] = len(accepted)
            span["failed_count"] = len(failed)
            for outcome in failed:
                LOGGER.warning(
                    "relay did not accept event relay=%s event_id=%s reason=%s",
                    outcome.url,
                    signed.id,
                    outcome.message,
                )
            if not accepted:
                raise RelayPublishError(
                    ALL_RELAYS_FAILED_MESSAGE,
                    failures={outcome.url: outcome.message for outcome in failed},
                )

        LOGGER.info(
            "event published event_id=%s accepted=%s failed=%s",
            signed.id,
            len(accepted),
            len(failed),
        )
        return PublishReport(event=signed, accepted=accepted, failed=failed)

    def publish_blocking(
        self,
        event: LongformEvent,
        *,
        signer: EventSigner | None,
        relays: RelayList | Iterable[str],
    ) -> PublishReport:
        return asyncio.run(self.publish(event, signer=signer, relays=relays))

    async def _send_to_relay(self, url: str, signed: SignedEvent) -> RelayOutcome:
        try:
            return await asyncio.wait_for(
                self._exchange(url, signed),
                timeout=self._timeout_seconds,
            )
        except TimeoutError:
            return RelayOutcome(url=url, accepted=False, message="timeout")
        except (OSError, WebSocketException, ValueError) as exc:
            return RelayOutcome(url=url, accepted=False, message=f"error:{type(exc).__name__}")

    async def _exchange(self, url: str, signed: SignedEvent) -> RelayOutcome:
        async with self._connect(url, open_timeout=self._timeout_seconds) as connection:
            await connection.send(json.dumps(["EVENT", signed.to_wire()], ensure_ascii=False))
            while True:
                raw = await connection.recv()
                message = json.loads(raw)
                if not isinstance(message, list) or not message:
                    continue
                frame = cast(list[object], message)
                if frame[0] == "NOTICE":
                    LOGGER.info("relay notice relay=%s notice=%s", url, frame[1:])
                    continue
                if frame[0] != "OK" or len(frame) < 3 or frame[1] != signed.id:
                    continue
                note = frame[3] if len(frame) > 3 and isinstance(frame[3], str) else ""
                return RelayOutcome(url=url, accepted=frame[2] is True, message=note)
