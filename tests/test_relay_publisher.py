from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import pytest

from draftweaver.models.event_contracts import LongformEvent
from draftweaver.models.relay_contracts import RelayList
from draftweaver.services.relay_publisher import (
    ALL_RELAYS_FAILED_MESSAGE,
    NO_WRITE_RELAYS_MESSAGE,
    RelayPublisher,
    RelayPublishError,
)
from draftweaver.services.signer import LocalKeySigner, MissingSignerError, verify_signed_event
from draftweaver.telemetry import TelemetryClient


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


class _FakeConnection:
    def __init__(self, relay: _FakeRelays, url: str) -> None:
        self._relay = relay
        self._url = url
        self._replies: list[str] = []

    async def __aenter__(self) -> _FakeConnection:
        behavior = self._relay.behaviors.get(self._url, "accept")
        if behavior == "refuse":
            raise OSError("connection refused")
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def send(self, message: str) -> None:
        frame = json.loads(message)
        self._relay.sent[self._url] = frame
        event_id = frame[1]["id"]
        behavior = self._relay.behaviors.get(self._url, "accept")
        if behavior == "accept":
            self._replies = [
                json.dumps(["NOTICE", "hello"]),
                json.dumps(["OK", "0" * 64, False, "other event"]),
                json.dumps(["OK", event_id, True, ""]),
            ]
        elif behavior == "reject":
            self._replies = [json.dumps(["OK", event_id, False, "blocked: spam"])]

    async def recv(self) -> str:
        if self._replies:
            return self._replies.pop(0)
        await asyncio.sleep(60)
        return ""


class _FakeRelays:
    def __init__(self, behaviors: dict[str, str] | None = None) -> None:
        self.behaviors = behaviors or {}
        self.sent: dict[str, list[Any]] = {}
        self.open_timeouts: list[float] = []

    def connect(self, url: str, *, open_timeout: float) -> _FakeConnection:
        self.open_timeouts.append(open_timeout)
        return _FakeConnection(self, url)


def _event() -> LongformEvent:
    return LongformEvent(content="Hello", tags=[["d", "hello"], ["title", "Hello"]])


def test_publish_signs_and_sends_to_write_relays(signer: LocalKeySigner) -> None:
    relays = _FakeRelays()
    sink = _CaptureSink()
    publisher = RelayPublisher(
        telemetry=TelemetryClient(enabled=True, sink=sink),
        timeout_seconds=2,
        connect=relays.connect,
    )
    relay_list = RelayList(["wss://a.example", "wss://b.example", "wss://c.example"])
    relay_list.toggle("wss://c.example", "write")

    report = publisher.publish_blocking(_event(), signer=signer, relays=relay_list)

    assert report.accepted == ("wss://a.example", "wss://b.example")
    assert report.failed == ()
    assert set(relays.sent) == {"wss://a.example", "wss://b.example"}
    frame = relays.sent["wss://a.example"]
    assert frame[0] == "EVENT"
    assert frame[1]["id"] == report.event.id
    assert ["client", "draftweaver"] in report.event.tags
    assert verify_signed_event(report.event)
    assert relays.open_timeouts == [2, 2]
    assert [name for name, _ in sink.events] == ["event.publish.start", "event.publish.finish"]


def test_partial_failure_still_succeeds(signer: LocalKeySigner) -> None:
    relays = _FakeRelays({"wss://down.example": "refuse", "wss://strict.example": "reject"})
    publisher = RelayPublisher(connect=relays.connect)

    report = publisher.publish_blocking(
        _event(),
        signer=signer,
        relays=["wss://up.example", "wss://down.example", "wss://strict.example"],
    )

    assert report.accepted == ("wss://up.example",)
    failures = {outcome.url: outcome.message for outcome in report.failed}
    assert failures == {
        "wss://down.example": "error:OSError",
        "wss://strict.example": "blocked: spam",
    }


def test_silent_relays_time_out_into_one_aggregated_error(signer: LocalKeySigner) -> None:
    relays = _FakeRelays({"wss://slow.example": "silent", "wss://down.example": "refuse"})
    sink = _CaptureSink()
    publisher = RelayPublisher(
        telemetry=TelemetryClient(enabled=True, sink=sink),
        timeout_seconds=0.1,
        connect=relays.connect,
    )

    with pytest.raises(RelayPublishError) as exc_info:
        publisher.publish_blocking(
            _event(),
            signer=signer,
            relays=["wss://slow.example", "wss://down.example"],
        )

    assert str(exc_info.value) == ALL_RELAYS_FAILED_MESSAGE
    assert exc_info.value.failures == {
        "wss://slow.example": "timeout",
        "wss://down.example": "error:OSError",
    }
    assert sink.events[-1][0] == "event.publish.error"


def test_publish_requires_write_relays(signer: LocalKeySigner) -> None:
    relay_list = RelayList(["wss://a.example"])
    relay_list.toggle("wss://a.example", "write")
    publisher = RelayPublisher(connect=_FakeRelays().connect)

    with pytest.raises(RelayPublishError, match="No write-enabled relays") as exc_info:
        publisher.publish_blocking(_event(), signer=signer, relays=relay_list)
    assert str(exc_info.value) == NO_WRITE_RELAYS_MESSAGE


def test_publish_requires_signer() -> None:
    publisher = RelayPublisher(connect=_FakeRelays().connect)

    with pytest.raises(MissingSignerError):
        publisher.publish_blocking(_event(), signer=None, relays=["wss://a.example"])


def test_existing_client_tag_is_kept(signer: LocalKeySigner) -> None:
    relays = _FakeRelays()
    publisher = RelayPublisher(client="draftweaver", connect=relays.connect)
    event = _event().with_tag(["client", "custom"])

    report = publisher.publish_blocking(event, signer=signer, relays=["wss://a.example"])

    assert [tag for tag in report.event.tags if tag[0] == "client"] == [["client", "custom"]]
