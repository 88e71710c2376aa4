from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Literal, Protocol

import structlog

TelemetryValue = bool | int | float | str | None

# article text and key material never leave the process through telemetry
_REDACTED_KEY_FRAGMENTS: tuple[str, ...] = (
    "body",
    "content",
    "html",
    "markdown",
    "nsec",
    "secret",
    "sig",
    "summary",
    "token",
)
_REDACTED = "[redacted]"
_MAX_VALUE_LENGTH = 160

LOGGER = logging.getLogger("draftweaver.telemetry")


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes each event as one structlog record on the `draftweaver.telemetry` logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("draftweaver.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **attributes)


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if self.enabled:
            self.sink.emit(event_name=event_name, attributes=scrub_attributes(attributes))

    @contextmanager
    def timed(self, operation: str, **attributes: Any) -> Iterator[dict[str, Any]]:
        """Emit `<operation>.start`, then `.finish` or `.error` with the elapsed time.

        Attributes stored in the yielded dict are added to the closing event.
        """
        self.emit(f"{operation}.start", **attributes)
        outcome: dict[str, Any] = {}
        started_at = perf_counter()
        try:
            yield outcome
        except Exception as exc:
            self.emit(
                f"{operation}.error",
                **{
                    **attributes,
                    **outcome,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "duration_ms": _elapsed_ms(started_at),
                },
            )
            raise
        self.emit(
            f"{operation}.finish",
            **{**attributes, **outcome, "duration_ms": _elapsed_ms(started_at)},
        )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())
    LOGGER.warning("unknown telemetry sink; telemetry disabled sink=%s", sink)
    return TelemetryClient.disabled()


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    scrubbed: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(fragment in key for fragment in _REDACTED_KEY_FRAGMENTS):
            scrubbed[key] = _REDACTED
        else:
            scrubbed[key] = _scrub_value(raw_value)
    return scrubbed


def _scrub_value(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, list | tuple | set | frozenset | dict):
        # only the size of a collection is reported
        return len(value)
    if not isinstance(value, str):
        return type(value).__name__
    compact = " ".join(value.split())
    if len(compact) > _MAX_VALUE_LENGTH:
        return compact[:_MAX_VALUE_LENGTH] + "..."
    return compact


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)
