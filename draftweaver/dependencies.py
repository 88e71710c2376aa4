from __future__ import annotations

import logging
from functools import lru_cache

from draftweaver.config import AppSettings, load_settings
from draftweaver.models.relay_contracts import RelayList
from draftweaver.services.relay_publisher import RelayPublisher
from draftweaver.services.signer import LocalKeySigner, SignerError
from draftweaver.services.wordpress_import_service import WordPressImportService
from draftweaver.telemetry import TelemetryClient, build_telemetry_client

LOGGER = logging.getLogger("draftweaver.dependencies")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_import_service() -> WordPressImportService:
    settings = get_settings()
    return WordPressImportService(
        telemetry=get_telemetry(),
        fetch_timeout_seconds=settings.wordpress_timeout_seconds,
        user_agent=settings.user_agent,
    )


@lru_cache(maxsize=1)
def get_relay_publisher() -> RelayPublisher:
    settings = get_settings()
    return RelayPublisher(
        telemetry=get_telemetry(),
        timeout_seconds=settings.publish_timeout_seconds,
        client=settings.client_tag,
    )


@lru_cache(maxsize=1)
def get_relay_list() -> RelayList:
    return RelayList(get_settings().relay_urls)


@lru_cache(maxsize=1)
def get_signer() -> LocalKeySigner | None:
    secret_key = get_settings().secret_key
    if secret_key is None:
        return None
    try:
        return LocalKeySigner.from_secret(secret_key)
    except SignerError as exc:
        # previews still work without an author tag; publish reports the missing signer
        LOGGER.warning("ignoring configured secret key error=%s", exc)
        return None


def reset_cached_dependencies() -> None:
    get_signer.cache_clear()
    get_relay_list.cache_clear()
    get_relay_publisher.cache_clear()
    get_import_service.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
