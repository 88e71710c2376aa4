from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from draftweaver.dependencies import reset_cached_dependencies
from draftweaver.main import create_app
from draftweaver.services.signer import LocalKeySigner

TEST_SECRET_KEY = "7f7ff03d123792d6ac594bfa67bf6d0c0ab55b6b1fdb6249303fe861f1ccba9a"


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:  # pyright: ignore[reportUnusedFunction]
    for name in (
        "DRAFTWEAVER_SECRET_KEY",
        "DRAFTWEAVER_DEFAULT_RELAYS",
        "DRAFTWEAVER_CLIENT_TAG",
        "DRAFTWEAVER_TELEMETRY_SINK",
        "DRAFTWEAVER_TELEMETRY_ENABLED",
        "DRAFTWEAVER_LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DRAFTWEAVER_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("DRAFTWEAVER_CLI_CONFIG", str(tmp_path / "cli-config.yaml"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setenv("DRAFTWEAVER_SECRET_KEY", TEST_SECRET_KEY)
    monkeypatch.setenv("DRAFTWEAVER_DEFAULT_RELAYS", "wss://relay.one,wss://relay.two")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    reset_cached_dependencies()


@pytest.fixture
def signer() -> LocalKeySigner:
    return LocalKeySigner.from_secret(TEST_SECRET_KEY)
