from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from click.testing import CliRunner

from draftweaver.cli.main import main
from draftweaver.services import relay_publisher
from draftweaver.services.signer import LocalKeySigner
from draftweaver.services.wordpress_import_service import WordPressImportService

POST_URL = "https://blog.example.com/2024/05/hello-world/"
TEST_SECRET_KEY = "7f7ff03d123792d6ac594bfa67bf6d0c0ab55b6b1fdb6249303fe861f1ccba9a"


class _AcceptingConnection:
    def __init__(self, sent: list[str]) -> None:
        self._sent = sent
        self._reply = ""

    async def __aenter__(self) -> _AcceptingConnection:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def send(self, message: str) -> None:
        self._sent.append(message)
        self._reply = json.dumps(["OK", json.loads(message)[1]["id"], True, ""])

    async def recv(self) -> str:
        return self._reply


def _write_draft(path: Path, **overrides: Any) -> Path:
    draft: dict[str, Any] = {
        "title": "My Post",
        "identifier": "my-post",
        "summary": "",
        "body": "Hello **there**",
        "labels": ["Nostr"],
    }
    draft.update(overrides)
    path.write_text(yaml.safe_dump(draft), encoding="utf-8")
    return path


def _config_data(tmp_path: Path) -> dict[str, Any]:
    return yaml.safe_load((tmp_path / "cli-config.yaml").read_text(encoding="utf-8"))


def test_convert_prints_markdown(tmp_path: Path) -> None:
    html_file = tmp_path / "post.html"
    html_file.write_text('<h2>Title</h2><p><img src="a.png" alt="A"></p>', encoding="utf-8")

    result = CliRunner().invoke(
        main,
        ["convert", str(html_file), "--base-url", "https://x.com/blog/post"],
    )

    assert result.exit_code == 0
    assert result.output.strip() == "## Title\n\n![A](https://x.com/blog/a.png)"


def test_import_writes_draft_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        WordPressImportService,
        "_fetch_json",
        lambda _self, _api_url: [
            {
                "title": {"rendered": "Hello World"},
                "content": {"rendered": "<p>Body <em>text</em></p>"},
                "link": POST_URL,
                "tags": ["Nostr"],
            }
        ],
    )
    output = tmp_path / "drafts" / "hello.yaml"

    result = CliRunner().invoke(main, ["import", POST_URL, "-o", str(output)])

    assert result.exit_code == 0
    saved = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert saved["identifier"] == "hello-world"
    assert saved["body"] == "Body *text*"
    assert saved["canonical_url"] == POST_URL
    assert saved["labels"] == ["Nostr"]


def test_import_failure_exits_non_zero() -> None:
    result = CliRunner().invoke(main, ["import", "https://blog.example.com/"])

    assert result.exit_code == 1
    assert "Could not infer post slug" in result.output


def test_edit_updates_draft_in_place(tmp_path: Path) -> None:
    draft_path = _write_draft(tmp_path / "draft.yaml")

    result = CliRunner().invoke(
        main,
        ["edit", str(draft_path), "--title", "Renamed Post", "--labels", "a, b"],
    )

    assert result.exit_code == 0
    saved = yaml.safe_load(draft_path.read_text(encoding="utf-8"))
    assert saved["title"] == "Renamed Post"
    assert saved["identifier"] == "renamed-post"
    assert saved["labels"] == ["a", "b"]


def test_preview_prints_event_and_html(tmp_path: Path) -> None:
    draft_path = _write_draft(tmp_path / "draft.yaml")

    event_result = CliRunner().invoke(main, ["preview", str(draft_path)])
    assert event_result.exit_code == 0
    assert '"kind": 30023' in event_result.output
    assert '"my-post"' in event_result.output

    html_result = CliRunner().invoke(main, ["preview", str(draft_path), "--html"])
    assert html_result.exit_code == 0
    assert html_result.output.strip() == "<p>Hello <strong>there</strong></p>"


def test_publish_without_key_fails(tmp_path: Path) -> None:
    draft_path = _write_draft(tmp_path / "draft.yaml")

    result = CliRunner().invoke(main, ["publish", str(draft_path)])

    assert result.exit_code == 1
    assert "You must be logged in to publish." in result.output


def test_publish_with_key_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    key_file = tmp_path / "nostr.key"
    key_file.write_text(TEST_SECRET_KEY + "\n", encoding="utf-8")
    (tmp_path / "cli-config.yaml").write_text(
        yaml.safe_dump(
            {
                "relays": [{"url": "wss://relay.one", "read": True, "write": True}],
                "secret_key_path": str(key_file),
            }
        ),
        encoding="utf-8",
    )
    sent: list[str] = []
    monkeypatch.setattr(
        relay_publisher.websockets,
        "connect",
        lambda _url, *, open_timeout: _AcceptingConnection(sent),
    )
    draft_path = _write_draft(tmp_path / "draft.yaml")

    result = CliRunner().invoke(main, ["publish", str(draft_path)])

    assert result.exit_code == 0
    assert "Published my-post" in result.output
    assert len(sent) == 1
    frame = json.loads(sent[0])
    assert frame[0] == "EVENT"
    assert frame[1]["kind"] == 30023


def test_publish_rejects_incomplete_draft(tmp_path: Path) -> None:
    draft_path = _write_draft(tmp_path / "draft.yaml", body="")

    result = CliRunner().invoke(main, ["publish", str(draft_path)])

    assert result.exit_code == 1


def test_relay_commands_persist_config(tmp_path: Path) -> None:
    runner = CliRunner()

    listed = runner.invoke(main, ["relays", "list"])
    assert listed.exit_code == 0
    assert "jumble.social" in listed.output

    added = runner.invoke(main, ["relays", "add", "wss://relay.example", "--no-read"])
    assert added.exit_code == 0
    relays = _config_data(tmp_path)["relays"]
    assert relays[-1] == {"url": "wss://relay.example", "read": False, "write": True}
    assert len(relays) == 4

    toggled = runner.invoke(main, ["relays", "toggle", "wss://relay.example", "write"])
    assert toggled.exit_code == 0
    assert _config_data(tmp_path)["relays"][-1]["write"] is False

    removed = runner.invoke(main, ["relays", "remove", "wss://jumble.social"])
    assert removed.exit_code == 0
    urls = [relay["url"] for relay in _config_data(tmp_path)["relays"]]
    assert "wss://jumble.social" not in urls

    assert runner.invoke(main, ["relays", "add", "https://nope"]).exit_code == 1
    assert runner.invoke(main, ["relays", "toggle", "wss://missing", "read"]).exit_code == 1


def test_keys_generate_configures_publishing_key(tmp_path: Path) -> None:
    runner = CliRunner()

    generated = runner.invoke(main, ["keys", "generate"])

    assert generated.exit_code == 0
    key_file = tmp_path / "nostr.key"
    assert key_file.read_text(encoding="utf-8").startswith("nsec1")
    assert _config_data(tmp_path)["secret_key_path"] == str(key_file)
    signer = LocalKeySigner.from_secret(key_file.read_text(encoding="utf-8"))
    assert signer.encode_public_key() in generated.output

    shown = runner.invoke(main, ["keys", "show"])
    assert shown.exit_code == 0
    assert signer.encode_public_key() in shown.output
    assert signer.public_key in shown.output

    again = runner.invoke(main, ["keys", "generate"])
    assert again.exit_code == 1
    assert key_file.read_text(encoding="utf-8").strip() == signer.export_secret()


def test_keys_show_without_key_fails() -> None:
    result = CliRunner().invoke(main, ["keys", "show"])

    assert result.exit_code == 1
    assert "No signing key configured" in result.output
