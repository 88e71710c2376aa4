"""Configuration management for the DraftWeaver CLI."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from draftweaver.models.relay_contracts import RelayDescriptor, RelayList

CONFIG_ENV_VAR = "DRAFTWEAVER_CLI_CONFIG"


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "draftweaver" / "config.yaml"


@dataclass
class Config:
    """CLI configuration: the relay list and where the signing key lives."""

    relays: list[RelayDescriptor] = field(default_factory=list)
    secret_key_path: Path | None = None

    @classmethod
    def load(cls) -> "Config":
        """Load config from the config file or return an empty config."""
        config_path = default_config_path()
        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        relays = [RelayDescriptor.model_validate(record) for record in data.get("relays") or []]
        secret_key_path = data.get("secret_key_path")
        return cls(
            relays=relays,
            secret_key_path=Path(secret_key_path).expanduser() if secret_key_path else None,
        )

    def save(self):
        """Save config to file."""
        config_path = default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data: dict[str, object] = {"relays": [relay.model_dump() for relay in self.relays]}
        if self.secret_key_path is not None:
            data["secret_key_path"] = str(self.secret_key_path)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)

    def relay_list(self, default_urls: list[str]) -> RelayList:
        """Relay list from config, falling back to the configured defaults."""
        if self.relays:
            return RelayList(self.relays)
        return RelayList(default_urls)

    def store_relays(self, relays: RelayList):
        self.relays = relays.relays
        self.save()

    def read_secret_key(self) -> str | None:
        if self.secret_key_path is None or not self.secret_key_path.is_file():
            return None
        secret = self.secret_key_path.read_text(encoding="utf-8").strip()
        return secret or None
