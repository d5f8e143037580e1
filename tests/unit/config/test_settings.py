"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from stdioprobe.config.settings import ProbeSettings, Settings


class TestSettingsDefaults:
    def test_probe_defaults(self, settings: Settings) -> None:
        assert settings.probe.command == ["npx", "-y", "@brave/brave-search-mcp-server"]
        assert settings.probe.credential_env == "BRAVE_API_KEY"
        assert settings.probe.credential is None
        assert settings.probe.send_delay == 3.0
        assert settings.probe.response_window == 2.0
        assert settings.probe.ceiling == 10.0

    def test_observability_defaults(self, settings: Settings) -> None:
        assert settings.observability.log_level == "info"
        assert settings.observability.log_format == "console"


class TestSettingsEnv:
    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STDIOPROBE_PROBE__CEILING", "15")
        monkeypatch.setenv("STDIOPROBE_PROBE__CREDENTIAL", "env-token")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.probe.ceiling == 15.0
        assert s.probe.credential is not None
        assert s.probe.credential.get_secret_value() == "env-token"

    def test_command_from_json_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STDIOPROBE_PROBE__COMMAND", '["node", "server.js", "--stdio"]')
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.probe.command == ["node", "server.js", "--stdio"]

    def test_command_from_plain_string_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STDIOPROBE_PROBE__COMMAND", "npx -y @brave/brave-search-mcp-server")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.probe.command == ["npx", "-y", "@brave/brave-search-mcp-server"]

    def test_credential_hidden_from_repr(self) -> None:
        probe = ProbeSettings(credential=SecretStr("BSA-secret"))
        assert "BSA-secret" not in repr(probe)
        assert "BSA-secret" not in probe.model_dump_json()


class TestProbeSettingsValidation:
    def test_command_from_plain_string(self) -> None:
        assert ProbeSettings(command="uvx mcp-server-fetch").command == ["uvx", "mcp-server-fetch"]

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProbeSettings(command=[])

    def test_non_positive_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProbeSettings(send_delay=0)

    def test_ceiling_below_schedule_allowed(self) -> None:
        assert ProbeSettings(send_delay=3.0, response_window=2.0, ceiling=4.0).ceiling == 4.0


class TestSettingsYaml:
    def test_from_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "probe.yaml"
        config.write_text(
            "probe:\n"
            "  command: node build/index.js\n"
            "  credential_env: SEARCH_TOKEN\n"
            "  ceiling: 12\n"
            "observability:\n"
            "  log_format: json\n"
        )
        s = Settings.from_yaml(config)
        assert s.probe.command == ["node", "build/index.js"]
        assert s.probe.credential_env == "SEARCH_TOKEN"
        assert s.probe.ceiling == 12.0
        assert s.probe.send_delay == 3.0
        assert s.observability.log_format == "json"

    def test_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config = tmp_path / "empty.yaml"
        config.write_text("")
        assert Settings.from_yaml(config).probe.ceiling == 10.0

    def test_missing_yaml_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            Settings.from_yaml(tmp_path / "missing.yaml")
