"""Tests for configuration loading."""

from pathlib import Path

import pytest

from connpass_watcher.config import ConfigError, Settings, load_settings


def write_config(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadSettings:
    """Tests for YAML + environment loading."""

    def test_yaml_sections(self, tmp_path: Path):
        """Values from the YAML file populate the nested sections."""
        config = write_config(
            tmp_path / "config.yaml",
            """
connpass:
  api_key: from-file
  prefectures: [tokyo, kanagawa]
  weeks_ahead: 2
interests:
  keywords: [Python, Rust]
  exclude_keywords: [もくもく会]
  min_participants: 30
llm:
  provider: ollama
google_calendar:
  calendar_id: team@example.com
schedule:
  cron: "0 9 * * *"
""",
        )

        settings = load_settings(config)

        assert settings.connpass.api_key == "from-file"
        assert settings.connpass.prefectures == ["tokyo", "kanagawa"]
        assert settings.connpass.weeks_ahead == 2
        assert settings.connpass.include_online is True
        assert settings.interests.exclude_keywords == ["もくもく会"]
        assert settings.interests.min_participants == 30
        assert settings.llm.provider == "ollama"
        assert settings.google_calendar.calendar_id == "team@example.com"
        assert settings.google_calendar.color_speaker == "9"
        assert settings.schedule.cron == "0 9 * * *"

    def test_api_key_from_environment(self, tmp_path: Path, monkeypatch):
        """CONNPASS_API_KEY fills in a missing connpass.api_key."""
        monkeypatch.setenv("CONNPASS_API_KEY", "from-env")
        config = write_config(tmp_path / "config.yaml", "interests:\n  keywords: [Go]\n")

        settings = load_settings(config)

        assert settings.connpass.api_key == "from-env"

    def test_missing_api_key(self, tmp_path: Path, monkeypatch):
        """No connpass API key anywhere is a config error."""
        monkeypatch.delenv("CONNPASS_API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)
        config = write_config(tmp_path / "config.yaml", "interests:\n  keywords: [Go]\n")

        with pytest.raises(ConfigError, match="API key"):
            load_settings(config)

    def test_missing_file(self, tmp_path: Path):
        """An explicit path that does not exist is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        """Broken YAML is reported as a config error."""
        config = write_config(tmp_path / "config.yaml", "connpass: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(config)

    def test_out_of_range_value(self, tmp_path: Path):
        """Validation errors name the offending field."""
        config = write_config(tmp_path / "config.yaml", "connpass:\n  months_ahead: 24\n")
        with pytest.raises(ConfigError, match="months_ahead"):
            load_settings(config)

    def test_unknown_provider(self, tmp_path: Path):
        """Only the supported LLM providers are accepted."""
        config = write_config(tmp_path / "config.yaml", "llm:\n  provider: mystery\n")
        with pytest.raises(ConfigError, match="llm.provider"):
            load_settings(config)


class TestDerivedSettings:
    """Tests for computed settings."""

    def test_default_database_url(self, tmp_path: Path):
        """The database lives in the app directory by default."""
        settings = Settings(app_dir=tmp_path, connpass={"api_key": "k"})
        assert settings.resolved_database_url == f"sqlite+aiosqlite:///{tmp_path / 'events.db'}"

    def test_llm_api_key_fallback(self, monkeypatch):
        """Provider keys come from the environment when not configured."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        settings = Settings(connpass={"api_key": "k"}, llm={"provider": "openai"})
        assert settings.llm_api_key == "sk-env"

        settings = Settings(
            connpass={"api_key": "k"}, llm={"provider": "openai", "api_key": "sk-file"}
        )
        assert settings.llm_api_key == "sk-file"
