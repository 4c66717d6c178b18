"""Unit tests for configuration loading and validation."""

from pathlib import Path

import pytest

from app.config import (
    AppConfig,
    ConfigurationError,
    DurationParseError,
    load_config,
    load_environment_config,
    parse_app_config,
    parse_duration,
    validate_config_file,
)
from app.config.duration import validate_duration_range
from app.config.environment import DEFAULT_DATABASE_URL


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("30s", 30),
            ("15m", 900),
            ("2h", 7200),
            ("1d", 86400),
            ("1h30m", 5400),
            ("PT15M", 900),
            ("PT1H30M", 5400),
            ("P1D", 86400),
            ("pt20m", 1200),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "15", "15x", "1h foo", "P", "PT", "0m"])
    def test_invalid(self, value):
        with pytest.raises(DurationParseError):
            parse_duration(value)

    def test_range(self):
        validate_duration_range(900, min_seconds=60, max_seconds=3600)
        with pytest.raises(DurationParseError, match="too short"):
            validate_duration_range(30, label="staleness_window")
        with pytest.raises(DurationParseError, match="too long"):
            validate_duration_range(90000)


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.recommended.default_min_score == 50
        assert config.recommended.staleness_window_seconds == 900
        assert config.recommended.schedule_enabled is False
        assert config.recommended.schedule_interval_seconds == 86400
        assert config.provider.type == "jsearch"
        assert config.logging.format == "key-value"

    def test_base_url_trailing_slash_removed(self):
        config = parse_app_config({"provider": {"base_url": "https://example.com/api/"}})
        assert config.provider.base_url == "https://example.com/api"

    def test_errors_are_aggregated(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_app_config(
                {
                    "provider": {"http_request_timeout": 1, "type": "indeed"},
                    "recommended": {"staleness_window": "soon"},
                }
            )
        assert len(exc_info.value.errors) == 3
        assert "Validation Errors" in str(exc_info.value)

    def test_short_staleness_window_warns(self):
        with pytest.warns(UserWarning, match="staleness_window"):
            parse_app_config({"recommended": {"staleness_window": "2m"}})

    def test_unlimited_max_jobs_warns(self):
        with pytest.warns(UserWarning, match="max_jobs_per_query"):
            parse_app_config({"provider": {"max_jobs_per_query": 0}})

    def test_schedule_interval_lower_bound(self):
        with pytest.raises(ConfigurationError):
            parse_app_config({"recommended": {"schedule_interval": "5m"}})


class TestEnvironmentConfig:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("JSEARCH_API_KEY", raising=False)
        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()
        assert "JSEARCH_API_KEY" in exc_info.value.errors[0]

    def test_defaults(self, mock_env_vars):
        env = load_environment_config()
        assert env.jsearch_api_key == "test-rapidapi-key"
        assert env.jsearch_api_host == "jsearch.p.rapidapi.com"
        assert env.database_url == DEFAULT_DATABASE_URL
        assert env.log_level is None
        assert env.environment == "local"

    def test_invalid_values(self, mock_env_vars, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "not-a-url")
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()
        assert len(exc_info.value.errors) == 2

    def test_log_level_is_uppercased(self, mock_env_vars, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert load_environment_config().log_level == "DEBUG"


class TestLoadConfig:
    def test_explicit_file(self, tmp_path, mock_env_vars):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("recommended:\n  default_min_score: 30\n")

        app_config, env_config = load_config(config_file)

        assert app_config.recommended.default_min_score == 30
        assert env_config.jsearch_api_key == "test-rapidapi-key"

    def test_missing_explicit_file(self, tmp_path, mock_env_vars):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_defaults_without_file(self, tmp_path, mock_env_vars, monkeypatch):
        monkeypatch.chdir(tmp_path)
        app_config, _ = load_config()
        assert app_config == AppConfig()

    def test_fallback_to_config_directory(self, tmp_path, mock_env_vars, monkeypatch):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "config.yaml").write_text("logging:\n  format: json\n")
        monkeypatch.chdir(tmp_path)

        app_config, _ = load_config()

        assert app_config.logging.format == "json"

    def test_empty_file_uses_defaults(self, tmp_path, mock_env_vars):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        app_config, _ = load_config(config_file)
        assert app_config.recommended.default_min_score == 50

    def test_non_mapping_file(self, tmp_path, mock_env_vars):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(config_file)

    def test_invalid_yaml(self, tmp_path, mock_env_vars):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("provider: [unclosed\n")
        with pytest.raises(ConfigurationError, match="YAML"):
            load_config(config_file)

    def test_example_config_is_valid(self, capsys):
        example = Path(__file__).resolve().parent.parent / "config.example.yaml"
        assert validate_config_file(example) is True
        assert "is valid" in capsys.readouterr().out
