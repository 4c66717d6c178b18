"""Tests for the command line entry point.

Each main() call opens and closes its own database, so these tests use a
SQLite file in tmp_path rather than an in-memory database.
"""

import json
from unittest.mock import Mock, patch

import pytest

from app.config.environment import EnvironmentConfig
from app.config.models import AppConfig, LoggingConfig
from app.main import build_parser, load_runtime_config, main
from tests.helpers import FixtureProvider


@pytest.fixture
def cli_env(tmp_path, monkeypatch, mock_env_vars):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    with patch("app.main.configure_logging"), patch("app.main.load_dotenv"):
        yield tmp_path


@pytest.fixture
def fixture_provider():
    with patch("app.main.get_provider", return_value=FixtureProvider()) as factory:
        yield factory


def run_cli(capsys, *argv):
    code = main(list(argv))
    captured = capsys.readouterr()
    body = json.loads(captured.out) if captured.out.strip() else None
    return code, body, captured.err


def seed(capsys):
    for args in (
        ("queries", "add", "data engineer"),
        ("queries", "add", "python backend"),
        ("patterns", "add", "python", "--weight", "30"),
        ("patterns", "add", "engineer", "--weight", "20", "--count-once"),
        ("patterns", "add", "clearance", "--disqualify"),
    ):
        assert run_cli(capsys, *args)[0] == 0


class TestLoadRuntimeConfig:
    @pytest.fixture
    def configs(self):
        app_config = AppConfig(logging=LoggingConfig(level="WARNING"))
        with patch("app.main.load_config") as load:
            yield load, app_config

    def test_cli_wins(self, configs):
        load, app_config = configs
        load.return_value = (app_config, EnvironmentConfig("k", log_level="ERROR"))
        _, env = load_runtime_config(None, "DEBUG")
        assert env.log_level == "DEBUG"

    def test_environment_beats_config(self, configs):
        load, app_config = configs
        load.return_value = (app_config, EnvironmentConfig("k", log_level="ERROR"))
        _, env = load_runtime_config(None, None)
        assert env.log_level == "ERROR"

    def test_config_file_last(self, configs):
        load, app_config = configs
        load.return_value = (app_config, EnvironmentConfig("k"))
        _, env = load_runtime_config(None, None)
        assert env.log_level == "WARNING"


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_global_options(self, tmp_path):
        args = build_parser().parse_args(
            ["--config", str(tmp_path / "c.yaml"), "--log-level", "DEBUG", "matches", "--run-id", "3"]
        )
        assert args.log_level == "DEBUG"
        assert args.run_id == 3
        assert args.include_ignored is False


class TestCatalogCommands:
    def test_query_lifecycle(self, cli_env, capsys):
        code, created, _ = run_cli(capsys, "queries", "add", "python backend", "--num-pages", "2", "--remote")
        assert code == 0
        assert created["num_pages"] == 2
        assert created["work_from_home"] is True

        assert [q["query"] for q in run_cli(capsys, "queries", "list")[1]] == ["python backend"]
        assert run_cli(capsys, "queries", "toggle", str(created["id"]))[1]["enabled"] is False
        assert run_cli(capsys, "queries", "delete", str(created["id"]))[1] == {"success": True}
        assert run_cli(capsys, "queries", "list")[1] == []

    def test_invalid_query(self, cli_env, capsys):
        code, _, err = run_cli(capsys, "queries", "add", "python", "--page", "0")
        assert code == 1
        assert "Invalid input" in err

    def test_missing_query(self, cli_env, capsys):
        code, _, err = run_cli(capsys, "queries", "toggle", "99")
        assert code == 1
        assert "Not found" in err

    def test_subtracting_pattern(self, cli_env, capsys):
        code, body, _ = run_cli(capsys, "patterns", "add", "java", "--effect=-", "--weight", "5")
        assert code == 0
        assert body["effect"] == "-"

    def test_invalid_pattern(self, cli_env, capsys):
        assert run_cli(capsys, "patterns", "add", "(unclosed")[0] == 1

    def test_settings(self, cli_env, capsys):
        assert run_cli(capsys, "settings", "show")[1]["effective_min_score"] == 50

        code, body, _ = run_cli(capsys, "settings", "set", "--min-score", "20")
        assert code == 0
        assert body["min_recommended_score"] == 20
        assert run_cli(capsys, "settings", "show")[1]["effective_min_score"] == 20

    def test_settings_set_requires_an_option(self, cli_env, capsys):
        assert run_cli(capsys, "settings", "set")[0] == 1


class TestPullCommands:
    def test_status_without_runs(self, cli_env, capsys):
        assert run_cli(capsys, "status")[:2] == (0, {"status": "none"})

    def test_pull_then_matches(self, cli_env, fixture_provider, capsys):
        seed(capsys)

        code, status, _ = run_cli(capsys, "pull")

        assert code == 0
        assert status["status"] == "completed"
        assert status["totalFetched"] == 6

        code, body, _ = run_cli(capsys, "matches")
        assert code == 0
        assert [m["score"] for m in body["matches"]] == [110, 60, 50]

    def test_pull_without_queries(self, cli_env, fixture_provider, capsys):
        code, body, _ = run_cli(capsys, "pull")
        assert code == 1
        assert "error" in body

    def test_clear(self, cli_env, fixture_provider, capsys):
        seed(capsys)
        run_cli(capsys, "pull")

        assert run_cli(capsys, "clear")[:2] == (0, {"success": True})
        assert run_cli(capsys, "status")[1] == {"status": "none"}

    def test_clear_jobs(self, cli_env, fixture_provider, capsys):
        seed(capsys)
        run_cli(capsys, "pull")
        assert run_cli(capsys, "clear-jobs")[:2] == (0, {"success": True})

    def test_cancel_without_runs(self, cli_env, fixture_provider, capsys):
        assert run_cli(capsys, "cancel")[0] == 1


class TestServe:
    def test_requires_schedule_enabled(self, cli_env, fixture_provider, capsys):
        code, _, err = run_cli(capsys, "serve")
        assert code == 1
        assert "schedule_enabled" in err

    def test_runs_scheduler_until_shutdown(self, cli_env, fixture_provider, capsys):
        (cli_env / "config.yaml").write_text(
            "recommended:\n  schedule_enabled: true\n  schedule_interval: 1h\n"
        )
        created = {}

        def fake_scheduler(**kwargs):
            created.update(kwargs)
            kwargs["shutdown_event"].set()
            return Mock()

        with patch("app.main.SchedulerService", side_effect=fake_scheduler), patch(
            "app.main.signal.signal"
        ):
            code, _, _ = run_cli(capsys, "serve", "--run-immediately")

        assert code == 0
        assert created["interval_seconds"] == 3600
        assert created["run_immediately"] is True


class TestErrors:
    def test_missing_api_key(self, cli_env, capsys, monkeypatch):
        monkeypatch.delenv("JSEARCH_API_KEY")
        code, _, err = run_cli(capsys, "status")
        assert code == 1
        assert "JSEARCH_API_KEY" in err

    def test_missing_config_file(self, cli_env, capsys):
        code, _, err = run_cli(capsys, "--config", "nope.yaml", "status")
        assert code == 1
        assert "Configuration Error" in err
