"""Command line entry point for the job recommender."""

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from dotenv import load_dotenv

from app.config.environment import EnvironmentConfig
from app.config.exceptions import ConfigurationError
from app.config.loader import load_config
from app.config.models import AppConfig
from app.control import CatalogService, ControlResponse, ControlService, InvalidInputError
from app.domain.models import DATE_POSTED_VALUES, PatternEffect, RunStatus
from app.logging import get_logger
from app.logging.config import configure_logging
from app.persistence.database import close_database, init_database
from app.persistence.exceptions import PersistenceError, RecordNotFoundError
from app.pipeline import RecommendedRunner, RunRegistry
from app.providers import get_provider
from app.providers.exceptions import ProviderConfigurationError
from app.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > environment > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def print_json(body: Any) -> None:
    print(json.dumps(body, indent=2, default=str))


def emit(response: ControlResponse) -> int:
    """Print a control response and turn it into an exit code."""
    print_json(response.body)
    return 0 if response.ok else 1


class Application:
    """Services wired from configuration; built once per CLI invocation."""

    def __init__(self, app_config: AppConfig, env_config: EnvironmentConfig):
        self.app_config = app_config
        self.env_config = env_config
        self.catalog = CatalogService()
        self._runner: Optional[RecommendedRunner] = None

    @property
    def runner(self) -> RecommendedRunner:
        if self._runner is None:
            provider = get_provider(self.app_config.provider, self.env_config)
            self._runner = RecommendedRunner(self.app_config, provider)
        return self._runner

    @property
    def control(self) -> ControlService:
        return ControlService(self.runner, RunRegistry())

    def close(self) -> None:
        if self._runner is not None:
            self._runner.provider.close()


# Pull lifecycle


def cmd_pull(app: Application, args: argparse.Namespace) -> int:
    """Start a pull and block until it reaches a terminal state."""
    control = app.control
    response = control.run_recommended()
    if not response.ok:
        return emit(response)

    run_id = response.body["runId"]
    logger.info(
        "Recommended pull started, waiting for completion",
        extra={"event": "cli.pull.waiting", "run_id": run_id},
    )
    try:
        app.runner.wait(run_id)
    except KeyboardInterrupt:
        logger.info(
            "Interrupted; requesting cancellation",
            extra={"event": "cli.pull.interrupted", "run_id": run_id},
        )
        app.runner.cancel(run_id)
        app.runner.wait(run_id)

    run = control.registry.get_run(run_id)
    status = control.recommended_status()
    print_json(status.body)
    return 0 if run is not None and run.status == RunStatus.COMPLETED else 1


def cmd_status(app: Application, args: argparse.Namespace) -> int:
    return emit(app.control.recommended_status())


def cmd_cancel(app: Application, args: argparse.Namespace) -> int:
    return emit(app.control.cancel_recommended(args.run_id))


def cmd_matches(app: Application, args: argparse.Namespace) -> int:
    return emit(
        app.control.recommended_matches(args.run_id, include_ignored=args.include_ignored)
    )


def cmd_clear(app: Application, args: argparse.Namespace) -> int:
    return emit(app.control.clear_recommended())


def cmd_clear_jobs(app: Application, args: argparse.Namespace) -> int:
    return emit(app.control.clear_jobs())


def cmd_serve(app: Application, args: argparse.Namespace) -> int:
    """Run scheduled pulls until SIGINT/SIGTERM."""
    recommended = app.app_config.recommended
    if not recommended.schedule_enabled:
        print(
            "Scheduling is disabled. Set recommended.schedule_enabled: true in the config file",
            file=sys.stderr,
        )
        return 1

    start_time = time.time()
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        pull_callable=app.runner.start_pull,
        interval_seconds=recommended.schedule_interval_seconds,
        shutdown_event=shutdown_event,
        run_immediately=args.run_immediately,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        scheduler_service.shutdown(wait=False)

    logger.info(
        "Job recommender stopped",
        extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
    )
    return 0


# Catalog


def _changes(args: argparse.Namespace, *names: str) -> Dict[str, Any]:
    """Collect the options the user actually passed."""
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def cmd_queries_list(app: Application, args: argparse.Namespace) -> int:
    print_json([q.model_dump(mode="json") for q in app.catalog.list_queries()])
    return 0


def cmd_queries_add(app: Application, args: argparse.Namespace) -> int:
    data = {"query": args.query, "enabled": not args.disabled}
    data.update(
        _changes(args, "page", "num_pages", "country", "language", "date_posted", "employment_types")
    )
    if args.remote:
        data["work_from_home"] = True
    print_json(app.catalog.create_query(data).model_dump(mode="json"))
    return 0


def cmd_queries_toggle(app: Application, args: argparse.Namespace) -> int:
    print_json(app.catalog.toggle_query(args.id).model_dump(mode="json"))
    return 0


def cmd_queries_delete(app: Application, args: argparse.Namespace) -> int:
    app.catalog.delete_query(args.id)
    print_json({"success": True})
    return 0


def cmd_patterns_list(app: Application, args: argparse.Namespace) -> int:
    print_json([p.model_dump(mode="json") for p in app.catalog.list_patterns()])
    return 0


def cmd_patterns_add(app: Application, args: argparse.Namespace) -> int:
    data = {
        "pattern": args.pattern,
        "effect": args.effect,
        "count_once": args.count_once,
        "disqualify": args.disqualify,
        "enabled": not args.disabled,
    }
    data.update(_changes(args, "weight"))
    print_json(app.catalog.create_pattern(data).model_dump(mode="json"))
    return 0


def cmd_patterns_toggle(app: Application, args: argparse.Namespace) -> int:
    print_json(app.catalog.toggle_pattern(args.id).model_dump(mode="json"))
    return 0


def cmd_patterns_delete(app: Application, args: argparse.Namespace) -> int:
    app.catalog.delete_pattern(args.id)
    print_json({"success": True})
    return 0


def cmd_settings_show(app: Application, args: argparse.Namespace) -> int:
    settings = app.catalog.get_settings()
    body = settings.model_dump(mode="json")
    body["effective_min_score"] = settings.effective_min_score(
        app.app_config.recommended.default_min_score
    )
    print_json(body)
    return 0


def cmd_settings_set(app: Application, args: argparse.Namespace) -> int:
    changes = _changes(args, "min_recommended_score", "scoring_model", "recommended_num_pages")
    if not changes:
        print("Nothing to update; pass at least one option", file=sys.stderr)
        return 1
    print_json(app.catalog.update_settings(changes).model_dump(mode="json"))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="job-recommender",
        description="Job Recommender - pull jobs from saved searches and rank them by scoring patterns",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Log level (overrides config and environment)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("pull", help="Run a recommended pull and wait for it").set_defaults(
        handler=cmd_pull
    )
    commands.add_parser("status", help="Show the latest run").set_defaults(handler=cmd_status)

    cancel = commands.add_parser("cancel", help="Cancel a running pull")
    cancel.add_argument("--run-id", type=int, default=None, help="Run to cancel (default: latest)")
    cancel.set_defaults(handler=cmd_cancel)

    matches = commands.add_parser("matches", help="List ranked matches of a run")
    matches.add_argument("--run-id", type=int, default=None, help="Run to list (default: latest)")
    matches.add_argument("--include-ignored", action="store_true", help="Include ignored jobs")
    matches.set_defaults(handler=cmd_matches)

    commands.add_parser("clear", help="Delete all runs and matches").set_defaults(
        handler=cmd_clear
    )
    commands.add_parser("clear-jobs", help="Delete all jobs, runs and matches").set_defaults(
        handler=cmd_clear_jobs
    )

    serve = commands.add_parser("serve", help="Run scheduled pulls until stopped")
    serve.add_argument(
        "--run-immediately", action="store_true", help="Start the first pull at startup"
    )
    serve.set_defaults(handler=cmd_serve)

    queries = commands.add_parser("queries", help="Manage recommended queries")
    query_commands = queries.add_subparsers(dest="action", required=True)
    query_commands.add_parser("list").set_defaults(handler=cmd_queries_list)
    query_add = query_commands.add_parser("add")
    query_add.add_argument("query", help="Search text, e.g. 'python developer in Austin'")
    query_add.add_argument("--page", type=int, default=None)
    query_add.add_argument("--num-pages", type=int, default=None)
    query_add.add_argument("--country", default=None)
    query_add.add_argument("--language", default=None)
    query_add.add_argument("--date-posted", choices=DATE_POSTED_VALUES, default=None)
    query_add.add_argument("--employment-types", default=None, help="e.g. FULLTIME,CONTRACTOR")
    query_add.add_argument("--remote", action="store_true", help="Remote jobs only")
    query_add.add_argument("--disabled", action="store_true", help="Create disabled")
    query_add.set_defaults(handler=cmd_queries_add)
    for action, handler in (("toggle", cmd_queries_toggle), ("delete", cmd_queries_delete)):
        sub = query_commands.add_parser(action)
        sub.add_argument("id", type=int)
        sub.set_defaults(handler=handler)

    patterns = commands.add_parser("patterns", help="Manage scoring patterns")
    pattern_commands = patterns.add_subparsers(dest="action", required=True)
    pattern_commands.add_parser("list").set_defaults(handler=cmd_patterns_list)
    pattern_add = pattern_commands.add_parser("add")
    pattern_add.add_argument("pattern", help="Regular expression, matched case-insensitively")
    pattern_add.add_argument("--weight", type=float, default=None)
    pattern_add.add_argument(
        "--effect", choices=[e.value for e in PatternEffect], default=PatternEffect.ADD.value
    )
    pattern_add.add_argument("--count-once", action="store_true")
    pattern_add.add_argument("--disqualify", action="store_true")
    pattern_add.add_argument("--disabled", action="store_true", help="Create disabled")
    pattern_add.set_defaults(handler=cmd_patterns_add)
    for action, handler in (("toggle", cmd_patterns_toggle), ("delete", cmd_patterns_delete)):
        sub = pattern_commands.add_parser(action)
        sub.add_argument("id", type=int)
        sub.set_defaults(handler=handler)

    settings = commands.add_parser("settings", help="Show or change settings")
    settings_commands = settings.add_subparsers(dest="action", required=True)
    settings_commands.add_parser("show").set_defaults(handler=cmd_settings_show)
    settings_set = settings_commands.add_parser("set")
    settings_set.add_argument("--min-score", dest="min_recommended_score", type=float, default=None)
    settings_set.add_argument("--scoring-model", default=None)
    settings_set.add_argument("--num-pages", dest="recommended_num_pages", type=int, default=None)
    settings_set.set_defaults(handler=cmd_settings_set)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the job recommender CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    load_dotenv()
    args = build_parser().parse_args(argv)
    app: Optional[Application] = None

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )
        logger.info(
            "Job recommender starting",
            extra={
                "event": "service.starting",
                "command": args.command,
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
            },
        )

        init_database(env_config.database_url)
        app = Application(app_config, env_config)
        return args.handler(app, args)

    except ConfigurationError as e:
        print(f"Configuration Error: {e.render()}", file=sys.stderr)
        return 1
    except InvalidInputError as e:
        print("Invalid input:", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1
    except RecordNotFoundError as e:
        print(f"Not found: {e}", file=sys.stderr)
        return 1
    except ProviderConfigurationError as e:
        print(f"Provider Error: {e}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Database Error: {e}", file=sys.stderr)
        logger.error(
            f"Database error: {e}",
            extra={"event": "service.database_error", "error_type": type(e).__name__},
            exc_info=True,
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    finally:
        if app is not None:
            app.close()
        close_database()


if __name__ == "__main__":
    sys.exit(main())
