"""Main entry point for the housing alert background jobs."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import json
import os
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from housing_alerts.config.environment import EnvironmentConfig
from housing_alerts.config.exceptions import ConfigurationError
from housing_alerts.config.loader import load_config, validate_config_file
from housing_alerts.config.models import AppConfig
from housing_alerts.harvester.factory import build_source
from housing_alerts.harvester.service import Harvester
from housing_alerts.logging import get_logger
from housing_alerts.logging.config import configure_logging
from housing_alerts.matching.commute import build_commute_estimator
from housing_alerts.matching.service import MatcherJob
from housing_alerts.notifications.delivery import EmailDelivery
from housing_alerts.notifications.service import NotifierJob
from housing_alerts.orchestrator.health import HealthMonitor
from housing_alerts.orchestrator.models import TRIGGERABLE_JOBS
from housing_alerts.orchestrator.service import JobOrchestrator
from housing_alerts.persistence.database import close_database, init_database
from housing_alerts.retention.service import RetentionJob

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI flag, then LOG_LEVEL, then the config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_orchestrator(app_config: AppConfig, env_config: EnvironmentConfig) -> JobOrchestrator:
    """Wire the jobs together. The database must already be initialized."""
    source = build_source(app_config.harvester, app_config.advanced)
    harvester = Harvester(source, app_config.harvester)

    commute_estimator = build_commute_estimator(
        env_config.google_maps_api_key,
        timeout=app_config.advanced.commute_timeout,
        cache_ttl_seconds=app_config.advanced.commute_cache_ttl_seconds,
    )
    matcher = MatcherJob(app_config.matcher, commute_estimator=commute_estimator)

    delivery = None
    if not app_config.notifier.skip_delivery:
        delivery = EmailDelivery(env_config, app_config.email)
    notifier = NotifierJob(app_config.notifier, delivery=delivery)

    retention = RetentionJob(app_config.retention)
    health_monitor = HealthMonitor(app_config.jobs.harvest_interval_seconds)

    return JobOrchestrator(
        config=app_config,
        env_config=env_config,
        harvester=harvester,
        matcher=matcher,
        notifier=notifier,
        retention=retention,
        health_monitor=health_monitor,
    )


async def run_daemon(orchestrator: JobOrchestrator) -> None:
    """Start the orchestrator and block until SIGINT or SIGTERM, then stop gracefully."""
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_stop(signum: int) -> None:
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        stop_requested.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, request_stop, signum)
        except NotImplementedError:
            signal.signal(signum, lambda s, frame: loop.call_soon_threadsafe(request_stop, s))

    await orchestrator.start()
    logger.info(
        "Orchestrator running. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )
    try:
        await stop_requested.wait()
    finally:
        await orchestrator.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="housing-alerts",
        description="Housing Alerts - harvest listings, match saved searches and email subscribers",
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
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    parser.add_argument(
        "--trigger",
        choices=[job.value for job in TRIGGERABLE_JOBS],
        default=None,
        help="Run one job immediately and exit instead of starting the scheduler",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    if args.validate_config:
        return 0 if validate_config_file(args.config or Path("config.yaml")) else 1

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )
        logger.info(
            "Housing Alerts starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "trigger": args.trigger,
            },
        )

        init_database(env_config.database_url)
        orchestrator = build_orchestrator(app_config, env_config)

        try:
            if args.trigger:
                report = asyncio.run(orchestrator.trigger(args.trigger))
                print(json.dumps(report.as_dict(), indent=2, default=str))
                logger.info(
                    f"Manual {args.trigger} run finished (success={report.success})",
                    extra={"event": "service.trigger.completed", "success": report.success},
                )
                return 0 if report.success else 1

            asyncio.run(run_daemon(orchestrator))
        finally:
            close_database()

        logger.info(
            "Housing Alerts stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            exc_info=True,
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
