"""
mmstatus -- Entry Point.

Usage: mmstatus
       mmstatus --config /path/to/application.yaml
       mmstatus --check
       mmstatus --version
       python -m mmstatus
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from mmstatus import __version__
from mmstatus.client import StatusClient
from mmstatus.config import AppConfig, load_config
from mmstatus.dispatcher import StatusDispatcher, build_trigger
from mmstatus.errors import ConfigError, ScheduleError, StatusSchedulerError
from mmstatus.utils.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import httpx

log = get_logger("mmstatus")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Kommandozeilen-Argumente parsen."""
    parser = argparse.ArgumentParser(
        prog="mmstatus",
        description="Setzt den Mattermost-Status nach einem Cron-Zeitplan",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mmstatus v{__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Pfad zur Config (Default: application.yaml im Arbeitsverzeichnis)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log-Level überschreiben",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Config und Cron-Ausdrücke prüfen, nächste Termine zeigen, nicht starten",
    )
    return parser.parse_args(argv)


async def run(config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    """User ermitteln, Jobs registrieren und bis zum Signal laufen.

    Raises:
        StatusSchedulerError: Identität nicht ermittelbar oder ungültiger
            Zeitplan. Es wird dann kein Job gestartet.
    """
    async with StatusClient.from_config(config, transport=transport) as client:
        try:
            user = await client.fetch_current_user()
        except StatusSchedulerError as exc:
            log.critical("user_info_failed", error=str(exc), error_code=exc.error_code)
            raise

        log.info("user_resolved", user_id=user.id, username=user.username)

        dispatcher = StatusDispatcher.from_config(config, client, user)
        try:
            dispatcher.register()
        except ScheduleError as exc:
            log.critical("unable_to_create_cron_job", error=str(exc), **exc.details)
            raise

        await dispatcher.run_forever()


def check_schedule(config: AppConfig) -> int:
    """Validiert alle Cron-Ausdrücke und druckt die nächsten Termine.

    Kein Netzwerkzugriff; Ausgabe per print(), nicht über den Logger.

    Returns:
        Exit-Code (0 = alles gültig).
    """
    now = datetime.now(ZoneInfo(config.timezone))
    exit_code = 0
    print(f"Zeitzone: {config.timezone}")
    for entry in config.status_updates:
        try:
            trigger = build_trigger(entry.cron, config.timezone)
        except ScheduleError as exc:
            print(f"  FEHLER  {entry.cron!r:28} {entry.status.value:8} {exc}")
            exit_code = 1
            continue
        next_run = trigger.get_next_fire_time(None, now)
        when = next_run.isoformat() if next_run else "nie"
        print(f"  OK      {entry.cron!r:28} {entry.status.value:8} nächster Lauf: {when}")
    return exit_code


def main(argv: list[str] | None = None) -> None:
    """Haupteintrittspunkt."""
    args = parse_args(argv)

    # Secrets dürfen aus einer .env im Arbeitsverzeichnis kommen
    load_dotenv(Path(".env"), override=False)

    # Vorläufiges Logging, damit Config-Fehler sichtbar werden
    setup_logging(level=args.log_level or "INFO")

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log.critical("config_invalid", error=str(exc), error_code=exc.error_code)
        sys.exit(1)

    log_level = args.log_level or config.logging.level
    setup_logging(
        level=log_level,
        log_dir=config.logging.log_dir,
        json_logs=config.logging.json_logs,
        console=config.logging.console,
    )

    log.info(
        "mmstatus_starting",
        version=__version__,
        config_file=str(config.config_file),
        url=config.mattermost_url,
        status_updates=len(config.status_updates),
        timezone=config.timezone,
    )

    if args.check:
        sys.exit(check_schedule(config))

    try:
        asyncio.run(run(config))
    except StatusSchedulerError:
        sys.exit(1)
    except KeyboardInterrupt:
        log.info("mmstatus_shutdown_by_user")

    log.info("mmstatus_stopped")


if __name__ == "__main__":
    main()
