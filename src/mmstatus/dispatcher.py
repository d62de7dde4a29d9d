"""Status-Dispatcher: Cron-gesteuerte Statuswechsel.

Nutzt APScheduler 3.x (AsyncIOScheduler). Jeder ScheduleEntry bekommt
einen eigenen Job mit eigenem Trigger; die Jobs feuern unabhängig
voneinander und dürfen sich zeitlich überschneiden.

Cron-Ausdrücke haben Sekunden-Auflösung (6 Felder):

    second minute hour day-of-month month day-of-week

Wochentage folgen der klassischen Cron-Zählung (0 = Sonntag, 0-6) und
werden für APScheduler (Montag = 0) in Namen übersetzt. Zusätzlich gibt es
Deskriptoren wie ``@daily`` und ``@every 1h30m``.

Sind Tag-im-Monat und Wochentag beide eingeschränkt, genügt es, wenn
einer von beiden passt (klassische Cron-Semantik). APScheduler verlangt
dagegen beide; dafür werden zwei Trigger per OrTrigger kombiniert.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import signal
from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from mmstatus.errors import ScheduleError, StatusSchedulerError
from mmstatus.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from apscheduler.triggers.base import BaseTrigger

    from mmstatus.client import StatusClient
    from mmstatus.config import AppConfig
    from mmstatus.models import ScheduleEntry, UserIdentity

log = get_logger(__name__)

# ============================================================================
# Cron-Parsing
# ============================================================================

_FIELD_NAMES = ("second", "minute", "hour", "day", "month", "day_of_week")

_DESCRIPTORS: dict[str, str] = {
    "@yearly": "0 0 0 1 1 *",
    "@annually": "0 0 0 1 1 *",
    "@monthly": "0 0 0 1 * *",
    "@weekly": "0 0 0 * * 0",
    "@daily": "0 0 0 * * *",
    "@midnight": "0 0 0 * * *",
    "@hourly": "0 0 * * * *",
}

_WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_NUMERIC_RANGE = re.compile(r"(\d+)(?:-(\d+))?")

_DURATION = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|h|m|s))+")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def _translate_weekday_part(part: str) -> str:
    """Übersetzt ein Listenelement des Wochentag-Felds (z.B. ``1-5``, ``*/2``)."""
    rng, has_step, step = part.partition("/")
    match = _NUMERIC_RANGE.fullmatch(rng)
    if rng not in ("*", "?") and match is None:
        # Namen (MON-FRI) versteht APScheduler direkt
        return part
    if rng in ("*", "?") and not has_step:
        return "*"

    if match is None:
        start, end = 0, 6
    else:
        start = int(match.group(1))
        if match.group(2) is not None:
            end = int(match.group(2))
        else:
            # "N/step" bedeutet N bis Maximum
            end = 6 if has_step else start

    stride = int(step) if has_step else 1
    if stride < 1 or start > end or end > 6:
        msg = f"ungültiges Wochentag-Feld '{part}' (erlaubt: 0-6)"
        raise ValueError(msg)

    return ",".join(_WEEKDAY_NAMES[day] for day in range(start, end + 1, stride))


def _translate_day_of_week(value: str) -> str:
    if value in ("*", "?"):
        return "*"
    return ",".join(_translate_weekday_part(part) for part in value.split(","))


def parse_cron_fields(expression: str) -> dict[str, str]:
    """Parst einen Cron-Ausdruck mit Sekunden in APScheduler-kompatible Felder.

    Args:
        expression: Cron-Ausdruck (z.B. "0 30 8 * * 1-5") oder ein
            Deskriptor wie "@daily".

    Returns:
        Dict mit APScheduler CronTrigger-Feldern.

    Raises:
        ScheduleError: Bei ungültigem Cron-Ausdruck.
    """
    expr = expression.strip()
    expr = _DESCRIPTORS.get(expr.lower(), expr)
    parts = expr.split()
    if len(parts) != len(_FIELD_NAMES):
        msg = f"Cron-Ausdruck muss 6 Felder haben, hat {len(parts)}: '{expression}'"
        raise ScheduleError(msg, details={"cron": expression})

    fields = dict(zip(_FIELD_NAMES, parts, strict=True))
    if fields["day"] == "?":
        fields["day"] = "*"
    try:
        fields["day_of_week"] = _translate_day_of_week(fields["day_of_week"])
    except ValueError as exc:
        raise ScheduleError(f"{exc}: '{expression}'", details={"cron": expression}) from exc
    return fields


def parse_duration(value: str) -> float:
    """Parst eine Dauer im Stil von ``90s``, ``15m`` oder ``1h30m`` in Sekunden.

    Raises:
        ScheduleError: Bei ungültiger oder nicht-positiver Dauer.
    """
    raw = value.strip().lower()
    if not _DURATION.fullmatch(raw):
        msg = f"ungültige Dauer: '{value}'"
        raise ScheduleError(msg, details={"duration": value})

    seconds = sum(float(num) * _DURATION_UNITS[unit] for num, unit in _DURATION_PART.findall(raw))
    if seconds <= 0:
        msg = f"Dauer muss positiv sein: '{value}'"
        raise ScheduleError(msg, details={"duration": value})
    return max(seconds, 1.0)


def build_trigger(expression: str, timezone: str = "UTC") -> BaseTrigger:
    """Erzeugt den APScheduler-Trigger für einen Cron-Ausdruck.

    Raises:
        ScheduleError: Bei ungültigem Ausdruck.
    """
    expr = expression.strip()
    if expr.lower().startswith("@every"):
        seconds = parse_duration(expr[len("@every"):])
        return IntervalTrigger(seconds=seconds, timezone=timezone)

    fields = parse_cron_fields(expr)
    try:
        if fields["day"] == "*" or fields["day_of_week"] == "*":
            return CronTrigger(**fields, timezone=timezone)
        # Beide eingeschränkt: Tag-im-Monat ODER Wochentag
        return OrTrigger(
            [
                CronTrigger(**{**fields, "day_of_week": "*"}, timezone=timezone),
                CronTrigger(**{**fields, "day": "*"}, timezone=timezone),
            ]
        )
    except (ValueError, TypeError) as exc:
        raise ScheduleError(
            f"ungültiger Cron-Ausdruck '{expression}': {exc}",
            details={"cron": expression},
        ) from exc


# ============================================================================
# Dispatcher
# ============================================================================


class StatusDispatcher:
    """Registriert pro ScheduleEntry einen Cron-Job, der den Status setzt.

    Fehler beim Setzen werden geloggt und verworfen; der Job feuert beim
    nächsten Termin erneut. Ungültige Cron-Ausdrücke verhindern dagegen
    den Start komplett (es wird dann kein einziger Job registriert).

    Attributes:
        running: Ob der Scheduler läuft.
    """

    def __init__(
        self,
        client: StatusClient,
        user: UserIdentity,
        entries: Iterable[ScheduleEntry],
        *,
        timezone: str = "UTC",
        scheduler: Any | None = None,
    ) -> None:
        """Initialisiert den Dispatcher.

        Args:
            client: StatusClient für die API-Aufrufe.
            user: Einmalig ermittelte Identität; jeder Aufruf nutzt deren ID.
            entries: Die konfigurierten Statuswechsel.
            timezone: Zeitzone der Cron-Trigger.
            scheduler: Optionaler Scheduler (Default: AsyncIOScheduler).
        """
        self._client = client
        self._user = user
        self._entries: tuple[ScheduleEntry, ...] = tuple(entries)
        self._timezone = timezone
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._triggers: dict[str, BaseTrigger] = {}
        self.running = False

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        client: StatusClient,
        user: UserIdentity,
    ) -> StatusDispatcher:
        return cls(client, user, config.status_updates, timezone=config.timezone)

    @property
    def entries(self) -> tuple[ScheduleEntry, ...]:
        return self._entries

    @property
    def job_ids(self) -> list[str]:
        """IDs der registrierten Jobs (leer vor ``register``)."""
        return list(self._triggers)

    def register(self) -> list[str]:
        """Validiert alle Cron-Ausdrücke und registriert die Jobs.

        Alles-oder-nichts: erst werden alle Trigger gebaut, erst danach
        wird irgendein Job beim Scheduler angemeldet.

        Returns:
            Liste der Job-IDs.

        Raises:
            ScheduleError: Keine Einträge, bereits registriert oder ein
                ungültiger Cron-Ausdruck.
        """
        if self._triggers:
            msg = "Status-Updates sind bereits registriert"
            raise ScheduleError(msg, error_code="SCHEDULE_ALREADY_REGISTERED")
        if not self._entries:
            msg = "empty status updates"
            raise ScheduleError(msg, error_code="SCHEDULE_EMPTY")

        planned: list[tuple[str, ScheduleEntry, BaseTrigger]] = []
        for index, entry in enumerate(self._entries):
            try:
                trigger = build_trigger(entry.cron, self._timezone)
            except ScheduleError as exc:
                raise ScheduleError(
                    f"unable to create cron job: {entry}, {exc}",
                    details={"cron": entry.cron, "status": entry.status.value, "index": index},
                ) from exc
            planned.append((f"status-{index}-{entry.status.value}", entry, trigger))

        for job_id, entry, trigger in planned:
            self._scheduler.add_job(
                self._fire,
                trigger=trigger,
                args=[entry],
                id=job_id,
                name=str(entry),
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._triggers[job_id] = trigger
            log.info("status_update_scheduled", job_id=job_id, cron=entry.cron, status=entry.status.value)

        return self.job_ids

    def next_run_times(self, now: datetime | None = None) -> dict[str, datetime | None]:
        """Nächste Ausführungszeit pro Job.

        Args:
            now: Bezugszeitpunkt. Default: jetzt in der Scheduler-Zeitzone.

        Returns:
            Dict: Job-ID → nächste Ausführungszeit (None = feuert nie mehr).
        """
        if now is None:
            now = datetime.now(ZoneInfo(self._timezone))
        return {job_id: trigger.get_next_fire_time(None, now) for job_id, trigger in self._triggers.items()}

    async def start(self) -> None:
        """Registriert (falls nötig) und startet den Scheduler."""
        if self.running:
            log.warning("dispatcher_already_running")
            return
        if not self._triggers:
            self.register()

        self._scheduler.start()
        self.running = True
        for job_id, next_run in self.next_run_times().items():
            log.info("next_run", job_id=job_id, at=next_run.isoformat() if next_run else None)
        log.info("dispatcher_started", jobs=len(self._triggers), user=self._user.username)

    async def run_forever(self) -> None:
        """Startet die Jobs und blockiert bis SIGINT/SIGTERM."""
        await self.start()
        try:
            await self._wait_for_termination()
        finally:
            self._shutdown()

    async def _wait_for_termination(self) -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            # add_signal_handler fehlt auf Windows
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)
                installed.append(sig)
        try:
            await stop.wait()
            log.info("termination_signal_received")
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    def _shutdown(self) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=False)
        self.running = False
        log.info("dispatcher_stopped")

    async def _fire(self, entry: ScheduleEntry) -> None:
        """Wird vom Scheduler pro Termin aufgerufen. Wirft nie."""
        log.info("update_status", status=entry.status.value, cron=entry.cron)
        try:
            await self._client.set_status(self._user.id, entry.status)
        except StatusSchedulerError as exc:
            log.error(
                "change_status_failed",
                entry=str(entry),
                error=str(exc),
                error_code=exc.error_code,
            )
            return
        except Exception:
            log.exception("change_status_failed", entry=str(entry))
            return
        log.info("status_updated", status=entry.status.value)
