"""
mmstatus · Datenmodelle.

Status-Enum, Schedule-Einträge und die Benutzer-Identität.

Design-Prinzipien:
  - Immutable (frozen): alles wird einmal beim Start geladen
  - Strikte Validierung (kein ungültiger Status möglich)
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Enums
# ============================================================================


class Status(StrEnum):
    """Presence-Status wie ihn die Mattermost API erwartet."""

    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"
    DO_NOT_DISTURB = "dnd"


# Alternative Schreibweisen aus der Config → kanonischer Wert
_STATUS_ALIASES: dict[str, Status] = {
    "do-not-disturb": Status.DO_NOT_DISTURB,
    "do_not_disturb": Status.DO_NOT_DISTURB,
    "donotdisturb": Status.DO_NOT_DISTURB,
}


def parse_status(value: Any) -> Status:
    """Normalisiert einen Status-Wert aus der Config.

    Args:
        value: Roh-Wert (z.B. "Online", "dnd", "do-not-disturb").

    Returns:
        Kanonischer Status.

    Raises:
        ValueError: Bei unbekanntem Status.
    """
    if isinstance(value, Status):
        return value
    raw = str(value).strip().lower()
    if raw in _STATUS_ALIASES:
        return _STATUS_ALIASES[raw]
    try:
        return Status(raw)
    except ValueError:
        allowed = ", ".join(s.value for s in Status)
        msg = f"Unbekannter Status '{value}' (erlaubt: {allowed})"
        raise ValueError(msg) from None


# ============================================================================
# Schedule
# ============================================================================


class ScheduleEntry(BaseModel):
    """Ein geplanter Statuswechsel: Cron-Ausdruck + Ziel-Status.

    Akzeptiert sowohl ``Cron``/``Status`` als auch ``cron``/``status``
    als YAML-Schlüssel.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cron: str = Field(validation_alias=AliasChoices("cron", "Cron"), min_length=1)
    status: Status = Field(validation_alias=AliasChoices("status", "Status"))

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Status:
        return parse_status(value)

    @field_validator("cron")
    @classmethod
    def _strip_cron(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Cron-Ausdruck darf nicht leer sein"
            raise ValueError(msg)
        return value

    def __str__(self) -> str:
        return f"{{{self.cron} {self.status.value}}}"


# ============================================================================
# Mattermost-Identität
# ============================================================================


class UserIdentity(BaseModel, frozen=True):
    """Der aktuelle Mattermost-User (Antwort von ``GET /users/me``)."""

    id: str = Field(min_length=1)
    username: str = ""
