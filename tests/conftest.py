"""
mmstatus · Shared Test-Fixtures.

Alle Tests nutzen ein temporäres Verzeichnis und eine eigene
application.yaml. MMSTATUS_* Umgebungsvariablen werden entfernt, damit
lokale Secrets die Tests nicht beeinflussen.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
import yaml

from mmstatus.config import AppConfig
from mmstatus.models import ScheduleEntry, Status, UserIdentity

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MMSTATUS_MATTERMOST_URL",
        "MMSTATUS_ACCESS_TOKEN",
        "MMSTATUS_TIMEZONE",
        "MMSTATUS_REQUEST_TIMEOUT",
        "MMSTATUS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def raw_config() -> dict[str, Any]:
    """Gültige Config im YAML-Format (Schlüssel wie in application.example.yaml)."""
    return {
        "mattermost-url": "https://mm.example.com",
        "access-token": "secret-token",
        "status-updates": [
            {"Cron": "0 0 9 * * 1-5", "Status": "online"},
            {"Cron": "0 0 18 * * 1-5", "Status": "offline"},
        ],
    }


@pytest.fixture
def write_config(tmp_path: Path):
    """Schreibt ein Dict als application.yaml und gibt den Pfad zurück."""

    def _write(data: Any, name: str = "application.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config(raw_config: dict[str, Any]) -> AppConfig:
    return AppConfig.model_validate(raw_config)


@pytest.fixture
def user() -> UserIdentity:
    return UserIdentity(id="user-123", username="jdoe")


@pytest.fixture
def entries() -> list[ScheduleEntry]:
    return [
        ScheduleEntry(cron="0 0 9 * * 1-5", status=Status.ONLINE),
        ScheduleEntry(cron="0 0 12 * * 1-5", status=Status.AWAY),
        ScheduleEntry(cron="0 0 18 * * 1-5", status=Status.OFFLINE),
    ]
