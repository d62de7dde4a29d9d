"""
mmstatus · Konfigurationssystem.

Lädt die Konfiguration aus:
  1. Defaults (hier definiert)
  2. application.yaml / application.yml im Arbeitsverzeichnis (oder --config)
  3. Umgebungsvariablen MMSTATUS_* (überschreiben alles)

Die Konfiguration wird einmal beim Start geladen und danach nur noch
gelesen. Fehlende Pflichtwerte sind fatal (ConfigError).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from mmstatus.errors import ConfigError
from mmstatus.models import ScheduleEntry

log = logging.getLogger(__name__)

CONFIG_NAMES = ("application.yaml", "application.yml")
ENV_PREFIX = "MMSTATUS_"

# ============================================================================
# Konfigurationsmodelle
# ============================================================================


class LoggingConfig(BaseModel):
    """Logging-Konfiguration."""

    model_config = ConfigDict(populate_by_name=True)

    level: str = "INFO"
    json_logs: bool = Field(default=False, validation_alias=AliasChoices("json_logs", "json-logs"))
    console: bool = True
    log_dir: Path | None = Field(default=None, validation_alias=AliasChoices("log_dir", "log-dir"))


class AppConfig(BaseModel):
    """Komplette Konfiguration des Status-Schedulers.

    Wird einmal beim Start geladen und explizit an StatusClient und
    StatusDispatcher übergeben.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mattermost_url: str = Field(
        default="",
        validation_alias=AliasChoices("mattermost_url", "mattermost-url"),
    )
    access_token: str = Field(
        default="",
        validation_alias=AliasChoices("access_token", "access-token"),
        repr=False,
    )
    status_updates: list[ScheduleEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("status_updates", "status-updates"),
    )
    timezone: str = "UTC"
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        validation_alias=AliasChoices("request_timeout", "request-timeout"),
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Woher die Config stammt (nur informativ, nicht aus YAML)
    config_file: Path | None = None


# ============================================================================
# Config-Laden
# ============================================================================

# MMSTATUS_<NAME> → (Sektion, Schlüssel). Sektion None = Top-Level.
_ENV_KEYS: dict[str, tuple[str | None, str]] = {
    "MATTERMOST_URL": (None, "mattermost-url"),
    "ACCESS_TOKEN": (None, "access-token"),
    "TIMEZONE": (None, "timezone"),
    "REQUEST_TIMEOUT": (None, "request-timeout"),
    "LOG_LEVEL": ("logging", "level"),
}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Wendet MMSTATUS_* Umgebungsvariablen an.

    Beispiel: MMSTATUS_ACCESS_TOKEN → data["access-token"]
    """
    for name, (section, key) in _ENV_KEYS.items():
        value = os.environ.get(f"{ENV_PREFIX}{name}")
        if value is None or value.strip() == "":
            continue
        node = data
        if section is not None:
            existing = node.get(section)
            if not isinstance(existing, dict):
                existing = {}
                node[section] = existing
            node = existing
        # Snake-case-Variante entfernen, damit der Override gewinnt
        node.pop(key.replace("-", "_"), None)
        node[key] = value
    return data


def find_config_file(directory: Path | None = None) -> Path | None:
    """Sucht application.yaml bzw. application.yml im Verzeichnis.

    Args:
        directory: Suchverzeichnis. Default: aktuelles Arbeitsverzeichnis.

    Returns:
        Pfad der ersten gefundenen Datei oder None.
    """
    base = directory if directory is not None else Path.cwd()
    for name in CONFIG_NAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            file_data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(
            f"Unable to read config file: {exc}",
            error_code="CONFIG_UNREADABLE",
            details={"path": str(path)},
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Unable to parse config file: {exc}",
            error_code="CONFIG_INVALID_YAML",
            details={"path": str(path)},
        ) from exc

    if file_data is None:
        return {}
    if not isinstance(file_data, dict):
        raise ConfigError(
            "config file must contain a mapping at the top level",
            error_code="CONFIG_INVALID_YAML",
            details={"path": str(path)},
        )
    return file_data


def _check_required(config: AppConfig) -> None:
    """Pflichtwerte prüfen. Reihenfolge entspricht den Fehlermeldungen beim Start."""
    if not config.mattermost_url.strip():
        raise ConfigError("mattermost url not found", error_code="CONFIG_MISSING_URL")
    if not config.access_token.strip():
        raise ConfigError("mattermost access token not found", error_code="CONFIG_MISSING_TOKEN")
    if not config.status_updates:
        raise ConfigError("empty status updates", error_code="CONFIG_EMPTY_SCHEDULE")
    try:
        ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(
            f"unknown timezone: {config.timezone}",
            error_code="CONFIG_INVALID_TIMEZONE",
        ) from exc


def load_config(config_path: Path | None = None) -> AppConfig:
    """Lädt und validiert die Konfiguration.

    Reihenfolge (spätere überschreiben frühere):
      1. Defaults (in den Pydantic-Modellen)
      2. YAML-Datei
      3. MMSTATUS_* Umgebungsvariablen

    Args:
        config_path: Expliziter Pfad. Wenn None: application.yaml/.yml im
            Arbeitsverzeichnis.

    Returns:
        Vollständig validierte AppConfig.

    Raises:
        ConfigError: Datei fehlt, ist kein gültiges YAML, oder Pflichtwerte
            fehlen bzw. sind ungültig.
    """
    if config_path is None:
        config_path = find_config_file()
        if config_path is None:
            raise ConfigError(
                f"Unable to read config file: no {' or '.join(CONFIG_NAMES)} in {Path.cwd()}",
                error_code="CONFIG_NOT_FOUND",
            )
    elif not config_path.is_file():
        raise ConfigError(
            f"Unable to read config file: {config_path} does not exist",
            error_code="CONFIG_NOT_FOUND",
            details={"path": str(config_path)},
        )

    data = _read_yaml(config_path)
    data = _apply_env_overrides(data)
    data["config_file"] = config_path

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(
            f"invalid configuration: {exc}",
            error_code="CONFIG_INVALID",
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    _check_required(config)
    log.debug("Konfiguration geladen: %s (%d Status-Updates)", config_path, len(config.status_updates))
    return config
