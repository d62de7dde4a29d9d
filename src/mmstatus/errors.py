"""mmstatus · Fehlerhierarchie.

Alle eigenen Exceptions erben von StatusSchedulerError, das einen
error_code und ein optionales details-Dict für programmatische
Auswertung mitführt.

Usage::

    from mmstatus.errors import ConfigError, HttpError

    raise ConfigError("mattermost url not found", error_code="CONFIG_MISSING_URL")
    raise HttpError("non-ok status code", status_code=500)
"""

from __future__ import annotations

from typing import Any


class StatusSchedulerError(Exception):
    """Base exception for all mmstatus errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "MMSTATUS_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ConfigError(StatusSchedulerError):
    """Configuration errors (missing file, invalid YAML, missing keys)."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class HttpError(StatusSchedulerError):
    """The Mattermost API answered with a non-success status code."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: str = "HTTP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class AuthError(HttpError):
    """401/403 from the API: token missing, expired or lacking permissions."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, error_code=error_code, details=details)


class TransportError(StatusSchedulerError):
    """Network-level failure (DNS, connect, timeout, broken connection)."""

    def __init__(
        self,
        message: str,
        error_code: str = "TRANSPORT_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class DecodeError(StatusSchedulerError):
    """Response body is not JSON or does not have the expected shape."""

    def __init__(
        self,
        message: str,
        error_code: str = "DECODE_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class ScheduleError(StatusSchedulerError):
    """Malformed cron expression or an empty schedule."""

    def __init__(
        self,
        message: str,
        error_code: str = "SCHEDULE_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)
