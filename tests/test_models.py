"""Tests für Status, ScheduleEntry und UserIdentity."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mmstatus.models import ScheduleEntry, Status, UserIdentity, parse_status


class TestParseStatus:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("online", Status.ONLINE),
            ("Away", Status.AWAY),
            (" OFFLINE ", Status.OFFLINE),
            ("dnd", Status.DO_NOT_DISTURB),
            ("do-not-disturb", Status.DO_NOT_DISTURB),
            ("do_not_disturb", Status.DO_NOT_DISTURB),
        ],
    )
    def test_known_values(self, raw: str, expected: Status) -> None:
        assert parse_status(raw) is expected

    def test_enum_passthrough(self) -> None:
        assert parse_status(Status.AWAY) is Status.AWAY

    def test_unknown_value_raises(self) -> None:
        with pytest.raises(ValueError, match="Unbekannter Status"):
            parse_status("busy")


class TestScheduleEntry:
    def test_capitalized_yaml_keys(self) -> None:
        entry = ScheduleEntry.model_validate({"Cron": "0 0 9 * * *", "Status": "online"})
        assert entry.cron == "0 0 9 * * *"
        assert entry.status is Status.ONLINE

    def test_lowercase_keys(self) -> None:
        entry = ScheduleEntry.model_validate({"cron": "0 0 9 * * *", "status": "dnd"})
        assert entry.status is Status.DO_NOT_DISTURB

    def test_cron_is_stripped(self) -> None:
        entry = ScheduleEntry(cron="  0 0 9 * * *  ", status=Status.AWAY)
        assert entry.cron == "0 0 9 * * *"

    def test_invalid_status_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScheduleEntry.model_validate({"Cron": "0 0 9 * * *", "Status": "invisible"})

    def test_missing_cron_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScheduleEntry.model_validate({"Status": "online"})

    def test_blank_cron_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScheduleEntry(cron="   ", status=Status.ONLINE)

    def test_frozen(self) -> None:
        entry = ScheduleEntry(cron="0 0 9 * * *", status=Status.ONLINE)
        with pytest.raises(ValidationError):
            entry.status = Status.AWAY  # type: ignore[misc]

    def test_str(self) -> None:
        entry = ScheduleEntry(cron="0 0 9 * * *", status=Status.DO_NOT_DISTURB)
        assert str(entry) == "{0 0 9 * * * dnd}"


class TestUserIdentity:
    def test_extra_fields_ignored(self) -> None:
        user = UserIdentity.model_validate({"id": "abc", "username": "jdoe", "email": "x@y.z"})
        assert user.id == "abc"
        assert user.username == "jdoe"

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UserIdentity(id="", username="jdoe")
