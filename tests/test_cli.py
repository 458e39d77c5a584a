"""
Tests for the Typer CLI, run against a JSON data file.
"""

import json
import shutil
from pathlib import Path

import pendulum
import pytest
from typer.testing import CliRunner

from meetslots.cli.app import app

EXAMPLE_DATA = Path(__file__).parent.parent / "meetslots_data.example.json"

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path):
    data_file = tmp_path / "data.json"
    shutil.copy(EXAMPLE_DATA, data_file)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("data_file: data.json\nlog_level: WARNING\n", encoding="utf-8")
    return config_file, data_file


def _next_wednesday():
    return pendulum.now("America/New_York").next(pendulum.WEDNESDAY)


def test_slots_lists_host_hours(workspace):
    config_file, _ = workspace
    day = _next_wednesday()

    result = runner.invoke(
        app, ["slots", "quick-chat", "--tz", "America/New_York", "--date", day.to_date_string(), "-c", str(config_file)]
    )

    assert result.exit_code == 0, result.output
    assert "16 available slot(s)" in result.output
    assert "9:00 AM" in result.output


def test_slots_as_json(workspace):
    config_file, _ = workspace
    day = _next_wednesday()

    result = runner.invoke(
        app,
        ["slots", "quick-chat", "--tz", "America/New_York", "--date", day.to_date_string(), "--json", "-c", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    slots = json.loads(result.output)
    assert len(slots) == 16
    assert slots[0]["start_time_display"] == "9:00 AM"


def test_slots_default_zone_from_config(workspace):
    config_file, _ = workspace
    config_file.write_text("data_file: data.json\ndefaults:\n  timezone: America/New_York\n", encoding="utf-8")

    result = runner.invoke(
        app, ["slots", "quick-chat", "--date", _next_wednesday().to_date_string(), "-c", str(config_file)]
    )

    assert result.exit_code == 0, result.output
    assert "(America/New_York)" in result.output


def test_slots_unknown_event_type(workspace):
    config_file, _ = workspace

    result = runner.invoke(app, ["slots", "nope", "--tz", "UTC", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "Event type not found" in result.output


def test_slots_invalid_zone(workspace):
    config_file, _ = workspace

    result = runner.invoke(app, ["slots", "quick-chat", "--tz", "Mars/Base", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "Invalid timezone" in result.output


def test_book_then_slot_disappears(workspace):
    config_file, data_file = workspace
    day = _next_wednesday()
    start = pendulum.datetime(day.year, day.month, day.day, 9, 0, tz="America/New_York").in_timezone("UTC")

    booked = runner.invoke(
        app,
        [
            "book", "quick-chat",
            "--start", start.to_iso8601_string(),
            "--name", "Ada Lovelace",
            "--email", "ada@example.com",
            "--tz", "Europe/London",
            "-c", str(config_file),
        ],
    )

    assert booked.exit_code == 0, booked.output
    assert "Booked!" in booked.output
    assert len(json.loads(data_file.read_text(encoding="utf-8"))["reservations"]) == 1

    again = runner.invoke(
        app,
        [
            "book", "quick-chat",
            "--start", start.to_iso8601_string(),
            "--name", "Grace Hopper",
            "--email", "grace@example.com",
            "--tz", "America/New_York",
            "-c", str(config_file),
        ],
    )

    assert again.exit_code == 1
    assert "no longer available" in again.output

    listed = runner.invoke(app, ["bookings", "testhost", "-c", str(config_file)])

    assert listed.exit_code == 0, listed.output
    assert "Ada Lovelace" in listed.output


def test_schedule_shows_legacy_host(workspace):
    config_file, _ = workspace

    result = runner.invoke(app, ["schedule", "legacyhost", "-c", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "08:00-12:00, 13:00-16:00" in result.output
    assert "unavailable" in result.output


def test_set_schedule_and_timezone(workspace, tmp_path):
    config_file, data_file = workspace
    schedule_file = tmp_path / "week.yaml"
    schedule_file.write_text(
        "monday:\n  enabled: true\n  blocks:\n    - {start: '10:00', end: '12:00'}\n",
        encoding="utf-8",
    )

    updated = runner.invoke(app, ["set-schedule", "testhost", str(schedule_file), "-c", str(config_file)])
    moved = runner.invoke(app, ["set-timezone", "testhost", "Asia/Tokyo", "-c", str(config_file)])

    assert updated.exit_code == 0, updated.output
    assert moved.exit_code == 0, moved.output
    host = json.loads(data_file.read_text(encoding="utf-8"))["hosts"][0]
    assert host["timezone"] == "Asia/Tokyo"
    assert host["availability"]["monday"] == {"enabled": True, "blocks": [{"start": "10:00", "end": "12:00"}]}
    assert host["availability"]["wednesday"] == {"enabled": False, "blocks": []}


def test_set_schedule_rejects_overlaps(workspace, tmp_path):
    config_file, _ = workspace
    schedule_file = tmp_path / "week.yaml"
    schedule_file.write_text(
        "monday:\n  - {start: '09:00', end: '12:00'}\n  - {start: '11:00', end: '13:00'}\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["set-schedule", "testhost", str(schedule_file), "-c", str(config_file)])

    assert result.exit_code == 1
    assert "overlapping" in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "meetslots" in result.output
