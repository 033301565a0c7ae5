"""
Smoke tests for the ironlog CLI.

Each test points IRONLOG_HOME at a temporary directory so no user files
are read, and passes --data-dir explicitly where a command stores data.
Live timers run with a millisecond tick.
"""

import json

import pytest
from typer.testing import CliRunner

import ironlog.cli.app as cli_app
from ironlog.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("IRONLOG_HOME", str(home))
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setattr(cli_app, "CLOCK_TICK_SECONDS", 0.001)
    return home


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


def _run_workout(data_dir, keys: str, *extra: str):
    return runner.invoke(app, ["workout", "--data-dir", str(data_dir), *extra], input=keys)


class TestHelp:
    def test_app_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "plates" in result.output
        assert "workout" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "Usage" in result.output


class TestCalculators:
    def test_plates(self):
        result = runner.invoke(app, ["plates", "225"])
        assert result.exit_code == 0
        assert "2x45 per side" in result.output

    def test_plates_custom_set(self):
        result = runner.invoke(app, ["plates", "100", "--bar", "20", "--plates", "20,10,5"])
        assert result.exit_code == 0
        assert "2x20 per side" in result.output

    def test_plates_bad_list(self):
        result = runner.invoke(app, ["plates", "225", "--plates", "45,abc"])
        assert result.exit_code == 1
        assert "Invalid plate" in result.output

    def test_warmup(self):
        result = runner.invoke(app, ["warmup", "315"])
        assert result.exit_code == 0
        assert "Warmup to 315" in result.output
        assert "Empty bar" in result.output

    def test_warmup_unknown_exercise(self):
        result = runner.invoke(app, ["warmup", "135", "--exercise", "unicorn"])
        assert result.exit_code != 0

    def test_e1rm(self):
        result = runner.invoke(app, ["e1rm", "225", "5"])
        assert result.exit_code == 0
        assert "263" in result.output


class TestTimers:
    def test_rest_dry_run_from_set(self):
        result = runner.invoke(app, ["rest", "--exercise", "squat", "--rpe", "9", "--dry-run"])
        assert result.exit_code == 0
        assert "Rest: 3:54" in result.output

    def test_rest_dry_run_default(self):
        result = runner.invoke(app, ["rest", "--dry-run"])
        assert "Rest: 3:00" in result.output

    def test_rest_zero_finishes(self):
        result = runner.invoke(app, ["rest", "0"])
        assert result.exit_code == 0
        assert "Rest over" in result.output

    def test_short_rest_runs_to_completion(self):
        result = runner.invoke(app, ["rest", "3"])
        assert result.exit_code == 0
        assert "Rest over" in result.output

    def test_rest_negative_rejected(self):
        result = runner.invoke(app, ["rest", "--", "-5"])
        assert result.exit_code != 0

    def test_interval(self):
        result = runner.invoke(app, ["interval", "2", "1", "--rounds", "2"])
        assert result.exit_code == 0
        assert "Intervals complete: 2 rounds" in result.output

    def test_emom(self):
        result = runner.invoke(app, ["emom", "--rounds", "2", "--every", "2"])
        assert result.exit_code == 0
        assert "Round 1/2 done" in result.output
        assert "EMOM complete: 2 rounds" in result.output


class TestTraining:
    def test_next_shows_day_a(self, data_dir):
        result = runner.invoke(app, ["next", "--data-dir", str(data_dir)])
        assert result.exit_code == 0
        assert "Workout A" in result.output
        assert "Squat" in result.output

    def test_unknown_program(self, data_dir):
        result = runner.invoke(app, ["next", "--data-dir", str(data_dir), "--program", "nope"])
        assert result.exit_code != 0

    def test_workout_logs_session(self, data_dir):
        # Set 1 is the squat empty-bar warmup, set 2 the first work set
        result = _run_workout(data_dir, "d 2\nf\n")
        assert result.exit_code == 0
        assert "Workout complete" in result.output
        assert "New PR" in result.output

        history = runner.invoke(app, ["history", "--data-dir", str(data_dir)])
        assert "Workout History" in history.output
        assert "starting_strength" in history.output

        records = runner.invoke(app, ["records", "--data-dir", str(data_dir)])
        assert "Personal Records" in records.output
        assert "Squat" in records.output

    def test_next_day_alternates(self, data_dir):
        _run_workout(data_dir, "f\n")
        result = runner.invoke(app, ["next", "--data-dir", str(data_dir)])
        assert "Workout B" in result.output

    def test_workout_finishes_on_closed_input(self, data_dir):
        result = _run_workout(data_dir, "")
        assert result.exit_code == 0
        assert "Workout complete" in result.output

    def test_workout_cancel(self, data_dir):
        result = _run_workout(data_dir, "c\ny\n")
        assert result.exit_code == 0
        assert "Workout cancelled" in result.output
        history = runner.invoke(app, ["history", "--data-dir", str(data_dir)])
        assert "No workouts yet." in history.output

    def test_workout_bad_command_keeps_going(self, data_dir):
        result = _run_workout(data_dir, "d 999\nzzz\nf\n")
        assert result.exit_code == 0
        assert "Set number must be between" in result.output
        assert "Unknown command" in result.output
        assert "Workout complete" in result.output

    def test_workout_unknown_day(self, data_dir):
        result = _run_workout(data_dir, "f\n", "--day", "Z")
        assert result.exit_code == 1

    def test_circuit_program(self, data_dir):
        result = _run_workout(data_dir, "s\nf\n", "--program", "full_body_circuit")
        assert result.exit_code == 0
        assert "R1 set" in result.output

    def test_history_empty(self, data_dir):
        result = runner.invoke(app, ["history", "--data-dir", str(data_dir)])
        assert result.exit_code == 0
        assert "No workouts yet." in result.output

    def test_records_empty(self, data_dir):
        result = runner.invoke(app, ["records", "--data-dir", str(data_dir)])
        assert "No personal records yet." in result.output

    def test_status(self, data_dir):
        result = runner.invoke(app, ["status", "--data-dir", str(data_dir)])
        assert result.exit_code == 0
        assert "Progression Status" in result.output
        assert "progressing" in result.output


class TestExportImport:
    def test_round_trip(self, data_dir, tmp_path):
        _run_workout(data_dir, "d 2\nf\n")
        out = tmp_path / "backup.json"

        result = runner.invoke(app, ["export", str(out), "--data-dir", str(data_dir)])
        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert len(data["workouts"]) == 1

        restored = tmp_path / "restored"
        result = runner.invoke(app, ["import", str(out), "--data-dir", str(restored), "--force"])
        assert result.exit_code == 0
        history = runner.invoke(app, ["history", "--data-dir", str(restored)])
        assert "starting_strength" in history.output

    def test_import_invalid_file(self, data_dir, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"workouts": [{"workout_id": 1}]}))
        result = runner.invoke(app, ["import", str(bad), "--data-dir", str(data_dir), "--force"])
        assert result.exit_code == 1
        assert "Invalid entry" in result.output

    def test_import_declined(self, data_dir, tmp_path):
        src = tmp_path / "empty.json"
        src.write_text(json.dumps({"workouts": [], "sets": [], "records": []}))
        result = runner.invoke(app, ["import", str(src), "--data-dir", str(data_dir)], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled." in result.output
