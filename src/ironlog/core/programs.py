"""
Program templates loaded from YAML.

Bundled programs live in ``src/ironlog/library/programs/*.yaml``; user
programs in ``~/.ironlog/programs/*.yaml``.  A user file whose
``program_id`` matches a bundled one is deep-merged over it (list values
such as ``days`` replace the bundled list wholesale).
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Any

from .engine.config_loader import deep_merge, get_package_dir, get_user_dir, load_yaml_file
from .models import Day, Program, ProgramExercise, ProgressionSettings, Section


def _program_exercise_from_dict(d: dict[str, Any]) -> ProgramExercise:
    if "exercise_id" not in d:
        raise ValueError("program exercise missing 'exercise_id'")
    duration = d.get("duration_minutes")
    return ProgramExercise(
        exercise_id=str(d["exercise_id"]),
        sets=int(d.get("sets", 3)),
        reps=int(d.get("reps", 5)),
        duration_minutes=float(duration) if duration is not None else None,
    )


def _section_from_dict(d: dict[str, Any]) -> Section:
    cap = d.get("time_cap_minutes")
    return Section(
        exercises=[_program_exercise_from_dict(e) for e in d.get("exercises", [])],
        section_type=str(d.get("section_type", "straight")),  # type: ignore[arg-type]
        rounds=int(d.get("rounds", 1)),
        rest_between_rounds=int(d.get("rest_between_rounds", 0)),
        interval_seconds=int(d.get("interval_seconds", 60)),
        time_cap_minutes=float(cap) if cap is not None else None,
    )


def _day_from_dict(d: dict[str, Any]) -> Day:
    if "day_id" not in d:
        raise ValueError("day missing 'day_id'")
    # Flat days without sections are a single straight section
    if "sections" in d:
        sections = [_section_from_dict(s) for s in d["sections"]]
    else:
        sections = [_section_from_dict({"exercises": d.get("exercises", [])})]
    return Day(day_id=str(d["day_id"]), name=str(d.get("name", d["day_id"])), sections=sections)


def program_from_dict(d: dict[str, Any]) -> Program:
    """Convert a raw program mapping to a Program.

    Raises ValueError if a required field is missing or a value is illegal.
    """
    for key in ("program_id", "name", "days"):
        if key not in d:
            raise ValueError(f"program missing '{key}'")

    progression = None
    if isinstance(d.get("progression"), dict):
        p = d["progression"]
        defaults = ProgressionSettings()
        progression = ProgressionSettings(
            upper_increment=float(p.get("upper_increment", defaults.upper_increment)),
            lower_increment=float(p.get("lower_increment", defaults.lower_increment)),
            deadlift_increment=float(p.get("deadlift_increment", defaults.deadlift_increment)),
            failure_retries=int(p.get("failure_retries", defaults.failure_retries)),
            deload_percent=float(p.get("deload_percent", defaults.deload_percent)),
            max_deloads=int(p.get("max_deloads", defaults.max_deloads)),
        )

    try:
        return Program(
            program_id=str(d["program_id"]),
            name=str(d["name"]),
            days=[_day_from_dict(day) for day in d["days"]],
            alternating=bool(d.get("alternating", False)),
            days_per_week=int(d.get("days_per_week", 3)),
            progression=progression,
        )
    except (TypeError, AttributeError) as e:
        raise ValueError(f"malformed program: {e}") from e


def _raw_programs(directory: Path) -> dict[str, dict[str, Any]]:
    found: dict[str, dict[str, Any]] = {}
    if not directory.is_dir():
        return found
    for path in sorted(directory.glob("*.yaml")):
        raw = load_yaml_file(path)
        if not raw:
            continue
        found[str(raw.get("program_id", path.stem))] = raw
    return found


def load_programs(user_dir: Path | None = None) -> dict[str, Program]:
    """Return {program_id: Program} from bundled and user program files.

    Invalid programs are skipped with a warning.
    """
    merged = _raw_programs(get_package_dir() / "library" / "programs")
    user_programs = (user_dir if user_dir is not None else get_user_dir()) / "programs"
    for program_id, raw in _raw_programs(user_programs).items():
        merged[program_id] = deep_merge(merged[program_id], raw) if program_id in merged else raw

    result: dict[str, Program] = {}
    for program_id, raw in merged.items():
        raw.setdefault("program_id", program_id)
        try:
            result[program_id] = program_from_dict(raw)
        except ValueError as exc:
            warnings.warn(f"ironlog: skipping program '{program_id}' ({exc})", stacklevel=2)
    return result
