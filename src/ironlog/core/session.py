"""
Session state machine: one active workout from begin to finish.

Builds the sets for a training day (targets from the progression
engine, warmups from the plate math), records completions, drives the
rest clock between sets, and at finish scans for personal records and
reports plateau status.

    idle ──begin──▶ in_progress ──finish──▶ completed
                         │
                         └──cancel──▶ cancelled

A new session may begin from any state except ``in_progress``.

Every change is written to the PersistenceStore before the in-memory
copy is replaced, so a failing store leaves the session unchanged.

Clock completions raised on the tick thread are queued and applied on
the thread that owns the session, at the start of the next operation or
in process_clock_events().
"""

from __future__ import annotations

import logging
import math
import queue
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Literal, Protocol

from .config import RPE_VALUES, WARMUP_REST_SECONDS
from .models import (
    Day,
    Exercise,
    Loadout,
    PersonalRecord,
    PlateauStatus,
    Program,
    ProgramExercise,
    Readiness,
    Section,
    Settings,
    Workout,
    WorkoutSet,
    WorkoutSummary,
)
from .plates import compute_loadout, generate_warmup_ladder, round_half_up
from .progression import ProgressionEngine, estimated_one_rep_max
from .rest_policy import calculate_rest_seconds
from .timer import RestClock

logger = logging.getLogger(__name__)

SessionState = Literal["idle", "in_progress", "completed", "cancelled"]


class SessionStateError(RuntimeError):
    """Raised when a session operation is not valid in the current state."""


# =============================================================================
# Collaborator contracts
# =============================================================================


class PersistenceStore(Protocol):
    """Write side of workout storage."""

    def create_workout(self, workout: Workout) -> Workout: ...

    def update_workout(self, workout: Workout) -> None: ...

    def delete_workout(self, workout_id: int) -> None: ...

    def create_set(self, workout_set: WorkoutSet) -> WorkoutSet: ...

    def update_set(self, workout_set: WorkoutSet) -> None: ...

    def delete_set(self, set_id: int) -> None: ...

    def get_personal_record(self, exercise_id: str, record_type: str) -> PersonalRecord | None: ...

    def upsert_personal_record(self, record: PersonalRecord) -> PersonalRecord: ...


class ExerciseCatalog(Protocol):
    def get(self, exercise_id: str) -> Exercise | None: ...


# =============================================================================
# Results and context
# =============================================================================


@dataclass
class SetOutcome:
    """What happened when a set was toggled."""

    workout_set: WorkoutSet
    rest_seconds: int = 0  # Rest clock started, 0 when none
    timer_started: bool = False  # Duration countdown started


@dataclass
class SessionContext:
    """Per-exercise placement of a set inside the day's layout."""

    section_index: int
    section: Section
    entry: ProgramExercise
    is_round_end: bool = False


@dataclass(eq=False)
class _ActiveDuration:
    set_id: int
    target_minutes: float


def _now_iso(now: datetime) -> str:
    return now.isoformat(timespec="seconds")


# =============================================================================
# State machine
# =============================================================================


class SessionStateMachine:
    """
    Orchestrates one active workout.

    Args:
        engine: Progression engine used for target weights and plateaus
        store: Persistence for workouts, sets and records
        catalog: Exercise lookup; unknown ids are skipped when building sets
        clock: Rest clock driven after each completed set
        settings: Bar weight and plate inventory for breakdowns
        now: Clock function, injectable for tests
    """

    def __init__(
        self,
        engine: ProgressionEngine,
        store: PersistenceStore,
        catalog: ExerciseCatalog,
        clock: RestClock,
        settings: Settings | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.engine = engine
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.settings = settings if settings is not None else Settings()
        self.now = now

        self.state: SessionState = "idle"
        self.workout: Workout | None = None
        self.program: Program | None = None
        self.day: Day | None = None
        self.sets: list[WorkoutSet] = []
        self._started_at: datetime | None = None
        self._active_duration: _ActiveDuration | None = None
        self._owner_thread = threading.get_ident()
        self._clock_events: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()

    # -- queries ------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.state == "in_progress"

    def get_set(self, set_id: int) -> WorkoutSet:
        for s in self.sets:
            if s.set_id == set_id:
                return s
        raise KeyError(set_id)

    def sets_for_exercise(self, exercise_id: str) -> list[WorkoutSet]:
        return [s for s in self.sets if s.exercise_id == exercise_id]

    def total_volume(self) -> float:
        return sum(s.volume for s in self.sets)

    # -- begin --------------------------------------------------------------

    def begin(self, day: Day, program: Program, readiness: Readiness | None = None) -> Workout:
        """
        Start a workout for ``day`` and create all its sets.

        Raises:
            SessionStateError: If a session is already in progress
        """
        self.process_clock_events()
        if self.state == "in_progress":
            raise SessionStateError("A workout is already in progress")

        started = self.now()
        workout = self.store.create_workout(
            Workout(
                program_id=program.program_id,
                day_id=day.day_id,
                date=started.date().isoformat(),
                start_time=_now_iso(started),
                readiness=readiness,
            )
        )

        created: list[WorkoutSet] = []
        try:
            for section in day.sections:
                for new_set in self._build_section_sets(workout, program, section, len(created)):
                    created.append(self.store.create_set(new_set))
        except Exception:
            logger.warning("Failed to create workout %s; rolling back", workout.workout_id)
            for s in created:
                if s.set_id is not None:
                    self.store.delete_set(s.set_id)
            if workout.workout_id is not None:
                self.store.delete_workout(workout.workout_id)
            raise

        self.clock.stop()
        self.workout = workout
        self.program = program
        self.day = day
        self.sets = created
        self._started_at = started
        self._active_duration = None
        self.state = "in_progress"
        logger.info(
            "Workout %s started: %s / %s (%d sets)",
            workout.workout_id, program.program_id, day.day_id, len(created),
        )
        return workout

    def _build_section_sets(
        self,
        workout: Workout,
        program: Program,
        section: Section,
        order_start: int,
    ) -> list[WorkoutSet]:
        assert workout.workout_id is not None
        order = order_start
        result: list[WorkoutSet] = []

        entries: list[tuple[ProgramExercise, Exercise, float]] = []
        for entry in section.exercises:
            exercise = self.catalog.get(entry.exercise_id)
            if exercise is None:
                logger.warning("Unknown exercise %r skipped", entry.exercise_id)
                continue
            target = self._target_weight(exercise, program)
            entries.append((entry, exercise, target))

        if section.is_round_based:
            for round_number in range(1, section.rounds + 1):
                for entry, exercise, target in entries:
                    for n in range(1, entry.sets + 1):
                        set_number = (round_number - 1) * entry.sets + n
                        result.append(
                            self._work_set(
                                workout.workout_id, exercise, entry, target,
                                set_number, order, round_number,
                            )
                        )
                        order += 1
            return result

        for entry, exercise, target in entries:
            if self._warmup_eligible(exercise, section):
                for step in generate_warmup_ladder(target, exercise.bar_weight):
                    result.append(
                        WorkoutSet(
                            workout_id=workout.workout_id,
                            exercise_id=exercise.exercise_id,
                            set_number=0,
                            target_weight=step.weight,
                            actual_weight=step.weight,
                            target_reps=step.reps,
                            is_warmup=True,
                            rest_seconds=WARMUP_REST_SECONDS,
                            note=step.label,
                            order=order,
                        )
                    )
                    order += 1
            for n in range(1, entry.sets + 1):
                result.append(
                    self._work_set(workout.workout_id, exercise, entry, target, n, order, None)
                )
                order += 1
        return result

    def _work_set(
        self,
        workout_id: int,
        exercise: Exercise,
        entry: ProgramExercise,
        target: float,
        set_number: int,
        order: int,
        round_number: int | None,
    ) -> WorkoutSet:
        if exercise.tracking_type == "time":
            return WorkoutSet(
                workout_id=workout_id,
                exercise_id=exercise.exercise_id,
                set_number=set_number,
                target_duration=entry.duration_minutes or 0.0,
                round_number=round_number,
                order=order,
            )
        return WorkoutSet(
            workout_id=workout_id,
            exercise_id=exercise.exercise_id,
            set_number=set_number,
            target_weight=target,
            actual_weight=target,
            target_reps=entry.reps,
            round_number=round_number,
            rest_seconds=exercise.default_rest_seconds,
            order=order,
        )

    def _target_weight(self, exercise: Exercise, program: Program) -> float:
        if exercise.tracking_type != "weight":
            return exercise.start_weight
        return self.engine.next_weight(exercise, program)

    @staticmethod
    def _warmup_eligible(exercise: Exercise, section: Section) -> bool:
        return (
            section.section_type == "straight"
            and exercise.is_barbell
            and exercise.tracking_type == "weight"
        )

    # -- set completion -----------------------------------------------------

    def complete_set(self, set_id: int, actual_reps: int | None = None) -> SetOutcome:
        """
        Toggle completion of a set.

        Completing a weight/rep set credits the target reps unless
        ``actual_reps`` is given and starts the rest clock.  Duration sets
        start a countdown on the first call and stop it early (recording
        the elapsed time) on the second.  Toggling a completed set back
        clears its actuals.  Reusing the clock for a rest or another
        countdown first records a running duration set with its elapsed
        time.

        Raises:
            SessionStateError: If no workout is in progress
            KeyError: If ``set_id`` is not part of the workout
        """
        self._require_active()
        current = self.get_set(set_id)

        if current.completed:
            updated = replace(
                current,
                completed=False,
                actual_reps=0,
                actual_duration=0.0,
                timestamp=None,
            )
            self._write_set(updated)
            return SetOutcome(workout_set=updated)

        if current.is_duration:
            return self._toggle_duration(current)

        reps = current.target_reps if actual_reps is None else actual_reps
        updated = replace(
            current,
            completed=True,
            actual_reps=reps,
            timestamp=_now_iso(self.now()),
        )
        self._write_set(updated)

        rest = self._rest_after(updated)
        if rest > 0:
            self._release_clock()
            self.clock.start(rest)
        logger.info(
            "Set %s done: %s %gx%d (rest %ds)",
            set_id, updated.exercise_id, updated.actual_weight, reps, rest,
        )
        return SetOutcome(workout_set=updated, rest_seconds=rest)

    def _toggle_duration(self, current: WorkoutSet) -> SetOutcome:
        assert current.set_id is not None and current.target_duration is not None
        active = self._active_duration

        if active is not None and active.set_id == current.set_id:
            updated = self._release_clock()
            assert updated is not None
            rest = self._start_round_rest(updated)
            return SetOutcome(workout_set=updated, rest_seconds=rest)

        self._release_clock()
        active = _ActiveDuration(set_id=current.set_id, target_minutes=current.target_duration)
        self._active_duration = active

        def _finished() -> None:
            self._post(lambda: self._duration_finished(active))

        self.clock.start(int(round_half_up(active.target_minutes * 60)), on_done=_finished)
        logger.info("Duration set %s started: %g min", active.set_id, active.target_minutes)
        return SetOutcome(workout_set=current, timer_started=True)

    def _duration_finished(self, active: _ActiveDuration) -> None:
        if self._active_duration is not active or self.state != "in_progress":
            return
        updated = self._record_duration(active.set_id, active.target_minutes)
        self._active_duration = None
        self._start_round_rest(updated)

    def _release_clock(self) -> WorkoutSet | None:
        """
        Close out a duration countdown before the clock is reused.

        A countdown still running is recorded with its elapsed time; one
        that already ran out (its completion still queued) with its target.
        """
        active = self._active_duration
        if active is None:
            return None
        if self.clock.is_active:
            minutes = round_half_up(self.clock.elapsed / 60, 1)
            self.clock.stop()
        else:
            minutes = active.target_minutes
        updated = self._record_duration(active.set_id, minutes)
        self._active_duration = None
        return updated

    def _record_duration(self, set_id: int, minutes: float) -> WorkoutSet:
        updated = replace(
            self.get_set(set_id),
            completed=True,
            actual_duration=minutes,
            timestamp=_now_iso(self.now()),
        )
        self._write_set(updated)
        logger.info("Duration set %s done: %g min", set_id, minutes)
        return updated

    def _rest_after(self, finished: WorkoutSet) -> int:
        if finished.is_warmup:
            return 0
        exercise = self.catalog.get(finished.exercise_id)
        if exercise is None:
            return 0

        context = self.context_for(finished)
        if context is not None and context.section.is_round_based:
            return self._round_rest(finished)

        previous = self._previous_work_set(finished)
        return calculate_rest_seconds(exercise, finished, previous)

    def _round_rest(self, finished: WorkoutSet) -> int:
        """Rest between rounds when ``finished`` closes a round, else 0."""
        context = self.context_for(finished)
        if context is None or not context.section.is_round_based or not context.is_round_end:
            return 0
        return context.section.rest_between_rounds

    def _start_round_rest(self, finished: WorkoutSet) -> int:
        rest = self._round_rest(finished)
        if rest > 0:
            self.clock.start(rest)
        return rest

    def _previous_work_set(self, finished: WorkoutSet) -> WorkoutSet | None:
        # Set number minus one, done or not: a skipped set counts as a miss
        for s in self.sets:
            if (
                s.exercise_id == finished.exercise_id
                and not s.is_warmup
                and s.set_number == finished.set_number - 1
            ):
                return s
        return None

    def context_for(self, workout_set: WorkoutSet) -> SessionContext | None:
        """
        Locate the section a set belongs to.

        For round-based sections ``is_round_end`` marks the last set of the
        last exercise in the set's round.
        """
        if self.day is None:
            return None
        for index, section in enumerate(self.day.sections):
            for entry in section.exercises:
                if entry.exercise_id != workout_set.exercise_id:
                    continue
                if not section.is_round_based:
                    return SessionContext(index, section, entry)
                round_sets = [
                    s for s in self.sets
                    if s.round_number == workout_set.round_number
                    and any(e.exercise_id == s.exercise_id for e in section.exercises)
                ]
                last = max(round_sets, key=lambda s: s.order) if round_sets else None
                is_end = last is not None and last.set_id == workout_set.set_id
                return SessionContext(index, section, entry, is_round_end=is_end)
        return None

    # -- RPE, notes and edits -----------------------------------------------

    def set_rpe(self, set_id: int, rpe: int | None) -> WorkoutSet:
        self._require_active()
        if rpe not in RPE_VALUES:
            raise ValueError(f"Invalid rpe: {rpe}. Must be one of {RPE_VALUES}")
        updated = replace(self.get_set(set_id), rpe=rpe)
        self._write_set(updated)
        return updated

    def cycle_rpe(self, set_id: int) -> WorkoutSet:
        """Step the set's RPE through unset, 6, 7, 8, 9, 10 and back to unset."""
        current = self.get_set(set_id).rpe
        idx = RPE_VALUES.index(current)
        return self.set_rpe(set_id, RPE_VALUES[(idx + 1) % len(RPE_VALUES)])

    def edit_target_weight(self, exercise_id: str, weight: float) -> list[WorkoutSet]:
        """
        Change the target of an exercise's incomplete work sets.

        Warmups of barbell exercises in straight sections are rebuilt for
        the new weight.  Completed work sets keep their values.

        Returns:
            The exercise's sets after the edit, in order
        """
        self._require_active()
        if weight < 0:
            raise ValueError("weight must be non-negative")

        for s in self.sets_for_exercise(exercise_id):
            if s.is_warmup or s.completed or s.is_duration:
                continue
            updated = replace(s, target_weight=weight, actual_weight=weight)
            self._write_set(updated)

        exercise = self.catalog.get(exercise_id)
        section = self._section_of(exercise_id)
        if exercise is not None and section is not None and self._warmup_eligible(exercise, section):
            self._rebuild_warmups(exercise, weight)

        logger.info("Target weight for %s set to %g", exercise_id, weight)
        return self.sets_for_exercise(exercise_id)

    def _rebuild_warmups(self, exercise: Exercise, weight: float) -> None:
        assert self.workout is not None and self.workout.workout_id is not None
        exercise_sets = self.sets_for_exercise(exercise.exercise_id)
        old_warmups = [s for s in exercise_sets if s.is_warmup]
        first_order = min(s.order for s in exercise_sets)

        for s in old_warmups:
            assert s.set_id is not None
            self.store.delete_set(s.set_id)
            self.sets = [x for x in self.sets if x.set_id != s.set_id]

        fresh: list[WorkoutSet] = []
        for step in generate_warmup_ladder(weight, exercise.bar_weight):
            fresh.append(
                self.store.create_set(
                    WorkoutSet(
                        workout_id=self.workout.workout_id,
                        exercise_id=exercise.exercise_id,
                        set_number=0,
                        target_weight=step.weight,
                        actual_weight=step.weight,
                        target_reps=step.reps,
                        is_warmup=True,
                        rest_seconds=WARMUP_REST_SECONDS,
                        note=step.label,
                        order=first_order,
                    )
                )
            )

        before = [s for s in self.sets if s.order < first_order]
        after = [s for s in self.sets if s.order >= first_order]
        self._reindex(before + fresh + after)

    def _reindex(self, ordered: list[WorkoutSet]) -> None:
        result = []
        for order, s in enumerate(ordered):
            if s.order != order:
                s = replace(s, order=order)
                self.store.update_set(s)
            result.append(s)
        self.sets = result

    def edit_target_duration(self, exercise_id: str, minutes: float) -> list[WorkoutSet]:
        """Change the target duration of an exercise's incomplete duration sets."""
        self._require_active()
        if minutes <= 0:
            raise ValueError("minutes must be positive")
        for s in self.sets_for_exercise(exercise_id):
            if s.is_duration and not s.completed:
                self._write_set(replace(s, target_duration=minutes))
        return self.sets_for_exercise(exercise_id)

    def set_notes(self, text: str) -> Workout:
        self._require_active()
        assert self.workout is not None
        updated = replace(self.workout, notes=text)
        self.store.update_workout(updated)
        self.workout = updated
        return updated

    def plate_breakdown(self, set_id: int) -> Loadout:
        """Loadout for a set's target weight with the configured bar and plates."""
        s = self.get_set(set_id)
        exercise = self.catalog.get(s.exercise_id)
        bar = self.settings.bar_weight
        if exercise is not None and exercise.bar_weight > 0:
            bar = exercise.bar_weight
        return compute_loadout(s.target_weight, bar, self.settings.available_plates)

    def start_section_timer(self, section_index: int) -> str:
        """
        Start the clock for a timed section.

        EMOM sections run ``rounds`` intervals of ``interval_seconds``;
        AMRAP sections count down their time cap; round-based sections
        with rest run one work interval per round.

        Returns:
            The clock mode that was started

        Raises:
            SessionStateError: If no workout is in progress or the section
                has no timer
        """
        self._require_active()
        assert self.day is not None
        section = self.day.sections[section_index]

        if section.section_type == "emom":
            self._release_clock()
            self.clock.start_emom(section.interval_seconds, section.rounds)
            return "emom"
        if section.section_type == "amrap" and section.time_cap_minutes:
            self._release_clock()
            self.clock.start_countdown(int(round_half_up(section.time_cap_minutes * 60)))
            return "countdown"
        if section.is_round_based and section.rest_between_rounds > 0:
            self._release_clock()
            self.clock.start_interval(
                section.interval_seconds, section.rest_between_rounds, section.rounds
            )
            return "interval"
        raise SessionStateError(f"Section {section_index} ({section.section_type}) has no timer")

    def _section_of(self, exercise_id: str) -> Section | None:
        if self.day is None:
            return None
        for section in self.day.sections:
            if any(e.exercise_id == exercise_id for e in section.exercises):
                return section
        return None

    # -- finish / cancel ----------------------------------------------------

    def finish(self) -> WorkoutSummary:
        """
        Complete the workout: totals, personal records and plateau status.

        A duration countdown still running is recorded with its elapsed time.

        Raises:
            SessionStateError: If no workout is in progress
        """
        self._require_active()
        assert self.workout is not None and self._started_at is not None

        self._release_clock()
        self.clock.stop()

        ended = self.now()
        duration = max(0, math.floor((ended - self._started_at).total_seconds() / 60))
        completed = replace(
            self.workout,
            status="completed",
            end_time=_now_iso(ended),
            duration_minutes=duration,
            total_volume=self.total_volume(),
        )
        self.store.update_workout(completed)
        self.workout = completed

        records = self._scan_records(completed)
        plateau = self._plateau_report()

        self.state = "completed"
        logger.info(
            "Workout %s completed: %d min, volume %g, %d PRs",
            completed.workout_id, duration, completed.total_volume, len(records),
        )
        return WorkoutSummary(workout=completed, new_records=records, plateau=plateau)

    def _scan_records(self, workout: Workout) -> list[PersonalRecord]:
        best: dict[tuple[str, str], PersonalRecord | None] = {}
        new_records: dict[tuple[str, str], PersonalRecord] = {}

        for s in self.sets:
            if not s.completed or s.is_warmup or s.is_duration or s.actual_reps <= 0:
                continue
            record_type = f"{s.target_reps}rm"
            key = (s.exercise_id, record_type)
            if key not in best:
                best[key] = self.store.get_personal_record(s.exercise_id, record_type)
            current = best[key]
            if current is not None and not current.is_beaten_by(s.actual_weight, s.actual_reps):
                continue
            record = PersonalRecord(
                exercise_id=s.exercise_id,
                record_type=record_type,
                weight=s.actual_weight,
                reps=s.actual_reps,
                estimated_1rm=estimated_one_rep_max(s.actual_weight, s.actual_reps),
                workout_id=workout.workout_id,
                date=workout.date,
                record_id=current.record_id if current is not None else None,
            )
            best[key] = record
            new_records[key] = record

        saved = []
        for record in new_records.values():
            saved.append(self.store.upsert_personal_record(record))
            logger.info(
                "New PR: %s %s %gx%d",
                record.exercise_id, record.record_type, record.weight, record.reps,
            )
        return saved

    def _plateau_report(self) -> dict[str, PlateauStatus]:
        assert self.day is not None
        report: dict[str, PlateauStatus] = {}
        for exercise_id in self.day.exercise_ids():
            exercise = self.catalog.get(exercise_id)
            if exercise is None or exercise.tracking_type != "weight":
                continue
            report[exercise_id] = self.engine.plateau_status(exercise, self.program)
        return report

    def cancel(self) -> None:
        """Discard the workout and all of its sets."""
        self._require_active()
        assert self.workout is not None and self.workout.workout_id is not None

        self.clock.stop()
        self._active_duration = None
        for s in self.sets:
            if s.set_id is not None:
                self.store.delete_set(s.set_id)
        self.store.delete_workout(self.workout.workout_id)
        logger.info("Workout %s cancelled", self.workout.workout_id)

        self.workout = None
        self.sets = []
        self.state = "cancelled"

    # -- internals ----------------------------------------------------------

    def _require_active(self) -> None:
        self.process_clock_events()
        if self.state != "in_progress":
            raise SessionStateError(f"No workout in progress (state: {self.state})")

    def _write_set(self, updated: WorkoutSet) -> None:
        self.store.update_set(updated)
        self.sets = [updated if s.set_id == updated.set_id else s for s in self.sets]

    # -- clock events -------------------------------------------------------

    def process_clock_events(self) -> int:
        """
        Apply clock completions queued by the tick thread.

        Every operation does this first; an interactive caller may also
        call it while waiting for input.

        Returns:
            Number of events applied
        """
        applied = 0
        while True:
            try:
                event = self._clock_events.get_nowait()
            except queue.Empty:
                return applied
            event()
            applied += 1

    def _post(self, event: Callable[[], None]) -> None:
        if threading.get_ident() == self._owner_thread:
            event()
        else:
            self._clock_events.put(event)
