from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, Sequence, Set, TypeVar, Union

from pydantic import ValidationError

from catalog import CatalogLookup
from models import PlanIn, WorkoutIn, WorkoutGroup, WorkoutSet

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_PLAN_INPUT = "invalid_plan_input"
    INVALID_WORKOUT_INPUT = "invalid_workout_input"
    INVALID_EXERCISE = "invalid_exercise"
    INVALID_TIME = "invalid_time"
    INVALID_PLAN = "invalid_plan"
    PLAN_NOT_FOUND = "plan_not_found"
    NOT_AUTHORIZED = "not_authorized"


MESSAGES = {
    ErrorKind.INVALID_PLAN_INPUT: "Invalid plan input",
    ErrorKind.INVALID_WORKOUT_INPUT: "Invalid workout input",
    ErrorKind.INVALID_EXERCISE: "Invalid exercise",
    ErrorKind.INVALID_TIME: "Invalid time input",
    ErrorKind.INVALID_PLAN: "Invalid plan",
    ErrorKind.PLAN_NOT_FOUND: "Plan not found",
    ErrorKind.NOT_AUTHORIZED: "Not authorized",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: dict = field(default_factory=dict)

    @property
    def message(self) -> str:
        return MESSAGES[self.kind]


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class PlanSubmission:
    plan: PlanIn
    creator_id: str


@dataclass(frozen=True)
class WorkoutSubmission:
    workout: WorkoutIn
    uid: str


def error_details(exc: ValidationError) -> dict:
    """Map pydantic errors to ``{"dotted.path": message}``."""
    return {".".join(str(p) for p in err["loc"]): err["msg"] for err in exc.errors()}


def flatten_sets(groups: Sequence[WorkoutGroup]) -> List[WorkoutSet]:
    """Return every set of ``groups`` in group order, then set order."""
    sequence: list[WorkoutSet] = []
    for group in groups:
        sequence.extend(group.sets)
    return sequence


def is_chronological(sequence: Sequence[WorkoutSet]) -> bool:
    """Each set starts strictly after the previous one and ends after it starts."""
    for index, item in enumerate(sequence):
        if item.startTime >= item.endTime:
            return False
        if index > 0 and item.startTime <= sequence[index - 1].startTime:
            return False
    return True


def _raw_exercise_ids(payload: Any) -> List[str]:
    if not isinstance(payload, dict) or not isinstance(payload.get("groups"), list):
        return []
    ids = []
    for group in payload["groups"]:
        if isinstance(group, dict) and isinstance(group.get("exerciseID"), str):
            ids.append(group["exerciseID"])
    return ids


class PlanValidator:
    """Validate a submitted plan in a single pass.

    Every problem is collected, but callers only ever see one generic
    ``Invalid plan input`` message; the collected problems stay in
    ``Err.detail`` for logging.
    """

    def __init__(self, catalog: CatalogLookup) -> None:
        self.catalog = catalog

    async def validate(self, payload: Any, user_id: str) -> Result[PlanSubmission]:
        problems: dict[str, str] = {}
        plan: Optional[PlanIn] = None
        try:
            plan = PlanIn.model_validate(payload)
        except ValidationError as e:
            problems.update(error_details(e))

        exercise_ids = (
            [g.exerciseID for g in plan.groups] if plan is not None else _raw_exercise_ids(payload)
        )
        for index, exercise_id in enumerate(exercise_ids):
            if not await self.catalog.exercise_exists(exercise_id):
                problems[f"groups.{index}.exerciseID"] = "Unknown exercise"

        if problems or plan is None:
            return Err(ErrorKind.INVALID_PLAN_INPUT, problems)
        return Ok(PlanSubmission(plan, user_id))


class WorkoutValidator:
    """Validate a submitted workout as an ordered pipeline.

    The first failing step wins: schema, exercise references, set timing,
    plan reference, overall timing.
    """

    def __init__(self, catalog: CatalogLookup) -> None:
        self.catalog = catalog

    async def validate(self, payload: Any, user_id: str) -> Result[WorkoutSubmission]:
        try:
            workout = WorkoutIn.model_validate(payload)
        except ValidationError as e:
            return Err(ErrorKind.INVALID_WORKOUT_INPUT, error_details(e))

        for check in (
            self._check_exercises,
            self._check_set_times,
            self._check_plan,
            self._check_overall_time,
        ):
            failure = await check(workout, user_id)
            if failure is not None:
                return failure
        return Ok(WorkoutSubmission(workout, user_id))

    async def _check_exercises(self, workout: WorkoutIn, user_id: str) -> Optional[Err]:
        allowed = await self.catalog.exercises_owned_by_admin_or_user(user_id)
        for index, group in enumerate(workout.groups):
            if group.exerciseID not in allowed:
                return Err(
                    ErrorKind.INVALID_EXERCISE,
                    {f"groups.{index}.exerciseID": group.exerciseID},
                )
        return None

    async def _check_set_times(self, workout: WorkoutIn, user_id: str) -> Optional[Err]:
        if not is_chronological(flatten_sets(workout.groups)):
            return Err(ErrorKind.INVALID_TIME, {"sets": "out of order"})
        return None

    async def _check_plan(self, workout: WorkoutIn, user_id: str) -> Optional[Err]:
        if not await self.catalog.plan_exists(workout.planID):
            return Err(ErrorKind.INVALID_PLAN, {"planID": workout.planID})
        return None

    async def _check_overall_time(self, workout: WorkoutIn, user_id: str) -> Optional[Err]:
        if workout.startTime >= workout.endTime:
            return Err(ErrorKind.INVALID_TIME, {"startTime": workout.startTime})
        return None


EXERCISE_NAME_MAX = 32
EXERCISE_NOTES_MAX = 200


def exercise_errors(payload: dict, known_muscles: Set[str]) -> dict:
    """Return ``{field: message}`` for every invalid exercise field."""
    errors: dict[str, str] = {}
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        errors["name"] = "Name is required"
    elif len(name) > EXERCISE_NAME_MAX:
        errors["name"] = "Name must be at most 32 characters"

    muscles = payload.get("muscles")
    if not isinstance(muscles, list) or not muscles:
        errors["muscles"] = "Exercise must have at least one muscle"
    elif any(not isinstance(m, str) or m not in known_muscles for m in muscles):
        errors["muscles"] = "Must choose valid muscles"

    notes = payload.get("notes")
    if notes is not None and (not isinstance(notes, str) or len(notes) > EXERCISE_NOTES_MAX):
        errors["notes"] = "Notes may be at most 200 characters"
    return errors
