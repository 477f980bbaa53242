from __future__ import annotations
from typing import Any, List

from loguru import logger

from catalog import CatalogLookup
from db import PlanRepository, WorkoutRepository
from validators import (
    Err,
    ErrorKind,
    Ok,
    PlanValidator,
    Result,
    WorkoutValidator,
)


class PlannerService:
    """Validates and stores plans and workouts on behalf of a user."""

    def __init__(
        self,
        plan_repo: PlanRepository,
        workout_repo: WorkoutRepository,
        catalog: CatalogLookup,
    ) -> None:
        self.plans = plan_repo
        self.workouts = workout_repo
        self.plan_validator = PlanValidator(catalog)
        self.workout_validator = WorkoutValidator(catalog)

    async def create_plan(self, payload: Any, user_id: str) -> Result[dict]:
        result = await self.plan_validator.validate(payload, user_id)
        if isinstance(result, Err):
            logger.warning(f"Rejected plan from {user_id}: {result.detail}")
            return result
        plan = await self.plans.create(result.value.plan, result.value.creator_id)
        logger.info(f"Plan {plan['id']} created by {user_id}")
        return Ok(plan)

    async def edit_plan(self, plan_id: str, payload: Any, user_id: str) -> Result[dict]:
        """Replace a plan; only its creator may do so."""
        current = await self.plans.fetch_detail(plan_id)
        if current is None:
            return Err(ErrorKind.PLAN_NOT_FOUND, {"id": plan_id})
        if current["creatorID"] != user_id:
            logger.warning(f"User {user_id} tried to edit plan {plan_id}")
            return Err(ErrorKind.NOT_AUTHORIZED, {"id": plan_id})
        result = await self.plan_validator.validate(payload, user_id)
        if isinstance(result, Err):
            logger.warning(f"Rejected edit of plan {plan_id}: {result.detail}")
            return result
        plan = await self.plans.replace(plan_id, result.value.plan)
        logger.info(f"Plan {plan_id} edited by {user_id}")
        return Ok(plan)

    async def create_workout(self, payload: Any, user_id: str) -> Result[dict]:
        result = await self.workout_validator.validate(payload, user_id)
        if isinstance(result, Err):
            logger.warning(f"Rejected workout from {user_id}: {result.kind.value}")
            return result
        workout = await self.workouts.create(result.value.workout, result.value.uid)
        logger.info(f"Workout {workout['id']} created by {user_id}")
        return Ok(workout)

    async def plans_for(self, user_id: str) -> List[dict]:
        return await self.plans.fetch_for_owner(user_id)

    async def workouts_for(self, user_id: str) -> List[dict]:
        return await self.workouts.fetch_for_owner(user_id)
