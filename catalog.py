from __future__ import annotations
from typing import Set

from db import ExerciseRepository, PlanRepository, is_valid_id
from models import Owner


class CatalogLookup:
    """Read-only reference checks against the exercise catalog and stored plans.

    Malformed identifiers are reported as missing rather than raising, so
    callers can pass raw client input straight through.
    """

    def __init__(self, exercise_repo: ExerciseRepository, plan_repo: PlanRepository) -> None:
        self.exercises = exercise_repo
        self.plans = plan_repo

    async def exercise_exists(self, exercise_id: str) -> bool:
        if not is_valid_id(exercise_id):
            return False
        return await self.exercises.fetch_detail(exercise_id) is not None

    async def exercises_owned_by_admin_or_user(self, user_id: str) -> Set[str]:
        owners = [Owner.admin(), Owner.user(user_id)]
        return {row["id"] for row in await self.exercises.fetch_for_owners(owners)}

    async def plan_exists(self, plan_id: str) -> bool:
        return await self.plans.exists(plan_id)
