from __future__ import annotations
from typing import Dict, List, Optional

from loguru import logger

from db import WorkoutRepository
from tools import MathTools


class StatisticsService:
    """Compute training volume time series from a user's logged workouts."""

    VOLUME_PER_SECOND = "volpersec"

    def __init__(self, workout_repo: WorkoutRepository) -> None:
        self.workouts = workout_repo

    @staticmethod
    def group_volume(group: dict) -> float:
        """Sum of weight times reps over the exercise sets of ``group``.

        A set without ``weight`` or ``reps`` contributes nothing.
        """
        return MathTools.volume(
            (s.get("reps", 0), s.get("weight", 0))
            for s in group["sets"]
            if s["type"] == "exercise"
        )

    @staticmethod
    def group_rate(group: dict) -> float:
        sets = group["sets"]
        elapsed = MathTools.elapsed_seconds(sets[0]["startTime"], sets[-1]["endTime"])
        return MathTools.volume_rate(StatisticsService.group_volume(group), elapsed)

    async def matching_groups(self, user_id: str, exercise_id: Optional[str]) -> List[dict]:
        """Return the caller's groups for ``exercise_id`` in workout, then group order."""
        if not exercise_id:
            return []
        groups: list[dict] = []
        for workout in await self.workouts.fetch_for_owner(user_id):
            for group in workout["groups"]:
                if group["exerciseID"] == exercise_id and group["sets"]:
                    groups.append(group)
        return groups

    async def volume_over_time(
        self,
        user_id: str,
        exercise_id: Optional[str],
        kind: Optional[str] = VOLUME_PER_SECOND,
    ) -> Dict[str, list]:
        """Return parallel ``x`` (group start, epoch ms) and ``y`` series."""
        x: list[int] = []
        y: list[float] = []
        if kind != self.VOLUME_PER_SECOND:
            logger.debug(f"Unsupported analytics type {kind!r}")
            return {"x": x, "y": y}
        for group in await self.matching_groups(user_id, exercise_id):
            x.append(group["sets"][0]["startTime"])
            y.append(self.group_rate(group))
        return {"x": x, "y": y}
