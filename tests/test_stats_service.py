import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import WorkoutRepository
from models import WorkoutIn
from stats_service import StatisticsService

T = 1600000000000
CURLS = "e" * 32
ROWS = "f" * 32
ALICE = "a" * 32
BOB = "b" * 32


def _curl_group(start: int) -> dict:
    return {
        "exerciseID": CURLS,
        "sets": [
            {"type": "exercise", "reps": 8, "weight": 40, "startTime": start, "endTime": start + 4000},
            {"type": "rest", "duration": 60, "startTime": start + 4000, "endTime": start + 8000},
            {"type": "exercise", "reps": 6, "weight": 40, "startTime": start + 8000, "endTime": start + 12000},
        ],
    }


def _workout(start: int, groups: list) -> WorkoutIn:
    return WorkoutIn.model_validate(
        {"planID": "0" * 32, "startTime": start, "endTime": start + 60000, "groups": groups}
    )


def test_group_volume_ignores_rest_sets():
    group = _curl_group(T)
    assert StatisticsService.group_volume(group) == 8 * 40 + 6 * 40


def test_group_rate_is_volume_per_second():
    assert StatisticsService.group_rate(_curl_group(T)) == pytest.approx(560 / 12)


def test_group_rate_zero_elapsed():
    group = {
        "exerciseID": CURLS,
        "sets": [{"type": "exercise", "reps": 5, "weight": 10, "startTime": T, "endTime": T}],
    }
    assert StatisticsService.group_rate(group) == 0.0


@pytest.mark.asyncio
async def test_volume_over_time_single_group(tmp_path):
    repo = WorkoutRepository(str(tmp_path / "stats.db"))
    await repo.create(_workout(T, [_curl_group(T)]), ALICE)
    data = await StatisticsService(repo).volume_over_time(ALICE, CURLS, "volpersec")
    assert data["x"] == [T]
    assert data["y"] == [pytest.approx(560 / 12)]


@pytest.mark.asyncio
async def test_volume_over_time_filters_and_orders(tmp_path):
    repo = WorkoutRepository(str(tmp_path / "stats.db"))
    rows_group = {
        "exerciseID": ROWS,
        "sets": [{"type": "exercise", "reps": 10, "weight": 55, "startTime": T + 20000, "endTime": T + 26000}],
    }
    await repo.create(_workout(T, [_curl_group(T), rows_group]), ALICE)
    await repo.create(_workout(T + 86400000, [_curl_group(T + 86400000)]), ALICE)
    service = StatisticsService(repo)

    data = await service.volume_over_time(ALICE, CURLS)
    assert data["x"] == [T, T + 86400000]
    assert len(data["y"]) == 2

    rows = await service.volume_over_time(ALICE, ROWS)
    assert rows["y"] == [pytest.approx(550 / 6)]


@pytest.mark.asyncio
async def test_volume_over_time_is_scoped_to_user(tmp_path):
    repo = WorkoutRepository(str(tmp_path / "stats.db"))
    await repo.create(_workout(T, [_curl_group(T)]), ALICE)
    await repo.create(_workout(T + 1000000, [_curl_group(T + 1000000)]), BOB)
    service = StatisticsService(repo)
    assert (await service.volume_over_time(ALICE, CURLS))["x"] == [T]
    assert (await service.volume_over_time(BOB, CURLS))["x"] == [T + 1000000]


@pytest.mark.asyncio
async def test_volume_over_time_without_filter_or_type(tmp_path):
    repo = WorkoutRepository(str(tmp_path / "stats.db"))
    await repo.create(_workout(T, [_curl_group(T)]), ALICE)
    service = StatisticsService(repo)
    assert await service.volume_over_time(ALICE, None) == {"x": [], "y": []}
    assert await service.volume_over_time(ALICE, CURLS, "volume") == {"x": [], "y": []}
    assert await service.volume_over_time(ALICE, CURLS, None) == {"x": [], "y": []}


def test_group_volume_skips_sets_without_weight():
    group = {
        "exerciseID": CURLS,
        "sets": [
            {"type": "exercise", "reps": 12, "startTime": T, "endTime": T + 4000},
            {"type": "exercise", "reps": 5, "weight": 20, "startTime": T + 5000, "endTime": T + 8000},
        ],
    }
    assert StatisticsService.group_volume(group) == 100
    assert StatisticsService.group_rate(group) == pytest.approx(100 / 8)
