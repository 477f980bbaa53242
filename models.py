from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, ClassVar, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Owner:
    """Owner of a catalog entry: either a specific user or the admin."""

    user_id: Optional[str] = None

    ADMIN: ClassVar[str] = "admin"

    @classmethod
    def admin(cls) -> "Owner":
        return cls(None)

    @classmethod
    def user(cls, user_id: str) -> "Owner":
        if not user_id or user_id == cls.ADMIN:
            raise ValueError("invalid user id")
        return cls(user_id)

    @classmethod
    def from_wire(cls, value: str) -> "Owner":
        if value == cls.ADMIN:
            return cls.admin()
        return cls.user(value)

    @property
    def is_admin(self) -> bool:
        return self.user_id is None

    def to_wire(self) -> str:
        return self.ADMIN if self.is_admin else self.user_id


class ExerciseSet(BaseModel):
    """Prescribed effort; a bodyweight set may omit ``weight``."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["exercise"]
    reps: Optional[float] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)


class RestSet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["rest"]
    duration: Optional[float] = Field(default=None, ge=0)


PlanSet = Annotated[Union[ExerciseSet, RestSet], Field(discriminator="type")]


class PlanGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    exerciseID: str = Field(min_length=1)
    sets: List[PlanSet] = Field(min_length=1)


class PlanIn(BaseModel):
    """Submitted plan body for create and edit."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    groups: List[PlanGroup] = Field(min_length=1)


class WorkoutExerciseSet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["exercise"]
    reps: Optional[float] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    startTime: float
    endTime: float


class WorkoutRestSet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["rest"]
    duration: Optional[float] = Field(default=None, ge=0)
    startTime: float
    endTime: float


WorkoutSet = Annotated[
    Union[WorkoutExerciseSet, WorkoutRestSet], Field(discriminator="type")
]


class WorkoutGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    exerciseID: str = Field(min_length=1, max_length=40)
    sets: List[WorkoutSet] = Field(min_length=1)


class WorkoutIn(BaseModel):
    """Submitted workout body; timestamps are epoch milliseconds."""

    model_config = ConfigDict(extra="forbid")

    planID: str = Field(min_length=1, max_length=40)
    startTime: float
    endTime: float
    groups: List[WorkoutGroup]


class UserIn(BaseModel):
    username: str = Field(min_length=4, max_length=32)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6, max_length=100)


class SignIn(BaseModel):
    email: str
    password: str


class Activation(BaseModel):
    token: str


class MuscleBody(BaseModel):
    name: str = Field(min_length=1)


class MuscleIn(BaseModel):
    string: str
    muscle: MuscleBody
