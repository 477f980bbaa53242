from typing import Any, Optional

from fastapi import (
    FastAPI,
    HTTPException,
    Body,
    APIRouter,
    Depends,
    Query,
    Request,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import (
    Authenticator,
    hash_password,
    verify_password,
    new_activation_token,
)
from catalog import CatalogLookup
from config import APP_VERSION, YamlConfig, setup_logger
from db import (
    UserRepository,
    MuscleRepository,
    ExerciseRepository,
    PlanRepository,
    WorkoutRepository,
    StoreError,
)
from models import Activation, MuscleIn, Owner, SignIn, UserIn
from planner_service import PlannerService
from stats_service import StatisticsService
from validators import Err, ErrorKind, error_details, exercise_errors

API_PREFIX = "/api/1.0"

_ERROR_STATUS = {
    ErrorKind.PLAN_NOT_FOUND: 404,
    ErrorKind.NOT_AUTHORIZED: 401,
}

# Message for a request body that cannot be parsed, by path prefix.
_BAD_BODY_MESSAGES = (
    (f"{API_PREFIX}/plans", "Invalid plan input"),
    (f"{API_PREFIX}/workouts", "Invalid workout input"),
    (f"{API_PREFIX}/signup", "Invalid user input"),
    (f"{API_PREFIX}/muscles", "Invalid muscle input"),
    (f"{API_PREFIX}/exercises", "Invalid exercise input"),
)


def bad_body_message(path: str) -> str:
    for prefix, message in _BAD_BODY_MESSAGES:
        if path.startswith(prefix):
            return message
    return "Invalid input"


def raise_for(err: Err) -> None:
    """Translate a validator ``Err`` into an HTTP error."""
    status = _ERROR_STATUS.get(err.kind, 400)
    if err.kind == ErrorKind.INVALID_WORKOUT_INPUT:
        raise HTTPException(
            status_code=status,
            detail={"message": err.message, "validationErrors": err.detail},
        )
    raise HTTPException(status_code=status, detail=err.message)


class WorkoutAPI:
    """Provides REST endpoints for plans, workouts and volume analytics."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = YamlConfig(yaml_path).settings()
        self.users = UserRepository(db_path)
        self.muscles = MuscleRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.plans = PlanRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.catalog = CatalogLookup(self.exercises, self.plans)
        self.auth = Authenticator(self.users, self.settings)
        self.planner = PlannerService(self.plans, self.workouts, self.catalog)
        self.statistics = StatisticsService(self.workouts)
        self.app = FastAPI(
            title="Workout Tracker API",
            description="REST API for workout plans, logging and volume analytics",
            version=APP_VERSION,
        )
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
            return JSONResponse(
                status_code=exc.status_code,
                content=content,
                headers=getattr(exc, "headers", None),
            )

        @self.app.exception_handler(RequestValidationError)
        async def request_error(request: Request, exc: RequestValidationError):
            logger.warning(f"{request.method} {request.url.path} rejected: unreadable body")
            return JSONResponse(
                status_code=400, content={"message": bad_body_message(request.url.path)}
            )

        @self.app.exception_handler(StoreError)
        async def store_error(request: Request, exc: StoreError):
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return JSONResponse(
                status_code=500, content={"message": "Internal server error"}
            )

    def _setup_routes(self) -> None:
        users_router = APIRouter(prefix=API_PREFIX, tags=["Users"])
        muscles_router = APIRouter(prefix=f"{API_PREFIX}/muscles", tags=["Muscles"])
        exercises_router = APIRouter(
            prefix=f"{API_PREFIX}/exercises", tags=["Exercises"]
        )
        plans_router = APIRouter(prefix=f"{API_PREFIX}/plans", tags=["Plans"])
        workouts_router = APIRouter(prefix=f"{API_PREFIX}/workouts", tags=["Workouts"])
        data_router = APIRouter(prefix=f"{API_PREFIX}/data", tags=["Analytics"])

        current_user = Depends(self.auth.current_user)
        active_user = Depends(self.auth.active_user)

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        async def health():
            """Return API and database connection status."""
            try:
                await self.users.fetch_all("SELECT 1;")
                return {"status": "ok"}
            except StoreError as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @users_router.post("/signup")
        async def signup(payload: Any = Body(None)):
            try:
                body = UserIn.model_validate(payload)
            except ValidationError as e:
                raise HTTPException(
                    status_code=400,
                    detail={
                        "message": "Invalid user input",
                        "validationErrors": error_details(e),
                    },
                )
            try:
                uid = await self.users.create(
                    body.username,
                    body.email,
                    hash_password(body.password),
                    new_activation_token(),
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            logger.info(f"User {uid} signed up")
            return {"message": "User created", "token": self.auth.create_token(uid)}

        @users_router.post("/activate")
        async def activate(payload: Any = Body(None), user: dict = current_user):
            try:
                body = Activation.model_validate(payload)
            except ValidationError:
                raise HTTPException(status_code=400, detail="Invalid token")
            if not await self.users.activate(user["id"], body.token):
                raise HTTPException(status_code=400, detail="Invalid token")
            logger.info(f"User {user['id']} activated")
            return {"message": "User activated"}

        @users_router.post("/signin")
        async def signin(payload: Any = Body(None)):
            try:
                body = SignIn.model_validate(payload)
            except ValidationError:
                raise HTTPException(status_code=401, detail="Incorrect credentials")
            user = await self.users.fetch_by_email(body.email)
            if user is None or not verify_password(body.password, user["password"]):
                logger.warning("Sign in rejected")
                raise HTTPException(status_code=401, detail="Incorrect credentials")
            return {"token": self.auth.create_token(user["id"])}

        @users_router.delete("/users/me")
        async def delete_user(user: dict = current_user):
            try:
                await self.users.delete(user["id"])
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            logger.info(f"User {user['id']} deleted")
            return {"message": "User deleted"}

        @muscles_router.get("")
        async def list_muscles():
            return {"muscles": await self.muscles.fetch_all_muscles()}

        @muscles_router.post("")
        async def add_muscle(payload: Any = Body(None)):
            try:
                body = MuscleIn.model_validate(payload)
            except ValidationError:
                raise HTTPException(status_code=400, detail="Invalid muscle input")
            if body.string != self.settings.admin_string:
                raise HTTPException(status_code=401, detail="Not authorized")
            try:
                mid = await self.muscles.add(body.muscle.name)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"message": "Muscle created", "id": mid}

        @exercises_router.get("")
        async def list_exercises(user: dict = active_user):
            owners = [Owner.admin(), Owner.user(user["id"])]
            return {"exercises": await self.exercises.fetch_for_owners(owners)}

        @exercises_router.post("")
        async def add_exercise(payload: Any = Body(None), user: dict = active_user):
            body = payload if isinstance(payload, dict) else {}
            muscles = body.get("muscles")
            known = (
                await self.muscles.existing_ids(muscles)
                if isinstance(muscles, list)
                else set()
            )
            errors = exercise_errors(body, known)
            if errors:
                raise HTTPException(
                    status_code=400,
                    detail={
                        "message": "Invalid exercise input",
                        "validationErrors": errors,
                    },
                )
            owner = (
                Owner.admin()
                if body.get("adminString") == self.settings.admin_string
                else Owner.user(user["id"])
            )
            eid = await self.exercises.add(
                body["name"], muscles, body.get("notes"), owner
            )
            logger.info(f"Exercise {eid} created for {owner.to_wire()}")
            return {
                "message": "Exercise created",
                "exercise": await self.exercises.fetch_detail(eid),
            }

        @plans_router.post("")
        async def create_plan(payload: Any = Body(None), user: dict = active_user):
            result = await self.planner.create_plan(payload, user["id"])
            if isinstance(result, Err):
                raise_for(result)
            return {"message": "Plan created", "plan": result.value}

        @plans_router.get("")
        async def list_plans(user: dict = active_user):
            return {"plans": await self.planner.plans_for(user["id"])}

        @plans_router.put("/{plan_id}")
        async def edit_plan(
            plan_id: str, payload: Any = Body(None), user: dict = active_user
        ):
            result = await self.planner.edit_plan(plan_id, payload, user["id"])
            if isinstance(result, Err):
                raise_for(result)
            return {"message": "Plan edited", "plan": result.value}

        @workouts_router.post("")
        async def create_workout(payload: Any = Body(None), user: dict = active_user):
            result = await self.planner.create_workout(payload, user["id"])
            if isinstance(result, Err):
                raise_for(result)
            return {"message": "Workout created"}

        @workouts_router.get("")
        async def list_workouts(user: dict = active_user):
            return {"workouts": await self.planner.workouts_for(user["id"])}

        @data_router.get("")
        async def volume_data(
            kind: Optional[str] = Query(None, alias="type"),
            exercise: Optional[str] = None,
            user: dict = active_user,
        ):
            return await self.statistics.volume_over_time(user["id"], exercise, kind)

        self.app.include_router(users_router)
        self.app.include_router(muscles_router)
        self.app.include_router(exercises_router)
        self.app.include_router(plans_router)
        self.app.include_router(workouts_router)
        self.app.include_router(data_router)


api = WorkoutAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    setup_logger(api.settings.log_level, api.settings.log_file)
    uvicorn.run(app)
