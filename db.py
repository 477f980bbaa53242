import re
import sqlite3
import uuid
import aiosqlite
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable, Set

from loguru import logger

from models import Owner, PlanIn, WorkoutIn

ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: object) -> bool:
    """Return ``True`` when ``value`` has the shape of a stored identifier."""
    return isinstance(value, str) and ID_PATTERN.match(value) is not None


class StoreError(Exception):
    """Raised when the database is unreachable or rejects a statement."""


def _set_to_dict(set_type: str, reps, weight, duration) -> dict:
    """Row values of a stored set as its wire dict; absent fields are omitted."""
    if set_type == "rest":
        fields = {"duration": duration}
    else:
        fields = {"reps": reps, "weight": weight}
    item = {"type": set_type}
    item.update({k: v for k, v in fields.items() if v is not None})
    return item


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    inactive INTEGER NOT NULL DEFAULT 1,
                    activation_token TEXT
                );""",
            ["id", "username", "email", "password", "inactive", "activation_token"],
        ),
        "muscles": (
            """CREATE TABLE muscles (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE
                );""",
            ["id", "name"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    muscles TEXT NOT NULL,
                    notes TEXT,
                    uid TEXT NOT NULL
                );""",
            ["id", "name", "muscles", "notes", "uid"],
        ),
        "plans": (
            """CREATE TABLE plans (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    creator_id TEXT NOT NULL
                );""",
            ["id", "name", "creator_id"],
        ),
        "plan_groups": (
            """CREATE TABLE plan_groups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plan_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    FOREIGN KEY(plan_id) REFERENCES plans(id) ON DELETE CASCADE
                );""",
            ["id", "plan_id", "position", "exercise_id"],
        ),
        "plan_sets": (
            """CREATE TABLE plan_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    group_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    duration REAL,
                    FOREIGN KEY(group_id) REFERENCES plan_groups(id) ON DELETE CASCADE
                );""",
            ["id", "group_id", "position", "type", "reps", "weight", "duration"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    plan_id TEXT NOT NULL,
                    uid TEXT NOT NULL,
                    start_time INTEGER NOT NULL,
                    end_time INTEGER NOT NULL
                );""",
            ["id", "plan_id", "uid", "start_time", "end_time"],
        ),
        "workout_groups": (
            """CREATE TABLE workout_groups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "position", "exercise_id"],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    group_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    duration REAL,
                    start_time INTEGER NOT NULL,
                    end_time INTEGER NOT NULL,
                    FOREIGN KEY(group_id) REFERENCES workout_groups(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "group_id",
                "position",
                "type",
                "reps",
                "weight",
                "duration",
                "start_time",
                "end_time",
            ],
        ),
    }

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous repository base translating driver errors into ``StoreError``."""

    @asynccontextmanager
    async def _transaction(self):
        try:
            async with self._async_connection() as conn:
                yield conn
        except aiosqlite.Error as e:
            logger.exception(f"Store failure on {self._db_path}: {e}")
            raise StoreError(str(e)) from e

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._transaction() as conn:
            cursor = await conn.execute(query, params)
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._transaction() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class UserRepository(AsyncBaseRepository):
    """Repository for user accounts."""

    async def create(
        self, username: str, email: str, password_hash: str, activation_token: str
    ) -> str:
        rows = await self.fetch_all("SELECT id FROM users WHERE email = ?;", (email,))
        if rows:
            raise ValueError("Email in use")
        user_id = new_id()
        await self.execute(
            "INSERT INTO users (id, username, email, password, inactive, activation_token) VALUES (?, ?, ?, ?, 1, ?);",
            (user_id, username, email, password_hash, activation_token),
        )
        return user_id

    @staticmethod
    def _row_to_dict(row: Tuple) -> dict:
        uid, username, email, password, inactive, token = row
        return {
            "id": uid,
            "username": username,
            "email": email,
            "password": password,
            "inactive": bool(inactive),
            "activationToken": token,
        }

    async def fetch_detail(self, user_id: str) -> Optional[dict]:
        if not is_valid_id(user_id):
            return None
        rows = await self.fetch_all(
            "SELECT id, username, email, password, inactive, activation_token FROM users WHERE id = ?;",
            (user_id,),
        )
        return self._row_to_dict(rows[0]) if rows else None

    async def fetch_by_email(self, email: str) -> Optional[dict]:
        rows = await self.fetch_all(
            "SELECT id, username, email, password, inactive, activation_token FROM users WHERE email = ?;",
            (email,),
        )
        return self._row_to_dict(rows[0]) if rows else None

    async def activate(self, user_id: str, token: str) -> bool:
        user = await self.fetch_detail(user_id)
        if user is None or not user["activationToken"]:
            return False
        if user["activationToken"] != token:
            return False
        await self.execute(
            "UPDATE users SET inactive = 0, activation_token = NULL WHERE id = ?;",
            (user_id,),
        )
        return True

    async def delete(self, user_id: str) -> None:
        if await self.fetch_detail(user_id) is None:
            raise ValueError("user not found")
        await self.execute("DELETE FROM users WHERE id = ?;", (user_id,))


class MuscleRepository(AsyncBaseRepository):
    """Repository for the muscle taxonomy."""

    async def add(self, name: str) -> str:
        rows = await self.fetch_all("SELECT id FROM muscles WHERE name = ?;", (name,))
        if rows:
            raise ValueError("Muscle exists")
        muscle_id = new_id()
        await self.execute(
            "INSERT INTO muscles (id, name) VALUES (?, ?);", (muscle_id, name)
        )
        return muscle_id

    async def fetch_all_muscles(self) -> List[dict]:
        rows = await self.fetch_all("SELECT id, name FROM muscles ORDER BY name;")
        return [{"id": mid, "name": name} for mid, name in rows]

    async def existing_ids(self, ids: Iterable[str]) -> Set[str]:
        wanted = [i for i in ids if is_valid_id(i)]
        if not wanted:
            return set()
        marks = ", ".join("?" for _ in wanted)
        rows = await self.fetch_all(
            f"SELECT id FROM muscles WHERE id IN ({marks});", tuple(wanted)
        )
        return {r[0] for r in rows}


class ExerciseRepository(AsyncBaseRepository):
    """Repository for the exercise catalog."""

    async def add(
        self, name: str, muscles: List[str], notes: Optional[str], owner: Owner
    ) -> str:
        exercise_id = new_id()
        await self.execute(
            "INSERT INTO exercises (id, name, muscles, notes, uid) VALUES (?, ?, ?, ?, ?);",
            (exercise_id, name, "|".join(muscles), notes, owner.to_wire()),
        )
        return exercise_id

    @staticmethod
    def _row_to_dict(row: Tuple) -> dict:
        eid, name, muscles, notes, uid = row
        return {
            "id": eid,
            "name": name,
            "muscles": muscles.split("|") if muscles else [],
            "notes": notes,
            "uid": uid,
        }

    async def fetch_detail(self, exercise_id: str) -> Optional[dict]:
        if not is_valid_id(exercise_id):
            return None
        rows = await self.fetch_all(
            "SELECT id, name, muscles, notes, uid FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        return self._row_to_dict(rows[0]) if rows else None

    async def fetch_for_owners(self, owners: Iterable[Owner]) -> List[dict]:
        keys = [o.to_wire() for o in owners]
        if not keys:
            return []
        marks = ", ".join("?" for _ in keys)
        rows = await self.fetch_all(
            f"SELECT id, name, muscles, notes, uid FROM exercises WHERE uid IN ({marks}) ORDER BY rowid;",
            tuple(keys),
        )
        return [self._row_to_dict(r) for r in rows]


class PlanRepository(AsyncBaseRepository):
    """Repository for workout plans and their groups and sets."""

    async def _insert_groups(self, conn, plan_id: str, plan: PlanIn) -> None:
        for g_pos, group in enumerate(plan.groups):
            cursor = await conn.execute(
                "INSERT INTO plan_groups (plan_id, position, exercise_id) VALUES (?, ?, ?);",
                (plan_id, g_pos, group.exerciseID),
            )
            group_id = cursor.lastrowid
            for s_pos, item in enumerate(group.sets):
                await conn.execute(
                    "INSERT INTO plan_sets (group_id, position, type, reps, weight, duration) VALUES (?, ?, ?, ?, ?, ?);",
                    (
                        group_id,
                        s_pos,
                        item.type,
                        getattr(item, "reps", None),
                        getattr(item, "weight", None),
                        getattr(item, "duration", None),
                    ),
                )

    async def _delete_groups(self, conn, plan_id: str) -> None:
        await conn.execute(
            "DELETE FROM plan_sets WHERE group_id IN (SELECT id FROM plan_groups WHERE plan_id = ?);",
            (plan_id,),
        )
        await conn.execute("DELETE FROM plan_groups WHERE plan_id = ?;", (plan_id,))

    async def create(self, plan: PlanIn, creator_id: str) -> dict:
        plan_id = new_id()
        async with self._transaction() as conn:
            await conn.execute(
                "INSERT INTO plans (id, name, creator_id) VALUES (?, ?, ?);",
                (plan_id, plan.name, creator_id),
            )
            await self._insert_groups(conn, plan_id, plan)
        return await self.fetch_detail(plan_id)

    async def replace(self, plan_id: str, plan: PlanIn) -> dict:
        """Replace name and groups of an existing plan; ownership is checked by the caller."""
        if not await self.exists(plan_id):
            raise ValueError("plan not found")
        async with self._transaction() as conn:
            await conn.execute(
                "UPDATE plans SET name = ? WHERE id = ?;", (plan.name, plan_id)
            )
            await self._delete_groups(conn, plan_id)
            await self._insert_groups(conn, plan_id, plan)
        return await self.fetch_detail(plan_id)

    async def exists(self, plan_id: str) -> bool:
        if not is_valid_id(plan_id):
            return False
        rows = await self.fetch_all("SELECT 1 FROM plans WHERE id = ?;", (plan_id,))
        return bool(rows)

    async def _load(self, where: str, params: Tuple) -> List[dict]:
        """Load matching plans with their groups and sets on one connection."""
        async with self._transaction() as conn:
            cursor = await conn.execute(
                f"SELECT p.id, p.name, p.creator_id FROM plans p WHERE {where} ORDER BY p.rowid;",
                params,
            )
            plans = await cursor.fetchall()
            cursor = await conn.execute(
                "SELECT g.plan_id, g.id, g.exercise_id, s.type, s.reps, s.weight, s.duration "
                "FROM plans p JOIN plan_groups g ON g.plan_id = p.id "
                "JOIN plan_sets s ON s.group_id = g.id "
                f"WHERE {where} ORDER BY g.plan_id, g.position, s.position;",
                params,
            )
            set_rows = await cursor.fetchall()

        groups: dict[str, list] = {pid: [] for pid, _name, _creator in plans}
        current_id = None
        current: dict = {}
        for plan_id, group_id, exercise_id, set_type, reps, weight, duration in set_rows:
            if group_id != current_id:
                current_id = group_id
                current = {"exerciseID": exercise_id, "sets": []}
                groups[plan_id].append(current)
            current["sets"].append(_set_to_dict(set_type, reps, weight, duration))
        return [
            {"id": pid, "name": name, "creatorID": creator_id, "groups": groups[pid]}
            for pid, name, creator_id in plans
        ]

    async def fetch_detail(self, plan_id: str) -> Optional[dict]:
        if not is_valid_id(plan_id):
            return None
        plans = await self._load("p.id = ?", (plan_id,))
        return plans[0] if plans else None

    async def fetch_for_owner(self, user_id: str) -> List[dict]:
        return await self._load("p.creator_id = ?", (user_id,))


class WorkoutRepository(AsyncBaseRepository):
    """Repository for logged workouts. Workouts are immutable once stored."""

    async def create(self, workout: WorkoutIn, uid: str) -> dict:
        workout_id = new_id()
        async with self._transaction() as conn:
            await conn.execute(
                "INSERT INTO workouts (id, plan_id, uid, start_time, end_time) VALUES (?, ?, ?, ?, ?);",
                (workout_id, workout.planID, uid, workout.startTime, workout.endTime),
            )
            for g_pos, group in enumerate(workout.groups):
                cursor = await conn.execute(
                    "INSERT INTO workout_groups (workout_id, position, exercise_id) VALUES (?, ?, ?);",
                    (workout_id, g_pos, group.exerciseID),
                )
                group_id = cursor.lastrowid
                for s_pos, item in enumerate(group.sets):
                    await conn.execute(
                        "INSERT INTO workout_sets (group_id, position, type, reps, weight, duration, start_time, end_time) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                        (
                            group_id,
                            s_pos,
                            item.type,
                            getattr(item, "reps", None),
                            getattr(item, "weight", None),
                            getattr(item, "duration", None),
                            item.startTime,
                            item.endTime,
                        ),
                    )
        return await self.fetch_detail(workout_id)

    async def _load(self, where: str, params: Tuple) -> List[dict]:
        """Load matching workouts with their groups and sets on one connection."""
        async with self._transaction() as conn:
            cursor = await conn.execute(
                "SELECT w.id, w.plan_id, w.uid, w.start_time, w.end_time "
                f"FROM workouts w WHERE {where} ORDER BY w.rowid;",
                params,
            )
            workouts = await cursor.fetchall()
            cursor = await conn.execute(
                "SELECT g.workout_id, g.id, g.exercise_id, s.type, s.reps, s.weight, "
                "s.duration, s.start_time, s.end_time "
                "FROM workouts w JOIN workout_groups g ON g.workout_id = w.id "
                "JOIN workout_sets s ON s.group_id = g.id "
                f"WHERE {where} ORDER BY g.workout_id, g.position, s.position;",
                params,
            )
            set_rows = await cursor.fetchall()

        groups: dict[str, list] = {row[0]: [] for row in workouts}
        current_id = None
        current: dict = {}
        for row in set_rows:
            workout_id, group_id, exercise_id, set_type, reps, weight, duration, start, end = row
            if group_id != current_id:
                current_id = group_id
                current = {"exerciseID": exercise_id, "sets": []}
                groups[workout_id].append(current)
            item = _set_to_dict(set_type, reps, weight, duration)
            item["startTime"] = start
            item["endTime"] = end
            current["sets"].append(item)
        return [
            {
                "id": wid,
                "planID": plan_id,
                "uid": uid,
                "startTime": start,
                "endTime": end,
                "groups": groups[wid],
            }
            for wid, plan_id, uid, start, end in workouts
        ]

    async def fetch_detail(self, workout_id: str) -> Optional[dict]:
        if not is_valid_id(workout_id):
            return None
        workouts = await self._load("w.id = ?", (workout_id,))
        return workouts[0] if workouts else None

    async def fetch_for_owner(self, uid: str) -> List[dict]:
        return await self._load("w.uid = ?", (uid,))
