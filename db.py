import sqlite3
import aiosqlite
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    date TEXT,
                    created_at TEXT NOT NULL,
                    intensity TEXT NOT NULL DEFAULT 'moderate',
                    duration REAL,
                    notes TEXT
                );""",
            ["id", "user_id", "date", "created_at", "intensity", "duration", "notes"],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    body_parts TEXT,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "name", "body_parts"],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_exercise_id INTEGER NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_exercise_id) REFERENCES workout_exercises(id) ON DELETE CASCADE
                );""",
            ["id", "workout_exercise_id", "reps", "weight", "position"],
        ),
        "cardio_sessions": (
            """CREATE TABLE cardio_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    name TEXT,
                    created_at TEXT NOT NULL,
                    intensity TEXT NOT NULL DEFAULT 'moderate',
                    estimated_time REAL
                );""",
            ["id", "user_id", "name", "created_at", "intensity", "estimated_time"],
        ),
        "cardio_exercises": (
            """CREATE TABLE cardio_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    cardio_session_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    body_parts TEXT,
                    FOREIGN KEY(cardio_session_id) REFERENCES cardio_sessions(id) ON DELETE CASCADE
                );""",
            ["id", "cardio_session_id", "name", "body_parts"],
        ),
        "food_logs": (
            """CREATE TABLE food_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    description TEXT,
                    calories REAL NOT NULL DEFAULT 0
                );""",
            ["id", "user_id", "created_at", "description", "calories"],
        ),
        "streaks": (
            """CREATE TABLE streaks (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
        "analytics_logs": (
            """CREATE TABLE analytics_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT
                );""",
            ["id", "timestamp", "status", "message"],
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
            cursor.execute("PRAGMA legacy_alter_table=ON;")
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

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "intensity":
                        return "'moderate'"
                    if col in ("position", "calories"):
                        return "0"
                    return "NULL"

                insert_cols = cols + ", " + ", ".join(missing)
                select_cols = cols + ", " + ", ".join(default_val(c) for c in missing)
            else:
                insert_cols = cols
                select_cols = cols
            conn.execute(
                f"INSERT INTO {table} ({insert_cols}) SELECT {select_cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


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
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


class WorkoutRepository(BaseRepository):
    """Repository for writing strength workouts, exercises and sets."""

    def create(
        self,
        user_id: str,
        created_at: str,
        intensity: str = "moderate",
        duration: Optional[float] = None,
        date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO workouts (user_id, date, created_at, intensity, duration, notes) VALUES (?, ?, ?, ?, ?, ?);",
            (user_id, date, created_at, intensity, duration, notes),
        )

    def add_exercise(
        self, workout_id: int, name: str, body_parts: Optional[str] = None
    ) -> int:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        return self.execute(
            "INSERT INTO workout_exercises (workout_id, name, body_parts) VALUES (?, ?, ?);",
            (workout_id, name, body_parts),
        )

    def add_set(
        self,
        workout_exercise_id: int,
        reps: Optional[int],
        weight: Optional[float],
    ) -> int:
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(position), 0) FROM sets WHERE workout_exercise_id = ?;",
            (workout_exercise_id,),
        )
        position = int(rows[0][0]) + 1
        return self.execute(
            "INSERT INTO sets (workout_exercise_id, reps, weight, position) VALUES (?, ?, ?, ?);",
            (workout_exercise_id, reps, weight, position),
        )

    def delete(self, workout_id: int) -> None:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async read access to a user's strength workouts."""

    async def fetch_workouts(self, user_id: str) -> list[dict]:
        """Return workouts with nested exercises and sets, oldest first."""
        workouts = await self.fetch_all(
            "SELECT id, date, created_at, intensity, duration FROM workouts "
            "WHERE user_id = ? ORDER BY created_at ASC;",
            (user_id,),
        )
        if not workouts:
            return []
        ids = [w[0] for w in workouts]
        marks = ", ".join("?" for _ in ids)
        exercises = await self.fetch_all(
            f"SELECT id, workout_id, name, body_parts FROM workout_exercises "
            f"WHERE workout_id IN ({marks}) ORDER BY id;",
            tuple(ids),
        )
        sets = await self.fetch_all(
            f"SELECT s.workout_exercise_id, s.reps, s.weight FROM sets s "
            f"JOIN workout_exercises e ON e.id = s.workout_exercise_id "
            f"WHERE e.workout_id IN ({marks}) ORDER BY s.workout_exercise_id, s.position;",
            tuple(ids),
        )
        sets_by_exercise: dict[int, list[dict]] = {}
        for ex_id, reps, weight in sets:
            sets_by_exercise.setdefault(ex_id, []).append(
                {"reps": reps, "weight": weight}
            )
        exercises_by_workout: dict[int, list[dict]] = {}
        for ex_id, wid, name, body_parts in exercises:
            exercises_by_workout.setdefault(wid, []).append(
                {
                    "name": name,
                    "body_parts": body_parts,
                    "sets": sets_by_exercise.get(ex_id, []),
                }
            )
        return [
            {
                "id": wid,
                "date": date,
                "created_at": created_at,
                "intensity": intensity,
                "duration": duration,
                "exercises": exercises_by_workout.get(wid, []),
            }
            for wid, date, created_at, intensity, duration in workouts
        ]

    async def fetch_dates(self, user_id: str) -> list[str]:
        rows = await self.fetch_all(
            "SELECT created_at FROM workouts WHERE user_id = ? ORDER BY created_at;",
            (user_id,),
        )
        return [r[0] for r in rows]


class CardioRepository(BaseRepository):
    """Repository for writing saved cardio sessions."""

    def create(
        self,
        user_id: str,
        created_at: str,
        name: Optional[str] = None,
        intensity: str = "moderate",
        estimated_time: Optional[float] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO cardio_sessions (user_id, name, created_at, intensity, estimated_time) VALUES (?, ?, ?, ?, ?);",
            (user_id, name, created_at, intensity, estimated_time),
        )

    def add_exercise(
        self, session_id: int, name: str, body_parts: Optional[str] = None
    ) -> int:
        return self.execute(
            "INSERT INTO cardio_exercises (cardio_session_id, name, body_parts) VALUES (?, ?, ?);",
            (session_id, name, body_parts),
        )


class AsyncCardioRepository(AsyncBaseRepository):
    """Async read access to a user's cardio sessions."""

    async def fetch_sessions(self, user_id: str) -> list[dict]:
        sessions = await self.fetch_all(
            "SELECT id, name, created_at, intensity, estimated_time FROM cardio_sessions "
            "WHERE user_id = ? ORDER BY created_at ASC;",
            (user_id,),
        )
        if not sessions:
            return []
        ids = [s[0] for s in sessions]
        marks = ", ".join("?" for _ in ids)
        exercises = await self.fetch_all(
            f"SELECT cardio_session_id, name, body_parts FROM cardio_exercises "
            f"WHERE cardio_session_id IN ({marks}) ORDER BY id;",
            tuple(ids),
        )
        by_session: dict[int, list[dict]] = {}
        for sid, name, body_parts in exercises:
            by_session.setdefault(sid, []).append({"name": name, "body_parts": body_parts})
        return [
            {
                "id": sid,
                "name": name,
                "created_at": created_at,
                "intensity": intensity,
                "estimated_time": estimated_time,
                "exercises": by_session.get(sid, []),
            }
            for sid, name, created_at, intensity, estimated_time in sessions
        ]

    async def fetch_dates(self, user_id: str) -> list[str]:
        rows = await self.fetch_all(
            "SELECT created_at FROM cardio_sessions WHERE user_id = ? ORDER BY created_at;",
            (user_id,),
        )
        return [r[0] for r in rows]


class FoodLogRepository(BaseRepository):
    """Repository for calorie log entries."""

    def log(
        self,
        user_id: str,
        created_at: str,
        calories: float,
        description: Optional[str] = None,
    ) -> int:
        if calories < 0:
            raise ValueError("calories must be non-negative")
        return self.execute(
            "INSERT INTO food_logs (user_id, created_at, description, calories) VALUES (?, ?, ?, ?);",
            (user_id, created_at, description, calories),
        )


class AsyncFoodLogRepository(AsyncBaseRepository):
    """Async read access to calorie logs."""

    async def fetch_dates(self, user_id: str) -> list[str]:
        rows = await self.fetch_all(
            "SELECT created_at FROM food_logs WHERE user_id = ? ORDER BY created_at;",
            (user_id,),
        )
        return [r[0] for r in rows]


class AsyncStreakRepository(AsyncBaseRepository):
    """Key-value store for serialized streak state."""

    async def get(self, key: str) -> Optional[str]:
        rows = await self.fetch_all("SELECT value FROM streaks WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    async def set(self, key: str, value: str) -> None:
        await self.execute(
            "INSERT INTO streaks (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )

    async def delete(self, key: str) -> None:
        await self.execute("DELETE FROM streaks WHERE key = ?;", (key,))


class AsyncAnalyticsLogRepository(AsyncBaseRepository):
    """Repository for analytics ingestion run logs."""

    async def log_success(self, message: str | None = None) -> int:
        return await self.execute(
            "INSERT INTO analytics_logs (timestamp, status, message) VALUES (?, 'success', ?);",
            (datetime.datetime.now().isoformat(), message),
        )

    async def log_error(self, message: str) -> int:
        return await self.execute(
            "INSERT INTO analytics_logs (timestamp, status, message) VALUES (?, 'error', ?);",
            (datetime.datetime.now().isoformat(), message),
        )

    async def last_success(self) -> Optional[str]:
        rows = await self.fetch_all(
            "SELECT timestamp FROM analytics_logs WHERE status='success' ORDER BY id DESC LIMIT 1;"
        )
        return rows[0][0] if rows else None

    async def last_errors(self, limit: int = 5) -> list[tuple[str, str]]:
        rows = await self.fetch_all(
            "SELECT timestamp, message FROM analytics_logs WHERE status='error' ORDER BY id DESC LIMIT ?;",
            (limit,),
        )
        return [(r[0], r[1]) for r in rows]
