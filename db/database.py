import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from db.models import SCHEMA_SQL
from errors import PersistenceError

TIMER_ROW_ID = 1
STATS_ROW_ID = 1

RESOURCE_ORDER = {
    "newest": "upload_time DESC, rowid DESC",
    "popular": "download_count DESC, upload_time DESC, rowid DESC",
    "download": "download_count DESC, upload_time DESC, rowid DESC",
    "likes": "likes DESC, upload_time DESC, rowid DESC",
}


class Database:
    def __init__(self, db_path: Path, default_timer_seconds: int = 300):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_schema(default_timer_seconds)

    def _get_conn(self) -> sqlite3.Connection:
        if getattr(self._local, "conn", None) is None:
            self._local.conn = sqlite3.connect(str(self.db_path))
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
        return self._local.conn

    def _init_schema(self, default_timer_seconds: int):
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR IGNORE INTO timer_state (id, is_running, remaining_time, total_time, current_speaker)"
            " VALUES (?, 0, ?, ?, '')",
            (TIMER_ROW_ID, default_timer_seconds, default_timer_seconds),
        )
        conn.commit()

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    @contextmanager
    def transaction(self):
        """Run several statements as one unit, rolled back on any error."""
        conn = self._get_conn()
        try:
            with conn:
                yield conn
        except (sqlite3.Error, OverflowError) as e:
            raise PersistenceError(str(e)) from e

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except (sqlite3.Error, OverflowError) as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        try:
            cursor = self._get_conn().execute(sql, params)
            row = cursor.fetchone()
        except (sqlite3.Error, OverflowError) as e:
            raise PersistenceError(str(e)) from e
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            cursor = self._get_conn().execute(sql, params)
            rows = cursor.fetchall()
        except (sqlite3.Error, OverflowError) as e:
            raise PersistenceError(str(e)) from e
        return [dict(row) for row in rows]

    # -- Timer --

    def get_timer_state(self) -> dict:
        return self.fetchone("SELECT * FROM timer_state WHERE id = ?", (TIMER_ROW_ID,))

    def save_timer_state(self, is_running: bool, remaining_time: int, total_time: int,
                         current_speaker: str, last_update: str):
        self.execute(
            "UPDATE timer_state SET is_running = ?, remaining_time = ?, total_time = ?,"
            " current_speaker = ?, last_update = ? WHERE id = ?",
            (int(is_running), remaining_time, total_time, current_speaker, last_update, TIMER_ROW_ID),
        )

    # -- Speeches --

    def insert_speech(self, speaker: str, content: str, debate_topic: str,
                      duration: int, created_at: str) -> dict:
        cursor = self.execute(
            "INSERT INTO speeches (speaker, content, debate_topic, duration, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (speaker, content, debate_topic, duration, created_at),
        )
        return self.get_speech(cursor.lastrowid)

    def get_speech(self, speech_id: int) -> dict | None:
        return self.fetchone("SELECT * FROM speeches WHERE id = ?", (speech_id,))

    def latest_speeches(self, limit: int) -> list[dict]:
        return self.fetchall(
            "SELECT * FROM speeches ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        )

    # -- Resources --

    def insert_resource(self, **fields) -> dict:
        columns = ", ".join(fields)
        placeholders = ", ".join("?" for _ in fields)
        self.execute(
            f"INSERT INTO resources ({columns}) VALUES ({placeholders})",
            tuple(fields.values()),
        )
        return self.get_resource(fields["id"])

    def get_resource(self, resource_id: str) -> dict | None:
        return self.fetchone("SELECT * FROM resources WHERE id = ?", (resource_id,))

    def list_resources(self, category: str | None = None, sort: str = "newest",
                       limit: int = 50) -> list[dict]:
        order = RESOURCE_ORDER.get(sort, RESOURCE_ORDER["newest"])
        if category:
            return self.fetchall(
                f"SELECT * FROM resources WHERE category = ? ORDER BY {order} LIMIT ?",
                (category, limit),
            )
        return self.fetchall(f"SELECT * FROM resources ORDER BY {order} LIMIT ?", (limit,))

    def increment_download_count(self, resource_id: str):
        self.execute(
            "UPDATE resources SET download_count = download_count + 1 WHERE id = ?",
            (resource_id,),
        )

    # -- Site stats --

    def log_visit(self, page: str, ip_address: str | None, user_agent: str | None,
                  access_time: str):
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO access_log (page, ip_address, user_agent, access_time) VALUES (?, ?, ?, ?)",
                (page, ip_address, user_agent, access_time),
            )
            conn.execute(
                "UPDATE site_stats SET total_visits = total_visits + 1,"
                " today_visits = today_visits + 1 WHERE id = ?",
                (STATS_ROW_ID,),
            )

    def get_site_stats(self) -> dict:
        return self.fetchone("SELECT * FROM site_stats WHERE id = ?", (STATS_ROW_ID,))

    def reset_daily_visits(self, today: str) -> bool:
        """Zero today's counter unless it was already reset for `today`."""
        cursor = self.execute(
            "UPDATE site_stats SET today_visits = 0, last_reset_date = ?"
            " WHERE id = ? AND last_reset_date != ?",
            (today, STATS_ROW_ID, today),
        )
        return cursor.rowcount > 0

    def count_access_log(self) -> int:
        row = self.fetchone("SELECT COUNT(*) AS n FROM access_log")
        return row["n"]
