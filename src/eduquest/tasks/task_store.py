# src/eduquest/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable
from pathlib import Path

from .task_models import ReviewRecord, RewardGrant, TaskStatus, UserTask

logger = logging.getLogger(__name__)

_USER_TASK_COLUMNS = (
    "id",
    "task_id",
    "user_id",
    "status",
    "updated_at",
    "started_at",
    "proof_submitted_at",
    "completed_at",
    "rejected_at",
    "current_proof_id",
    "rejection_reason",
    "rejection_count",
    "reward_granted",
    "reward_granted_at",
    "reward_pending",
    "currency_granted",
    "xp_granted",
)


class UserTaskStore:
    """
    SQLite store for per-user task progress plus the review/grant audit trail.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("UserTaskStore ready db=%s total=%s", self._db_path, self.count_user_tasks())

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_tasks (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'locked',
                    updated_at REAL NOT NULL,
                    started_at REAL,
                    proof_submitted_at REAL,
                    completed_at REAL,
                    rejected_at REAL,
                    current_proof_id TEXT,
                    rejection_reason TEXT,
                    rejection_count INTEGER NOT NULL DEFAULT 0,
                    reward_granted INTEGER NOT NULL DEFAULT 0,
                    reward_granted_at REAL,
                    reward_pending INTEGER NOT NULL DEFAULT 0,
                    currency_granted INTEGER NOT NULL DEFAULT 0,
                    xp_granted INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_reviews (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_task_id TEXT NOT NULL,
                    decision TEXT NOT NULL,
                    feedback TEXT,
                    reviewed_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reward_grants (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_task_id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    currency_awarded INTEGER NOT NULL,
                    xp_awarded INTEGER NOT NULL,
                    badge_id TEXT,
                    reason_code TEXT NOT NULL DEFAULT 'task_completion',
                    granted_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(user_tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE user_tasks ADD COLUMN {name} {decl}")
                logger.info("UserTaskStore migration: added column %s", name)

            # Older databases predate reward reconciliation and per-leg grant tracking.
            add_col("reward_pending", "INTEGER NOT NULL DEFAULT 0")
            add_col("currency_granted", "INTEGER NOT NULL DEFAULT 0")
            add_col("xp_granted", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_user_tasks_user ON user_tasks(user_id)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_user_tasks_pending ON user_tasks(reward_pending, status)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reviews_user_task ON task_reviews(user_task_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_user_task(row: sqlite3.Row) -> UserTask:
        def opt_float(key: str) -> float | None:
            return float(row[key]) if row[key] is not None else None

        return UserTask(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            user_id=str(row["user_id"]),
            status=TaskStatus.from_db(row["status"]),
            updated_at=float(row["updated_at"] or 0.0),
            started_at=opt_float("started_at"),
            proof_submitted_at=opt_float("proof_submitted_at"),
            completed_at=opt_float("completed_at"),
            rejected_at=opt_float("rejected_at"),
            current_proof_id=row["current_proof_id"],
            rejection_reason=row["rejection_reason"],
            rejection_count=int(row["rejection_count"] or 0),
            reward_granted=bool(row["reward_granted"]),
            reward_granted_at=opt_float("reward_granted_at"),
            reward_pending=bool(row["reward_pending"]),
            currency_granted=bool(row["currency_granted"]),
            xp_granted=bool(row["xp_granted"]),
        )

    @staticmethod
    def _user_task_params(ut: UserTask) -> tuple:
        return (
            ut.id,
            ut.task_id,
            ut.user_id,
            ut.status.value,
            float(ut.updated_at),
            ut.started_at,
            ut.proof_submitted_at,
            ut.completed_at,
            ut.rejected_at,
            ut.current_proof_id,
            ut.rejection_reason,
            int(ut.rejection_count),
            int(ut.reward_granted),
            ut.reward_granted_at,
            int(ut.reward_pending),
            int(ut.currency_granted),
            int(ut.xp_granted),
        )

    @staticmethod
    def _row_to_grant(row: sqlite3.Row) -> RewardGrant:
        return RewardGrant(
            user_task_id=str(row["user_task_id"]),
            user_id=str(row["user_id"]),
            task_id=str(row["task_id"]),
            currency_awarded=int(row["currency_awarded"]),
            xp_awarded=int(row["xp_awarded"]),
            badge_id=row["badge_id"],
            granted_at=float(row["granted_at"]),
            reason_code=str(row["reason_code"]),
        )

    # ---- public API ----

    def count_user_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM user_tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def seed_user_tasks(self, user_tasks: Iterable[UserTask]) -> int:
        """
        Insert initial rows, leaving existing progress untouched.

        Returns the number of rows actually inserted.
        """
        cols = ", ".join(_USER_TASK_COLUMNS)
        placeholders = ", ".join("?" for _ in _USER_TASK_COLUMNS)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            inserted = 0
            for ut in user_tasks:
                cur.execute(
                    f"INSERT OR IGNORE INTO user_tasks({cols}) VALUES ({placeholders})",
                    self._user_task_params(ut),
                )
                inserted += cur.rowcount
            conn.commit()
            if inserted:
                logger.info("Seeded %d user tasks", inserted)
            return inserted
        finally:
            conn.close()

    def save_user_task(self, user_task: UserTask) -> None:
        """Upsert the full row (the manager always writes complete values)."""
        cols = ", ".join(_USER_TASK_COLUMNS)
        placeholders = ", ".join("?" for _ in _USER_TASK_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _USER_TASK_COLUMNS if c != "id")
        conn = self._get_conn()
        try:
            conn.execute(
                f"INSERT INTO user_tasks({cols}) VALUES ({placeholders}) "
                f"ON CONFLICT(id) DO UPDATE SET {updates}",
                self._user_task_params(user_task),
            )
            conn.commit()
            logger.debug(
                "UserTask saved id=%s status=%s reward_granted=%s pending=%s",
                user_task.id,
                user_task.status.value,
                user_task.reward_granted,
                user_task.reward_pending,
            )
        finally:
            conn.close()

    def get_user_task(self, user_task_id: str) -> UserTask | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM user_tasks WHERE id = ?", (user_task_id,))
            row = cur.fetchone()
            return self._row_to_user_task(row) if row else None
        finally:
            conn.close()

    def list_user_tasks(self, user_id: str) -> list[UserTask]:
        """All rows for a user in insertion order (the order the catalog seeded them)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM user_tasks WHERE user_id = ? ORDER BY rowid ASC", (user_id,))
            return [self._row_to_user_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_pending_rewards(self, user_id: str | None = None, limit: int = 32) -> list[UserTask]:
        """Completed rows whose reward grant has not been confirmed by the ledger."""
        sql = (
            "SELECT * FROM user_tasks "
            "WHERE status = 'completed' AND reward_granted = 0 AND reward_pending = 1"
        )
        params: list = []
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        sql += " ORDER BY updated_at ASC LIMIT ?"
        params.append(int(limit))

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            return [self._row_to_user_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- audit trail ----

    def add_review(self, review: ReviewRecord) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO task_reviews(user_task_id, decision, feedback, reviewed_at) VALUES (?, ?, ?, ?)",
                (review.user_task_id, review.decision, review.feedback, float(review.reviewed_at)),
            )
            conn.commit()
        finally:
            conn.close()

    def list_reviews(self, user_task_id: str) -> list[ReviewRecord]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM task_reviews WHERE user_task_id = ? ORDER BY id ASC",
                (user_task_id,),
            )
            return [
                ReviewRecord(
                    user_task_id=str(r["user_task_id"]),
                    decision=str(r["decision"]),
                    feedback=r["feedback"],
                    reviewed_at=float(r["reviewed_at"]),
                )
                for r in cur.fetchall()
            ]
        finally:
            conn.close()

    def add_reward_grant(self, grant: RewardGrant) -> None:
        conn = self._get_conn()
        try:
            # UNIQUE(user_task_id): a second audit row for the same task is ignored.
            conn.execute(
                """
                INSERT OR IGNORE INTO reward_grants(
                    user_task_id, user_id, task_id,
                    currency_awarded, xp_awarded, badge_id, reason_code, granted_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    grant.user_task_id,
                    grant.user_id,
                    grant.task_id,
                    int(grant.currency_awarded),
                    int(grant.xp_awarded),
                    grant.badge_id,
                    grant.reason_code,
                    float(grant.granted_at),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_reward_grant(self, user_task_id: str) -> RewardGrant | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM reward_grants WHERE user_task_id = ?", (user_task_id,))
            row = cur.fetchone()
            return self._row_to_grant(row) if row else None
        finally:
            conn.close()

    def list_reward_grants(self, user_id: str) -> list[RewardGrant]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM reward_grants WHERE user_id = ? ORDER BY id ASC", (user_id,))
            return [self._row_to_grant(r) for r in cur.fetchall()]
        finally:
            conn.close()
