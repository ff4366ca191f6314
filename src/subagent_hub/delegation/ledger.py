"""
Delegation Ledger — Append-only History of Finished Delegations

Every executed or rejected delegation can be appended here together with
its final ExecutionMetadata. Registration state is not persisted.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from .models import ExecutionMetadata


class DelegationLedger:
    """Persistent delegation history backed by SQLite."""

    DB_PATH = Path.home() / ".subagent-hub" / "data" / "delegations.db"

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = Path(db_path) if db_path else self.DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db: Optional[aiosqlite.Connection] = None

    async def __aenter__(self) -> "DelegationLedger":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        await self.close()

    async def open(self) -> None:
        if self._db is not None:
            return
        self._db = await aiosqlite.connect(str(self.db_path))
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS delegations (
                task_id TEXT PRIMARY KEY,
                executor_id TEXT NOT NULL,
                executor_role TEXT NOT NULL,
                success INTEGER NOT NULL,
                error_kind TEXT,
                start_time REAL NOT NULL,
                end_time REAL NOT NULL,
                duration_ms REAL NOT NULL,
                completed_on_time INTEGER NOT NULL,
                tools_used TEXT DEFAULT '[]',
                tool_invocations INTEGER DEFAULT 0,
                collaboration_used INTEGER DEFAULT 0,
                confidence REAL NOT NULL,
                errors TEXT DEFAULT '[]',
                recorded_at TEXT NOT NULL,
                CHECK (confidence BETWEEN 0.0 AND 100.0),
                CHECK (duration_ms >= 0.0)
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_delegations_executor
            ON delegations(executor_id, end_time DESC)
        """)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def record(
        self,
        metadata: ExecutionMetadata,
        success: bool,
        errors: Optional[List[str]] = None,
        error_kind: Optional[str] = None,
    ) -> None:
        """Append one finished delegation."""
        assert self._db is not None, "ledger is not open"
        await self._db.execute(
            """INSERT OR REPLACE INTO delegations
               (task_id, executor_id, executor_role, success, error_kind,
                start_time, end_time, duration_ms, completed_on_time,
                tools_used, tool_invocations, collaboration_used,
                confidence, errors, recorded_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                metadata.task_id,
                metadata.executor_id,
                metadata.executor_role,
                1 if success else 0,
                error_kind,
                metadata.start_time,
                metadata.end_time,
                metadata.duration_ms,
                1 if metadata.completed_on_time else 0,
                json.dumps(list(metadata.tools_used)),
                metadata.tool_invocations,
                1 if metadata.collaboration_used else 0,
                metadata.confidence,
                json.dumps(errors or []),
                time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime()),
            ),
        )
        await self._db.commit()

    async def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recently finished delegations, newest first."""
        assert self._db is not None, "ledger is not open"
        cursor = await self._db.execute(
            "SELECT * FROM delegations ORDER BY end_time DESC LIMIT ?", (limit,)
        )
        rows = await cursor.fetchall()

        entries = []
        for row in rows:
            entry = dict(row)
            entry["success"] = bool(entry["success"])
            entry["completed_on_time"] = bool(entry["completed_on_time"])
            entry["collaboration_used"] = bool(entry["collaboration_used"])
            entry["tools_used"] = json.loads(entry["tools_used"] or "[]")
            entry["errors"] = json.loads(entry["errors"] or "[]")
            entries.append(entry)
        return entries

    async def stats_by_executor(self) -> Dict[str, Dict[str, Any]]:
        """Per-executor totals: count, successes, mean duration and confidence."""
        assert self._db is not None, "ledger is not open"
        cursor = await self._db.execute(
            "SELECT executor_id, COUNT(*), SUM(success), AVG(duration_ms), AVG(confidence) "
            "FROM delegations GROUP BY executor_id ORDER BY executor_id"
        )
        rows = await cursor.fetchall()

        stats: Dict[str, Dict[str, Any]] = {}
        for executor_id, count, successes, avg_duration, avg_confidence in rows:
            stats[executor_id] = {
                "count": count,
                "successes": successes or 0,
                "failures": count - (successes or 0),
                "avg_duration_ms": avg_duration or 0.0,
                "avg_confidence": avg_confidence or 0.0,
            }
        return stats
