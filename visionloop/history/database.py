"""
SQLite store for playback history.
One row per session in `runs`, one row per data row in `row_results`.
"""
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite


@dataclass
class RunRecord:
    """One stored playback session."""
    recording_name: str
    status: str
    total_rows: int
    completed_rows: int
    error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None

    @property
    def duration_seconds(self) -> float:
        if not self.finished_at:
            return 0.0
        return max(0.0, self.finished_at - self.started_at)


class RunHistoryDB:
    """
    Async SQLite database for playback reports.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self):
        """Open database connection and create tables."""
        self._conn = await aiosqlite.connect(self.db_path)
        await self._create_tables()

    async def close(self):
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "RunHistoryDB":
        await self.connect()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _create_tables(self):
        await self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                recording_name TEXT DEFAULT '',
                status TEXT NOT NULL,
                total_rows INTEGER NOT NULL,
                completed_rows INTEGER NOT NULL,
                error TEXT,
                started_at REAL NOT NULL,
                finished_at REAL NOT NULL,
                metadata TEXT DEFAULT '{}'
            );

            CREATE INDEX IF NOT EXISTS idx_runs_started ON runs(started_at);
            CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status);

            CREATE TABLE IF NOT EXISTS row_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id INTEGER NOT NULL REFERENCES runs(id),
                row_index INTEGER NOT NULL,
                success BOOLEAN NOT NULL,
                steps_executed INTEGER NOT NULL,
                error TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_row_results_run ON row_results(run_id);
        """)
        await self._conn.commit()

    async def save_report(self, report, metadata: Optional[Dict[str, Any]] = None) -> int:
        """Store a PlaybackReport and its row results. Returns the run ID."""
        cursor = await self._conn.execute("""
            INSERT INTO runs (
                recording_name, status, total_rows, completed_rows,
                error, started_at, finished_at, metadata
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            report.recording_name,
            report.status,
            report.total_rows,
            report.completed_rows,
            report.error,
            report.started_at,
            report.finished_at or time.time(),
            json.dumps(metadata or {}),
        ))
        run_id = cursor.lastrowid

        await self._conn.executemany("""
            INSERT INTO row_results (run_id, row_index, success, steps_executed, error)
            VALUES (?, ?, ?, ?, ?)
        """, [
            (run_id, r.row_index, r.success, len(r.steps), r.error)
            for r in report.rows
        ])
        await self._conn.commit()
        return run_id

    async def get_runs(self, limit: int = 20) -> List[RunRecord]:
        """Most recent runs first."""
        cursor = await self._conn.execute("""
            SELECT id, recording_name, status, total_rows, completed_rows,
                   error, started_at, finished_at, metadata
            FROM runs
            ORDER BY started_at DESC, id DESC
            LIMIT ?
        """, (limit,))
        rows = await cursor.fetchall()
        return [self._row_to_run(row) for row in rows]

    async def get_row_results(self, run_id: int) -> List[Dict[str, Any]]:
        cursor = await self._conn.execute("""
            SELECT row_index, success, steps_executed, error
            FROM row_results WHERE run_id = ? ORDER BY row_index
        """, (run_id,))
        rows = await cursor.fetchall()
        return [
            {"row_index": r[0], "success": bool(r[1]), "steps_executed": r[2], "error": r[3]}
            for r in rows
        ]

    async def get_stats(self) -> Dict[str, Any]:
        """Aggregate counts over all stored runs."""
        cursor = await self._conn.execute("""
            SELECT COUNT(*),
                   COALESCE(SUM(status = 'completed'), 0),
                   COALESCE(SUM(status = 'failed'), 0),
                   COALESCE(SUM(status = 'stopped'), 0),
                   COALESCE(SUM(completed_rows), 0)
            FROM runs
        """)
        row = await cursor.fetchone()
        return {
            "total_runs": row[0],
            "completed": row[1],
            "failed": row[2],
            "stopped": row[3],
            "rows_completed": row[4],
        }

    @staticmethod
    def _row_to_run(row) -> RunRecord:
        return RunRecord(
            id=row[0],
            recording_name=row[1],
            status=row[2],
            total_rows=row[3],
            completed_rows=row[4],
            error=row[5],
            started_at=row[6],
            finished_at=row[7],
            metadata=json.loads(row[8]) if row[8] else {},
        )
