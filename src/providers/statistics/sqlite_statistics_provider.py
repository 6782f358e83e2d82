"""SQLite-backed statistics provider.

Persists the global prompt counter to a local SQLite database at
``data/statistics.db``.  Uses ``aiosqlite`` for async I/O.  The table
holds a single row keyed ``id = 1``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.statistics_provider import IStatisticsProvider

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/statistics.db")

_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_CREATE_TABLE_SQL = f"""\
CREATE TABLE IF NOT EXISTS statistics (
    id            INTEGER PRIMARY KEY CHECK (id = 1),
    prompt_count  INTEGER NOT NULL DEFAULT 0,
    last_updated  TEXT    NOT NULL DEFAULT ({_NOW_SQL})
);
"""

_SEED_ROW_SQL = "INSERT OR IGNORE INTO statistics (id, prompt_count) VALUES (1, 0);"

_INCREMENT_SQL = f"""\
UPDATE statistics
SET prompt_count = prompt_count + 1,
    last_updated = {_NOW_SQL}
WHERE id = 1;
"""

_RESET_SQL = f"""\
UPDATE statistics
SET prompt_count = 0,
    last_updated = {_NOW_SQL}
WHERE id = 1;
"""

_SELECT_SQL = "SELECT prompt_count, last_updated FROM statistics WHERE id = 1;"


class SQLiteStatisticsProvider(IStatisticsProvider):
    """SQLite-backed prompt counter."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the statistics table and its single row if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_SEED_ROW_SQL)
            await db.commit()
        logger.info("statistics_db_initialized", path=str(self._db_path))

    async def increment_prompt_count(self) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_INCREMENT_SQL)
            await db.commit()
            cursor = await db.execute(_SELECT_SQL)
            row = await cursor.fetchone()
        count = row[0] if row else 0
        logger.debug("prompt_count_incremented", prompt_count=count)
        return count

    async def get_statistics(self) -> dict[str, Any]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_SQL)
            row = await cursor.fetchone()
        if row is None:
            return {"promptCount": 0, "lastUpdated": None}
        return {"promptCount": row["prompt_count"], "lastUpdated": row["last_updated"]}

    async def reset(self) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_RESET_SQL)
            await db.commit()
        logger.info("statistics_reset", path=str(self._db_path))
