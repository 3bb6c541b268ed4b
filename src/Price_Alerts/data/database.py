"""SQLite connection lifecycle and the numbered-migration runner.

The scan pass and the owner endpoints share one aiosqlite connection. File
databases run in WAL mode with a busy timeout, so a cron-triggered scan can
write while the dashboard reads.
"""

import datetime
import logging
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

import aiosqlite

from Price_Alerts.config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
BUSY_TIMEOUT_MS: int = 5000

_IN_MEMORY = ":memory:"


def _migration_files(directory: Path) -> Iterator[tuple[int, Path]]:
    """Yield ``(version, path)`` for every ``NNN_name.sql`` file, oldest first."""
    for path in sorted(directory.glob("*.sql")):
        prefix, _, _ = path.name.partition("_")
        yield int(prefix), path


class Database:
    """Owns the aiosqlite connection for the alert store.

    Usage::

        async with Database("data/alerts.db") as db:
            repo = Repository(db)
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            msg = f"Database {self._db_path} is not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._connection

    async def connect(self) -> None:
        """Open the connection, set pragmas, and bring the schema up to date."""
        if self._db_path != _IN_MEMORY:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self._db_path)
        await conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        if self._db_path != _IN_MEMORY:
            await conn.execute("PRAGMA journal_mode=WAL")
        self._connection = conn
        applied = await self.migrate()
        logger.info("Alert store ready at %s (%d migration(s) applied)", self._db_path, applied)

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("Alert store closed: %s", self._db_path)

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def migrate(self, directory: Path = MIGRATIONS_DIR) -> int:
        """Apply every migration not yet recorded in ``schema_version``.

        Returns the number of migrations applied. Running it again on an
        up-to-date database applies nothing.
        """
        conn = self.connection
        await conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        )
        async with conn.execute("SELECT version FROM schema_version") as cursor:
            done = {row[0] for row in await cursor.fetchall()}

        applied = 0
        for version, path in _migration_files(directory):
            if version in done:
                continue
            logger.info("Applying migration %03d (%s)", version, path.stem)
            # executescript() commits first, so each file must be idempotent DDL
            await conn.executescript(path.read_text(encoding="utf-8"))
            await conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, datetime.datetime.now(datetime.UTC).isoformat()),
            )
            await conn.commit()
            applied += 1
        return applied
