"""
PostgreSQL database manager with connection pooling.

Provides an async interface to PostgreSQL for the project store: generated
files (upsert by project and path), chat messages and generation history.
"""
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import asyncpg
from loguru import logger

from appforge.config import Settings, settings as default_settings

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS project_files (
    project_id TEXT NOT NULL,
    path TEXT NOT NULL,
    content TEXT NOT NULL,
    language TEXT NOT NULL DEFAULT 'plaintext',
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (project_id, path)
);

CREATE TABLE IF NOT EXISTS project_messages (
    id BIGSERIAL PRIMARY KEY,
    project_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS generation_history (
    id BIGSERIAL PRIMARY KEY,
    project_id TEXT NOT NULL,
    prompt TEXT NOT NULL,
    mode TEXT NOT NULL,
    platform TEXT NOT NULL,
    schema JSONB,
    file_count INTEGER NOT NULL DEFAULT 0,
    duration_ms INTEGER NOT NULL DEFAULT 0,
    success BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class DatabaseManager:
    """
    Manages PostgreSQL connections and operations.

    Features:
    - Connection pooling
    - Idempotent schema bootstrap
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.pool: Optional[asyncpg.Pool] = None
        self._connected = False

    async def connect(self) -> None:
        """
        Establish connection pool to PostgreSQL.

        Creates a connection pool with min/max connections
        and tests connectivity.
        """
        s = self.settings
        try:
            logger.info(f"Connecting to PostgreSQL: {s.postgres_host}:{s.postgres_port}")
            logger.debug(f"Database: {s.postgres_db}")

            self.pool = await asyncpg.create_pool(
                host=s.postgres_host,
                port=s.postgres_port,
                database=s.postgres_db,
                user=s.postgres_user,
                password=s.postgres_password,
                min_size=s.postgres_min_connections,
                max_size=s.postgres_max_connections,
                command_timeout=s.postgres_connection_timeout,
                timeout=10,
            )

            async with self.pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                logger.debug(f"PostgreSQL version: {version}")

            self._connected = True
            logger.info("✅ PostgreSQL connection pool established")
            logger.info(f"   Pool size: {s.postgres_min_connections}-{s.postgres_max_connections}")

        except asyncpg.exceptions.InvalidPasswordError as e:
            logger.error(f"❌ PostgreSQL authentication failed: {e}")
            logger.error("   Check that APP_POSTGRES_PASSWORD matches the database password")
            self._connected = False
            raise
        except Exception as e:
            logger.error(f"❌ PostgreSQL connection failed: {e}")
            self._connected = False
            raise

    async def disconnect(self) -> None:
        """Close connection pool gracefully."""
        if self.pool:
            await self.pool.close()
            self._connected = False
            logger.info("PostgreSQL connection pool closed")

    async def create_tables(self) -> None:
        await self.execute(SCHEMA_SQL)
        logger.info("Project store tables ready")

    @asynccontextmanager
    async def acquire(self):
        """
        Acquire a connection from the pool.

        Usage:
            async with db.acquire() as conn:
                result = await conn.fetch("SELECT * FROM project_files")
        """
        if not self._connected or not self.pool:
            raise RuntimeError("Database not connected")

        async with self.pool.acquire() as connection:
            yield connection

    async def execute(self, query: str, *args) -> str:
        async with self.acquire() as conn:
            result = await conn.execute(query, *args)
            logger.debug(f"Executed: {query.strip()[:100]}... | Result: {result}")
            return result

    async def fetch_val(self, query: str, *args) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def ping(self) -> bool:
        if not self.is_connected:
            return False
        try:
            return await self.fetch_val("SELECT 1") == 1
        except Exception as e:
            logger.warning(f"PostgreSQL ping failed: {e}")
            return False

    # ========================================================================
    # PROJECT FILE OPERATIONS
    # ========================================================================

    async def upsert_file(self, project_id: str, path: str, content: str, language: str) -> None:
        """Insert or replace a file; the last writer for a (project, path) wins."""
        query = """
            INSERT INTO project_files (project_id, path, content, language)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (project_id, path)
            DO UPDATE SET content = EXCLUDED.content,
                          language = EXCLUDED.language,
                          updated_at = NOW()
        """
        await self.execute(query, project_id, path, content, language)

    async def delete_file(self, project_id: str, path: str) -> bool:
        result = await self.execute(
            "DELETE FROM project_files WHERE project_id = $1 AND path = $2",
            project_id,
            path,
        )
        return result.endswith(" 1")

    # ========================================================================
    # MESSAGE / HISTORY OPERATIONS
    # ========================================================================

    async def append_message(self, project_id: str, role: str, content: str) -> str:
        query = """
            INSERT INTO project_messages (project_id, role, content)
            VALUES ($1, $2, $3)
            RETURNING id
        """
        message_id = await self.fetch_val(query, project_id, role, content)
        logger.debug(f"Saved message {message_id} for project {project_id}")
        return str(message_id)

    async def append_generation_history(self, record: Dict[str, Any]) -> str:
        query = """
            INSERT INTO generation_history
            (project_id, prompt, mode, platform, schema, file_count, duration_ms, success)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING id
        """
        history_id = await self.fetch_val(
            query,
            record["project_id"],
            record.get("prompt", ""),
            record.get("mode", "controller"),
            record.get("platform", ""),
            json.dumps(record["schema"]) if record.get("schema") is not None else None,
            int(record.get("file_count", 0)),
            int(record.get("duration_ms", 0)),
            bool(record.get("success", True)),
        )
        logger.debug(f"Saved generation history {history_id} for project {record['project_id']}")
        return str(history_id)
