"""
Database schema initialization.

Creates the scheduled task table, the member history tables and the schema
version marker.
"""

import aiosqlite

from schedcord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes; safe to run on every startup."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        # Whole task list; rewritten in full on every store mutation.
        # ``position`` keeps store order across restarts.
        await db.execute("""
            CREATE TABLE IF NOT EXISTS scheduled_tasks (
                task_id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                execute_at TEXT NOT NULL,
                action_kind TEXT NOT NULL,
                action_payload TEXT NOT NULL,
                repeat_kind TEXT NOT NULL DEFAULT 'none',
                repeat_interval_us INTEGER
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS member_profiles (
                user_id TEXT PRIMARY KEY,
                username TEXT NOT NULL,
                last_nickname TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS member_joins (
                user_id TEXT NOT NULL,
                joined_at TEXT NOT NULL,
                PRIMARY KEY (user_id, joined_at)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_scheduled_tasks_position ON scheduled_tasks(position)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_member_joins_user ON member_joins(user_id, joined_at)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
