"""
Database test utilities.
Starts one PostgreSQL testcontainer per test class.
"""

import asyncio
import os
import uuid
from typing import List

import psutil
import psycopg
from testcontainers.postgres import PostgresContainer

from .database import Database, DatabaseConfiguration
from .logging import get_logger

logger = get_logger(__name__)


def random_name(prefix: str) -> str:
    """Unique table or channel name for a test."""
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


class DatabaseTestMixin:
    """
    Mixin class for async test cases that need a PostgreSQL database container.
    Use together with unittest.IsolatedAsyncioTestCase:
    setUpClass -> setup_class, asyncSetUp -> setup_database,
    asyncTearDown -> teardown_database, tearDownClass -> teardown_class.
    """

    container: PostgresContainer
    db_config: DatabaseConfiguration

    @classmethod
    def setup_class(cls):
        """Set up PostgreSQL container for the entire test class."""
        if not hasattr(cls, "_container_initialized"):
            cls.container = PostgresContainer(
                "postgres:16-alpine",
                dbname="test_db",
                username="test_user",
                password="test_password",
            )
            cls.container.start()

            cls.db_config = DatabaseConfiguration(
                host=cls.container.get_container_host_ip(),
                port=int(cls.container.get_exposed_port(5432)),
                database="test_db",
                username="test_user",
                password="test_password",
                schema="public",
                sslmode="disable",
            )
            cls._set_database_env_vars()
            cls._container_initialized = True

    @classmethod
    def teardown_class(cls):
        """Clean up PostgreSQL container after all tests."""
        if hasattr(cls, "container") and cls.container:
            try:
                cls.container.stop()
            except Exception as e:
                logger.warning("Could not stop test container", error=e)
            if hasattr(cls, "_container_initialized"):
                delattr(cls, "_container_initialized")

    async def setup_database(self) -> None:
        """Open a fresh shared connection for each test method."""
        self._databases: List[Database] = []
        self._transactions: List[psycopg.AsyncConnection] = []
        self.db = await self.open_database()
        self._initial_connections = self._count_connections()

    async def open_database(self) -> Database:
        """Open an additional independent connection, closed on teardown."""
        db = Database("test_db", self.db_config)
        await db.connect_to_database()
        self._databases.append(db)
        return db

    async def open_transaction(self) -> psycopg.AsyncConnection:
        """
        Open a connection outside autocommit, so statements stay uncommitted
        until commit(). Rolled back and closed on teardown.
        """
        conn = await psycopg.AsyncConnection.connect(self.db_config.connection_string())
        self._transactions.append(conn)
        return conn

    async def wait_for_lock_waiters(self, count: int = 1, timeout: float = 5.0) -> None:
        """Wait until count backends of the test database are blocked on a lock."""
        deadline = asyncio.get_running_loop().time() + timeout
        while True:
            cur = await self.db.connection().execute(
                """
                SELECT count(*) FROM pg_stat_activity
                WHERE datname = current_database() AND wait_event_type = 'Lock';
                """
            )
            row = await cur.fetchone()
            if row is not None and row[0] >= count:
                return
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"Expected {count} backends waiting on a lock")
            await asyncio.sleep(0.05)

    async def teardown_database(self) -> None:
        """Close every connection opened by the test."""
        for conn in getattr(self, "_transactions", []):
            await conn.close()
        for db in getattr(self, "_databases", []):
            await db.close()

        process = psutil.Process(os.getpid())
        memory_mb = process.memory_info().rss / 1024 / 1024
        logger.debug(
            "Test cleanup",
            memory_mb=f"{memory_mb:.1f}",
            connections_before=getattr(self, "_initial_connections", 0),
            connections_after=self._count_connections(),
        )

    def _count_connections(self) -> int:
        """Number of open TCP connections of this process."""
        return len(psutil.Process(os.getpid()).net_connections(kind="tcp"))

    @classmethod
    def _set_database_env_vars(cls):
        """Set environment variables for database configuration."""
        os.environ["FEDIFY_DB_HOST"] = cls.db_config.host
        os.environ["FEDIFY_DB_PORT"] = str(cls.db_config.port)
        os.environ["FEDIFY_DB_DATABASE"] = "test_db"
        os.environ["FEDIFY_DB_USERNAME"] = "test_user"
        os.environ["FEDIFY_DB_PASSWORD"] = "test_password"
        os.environ["FEDIFY_DB_SCHEMA"] = "public"
        os.environ["FEDIFY_DB_SSLMODE"] = "disable"
