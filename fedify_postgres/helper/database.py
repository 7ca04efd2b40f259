"""
Database helper functions for the PostgreSQL message queue.
Connection configuration and the shared async connection wrapper.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

import psycopg
from psycopg import AsyncConnection, sql

from .error import StoreError
from .logging import StoreLogger, get_logger
from .sql import run_ddl

logger = get_logger(__name__)


@dataclass
class DatabaseConfiguration:
    """
    Database configuration class.
    Used for the shared query connection and for the dedicated LISTEN
    connection each listening queue opens.
    """

    host: str
    port: int
    database: str
    username: str
    password: str
    schema: str = "public"
    sslmode: str = "require"

    @classmethod
    def from_env(cls) -> "DatabaseConfiguration":
        """Create configuration from environment variables."""
        host = os.getenv("FEDIFY_DB_HOST", "localhost")
        port_value = os.getenv("FEDIFY_DB_PORT", "5432")
        database = os.getenv("FEDIFY_DB_DATABASE", "fedify")
        username = os.getenv("FEDIFY_DB_USERNAME", "postgres")
        password = os.getenv("FEDIFY_DB_PASSWORD", "")
        schema = os.getenv("FEDIFY_DB_SCHEMA", "public")
        sslmode = os.getenv("FEDIFY_DB_SSLMODE", "require")

        if not all(
            [host.strip(), database.strip(), username.strip(), schema.strip()]
        ):
            raise ValueError(
                "Required environment variables missing: "
                "FEDIFY_DB_HOST, FEDIFY_DB_DATABASE, "
                "FEDIFY_DB_USERNAME, FEDIFY_DB_SCHEMA must not be empty"
            )

        try:
            port = int(port_value)
        except ValueError:
            raise ValueError(f"FEDIFY_DB_PORT must be an integer, got {port_value!r}")

        return cls(
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            schema=schema,
            sslmode=sslmode,
        )

    def connection_string(self) -> str:
        """Get connection string for psycopg3."""
        return (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.database} "
            f"user={self.username} "
            f"password={self.password} "
            f"sslmode={self.sslmode} "
            f"application_name=fedify_postgres "
            f"options='-c search_path={self.schema}'"
        )


async def connect(config: DatabaseConfiguration) -> AsyncConnection:
    """
    Open a new autocommit connection.
    Every statement commits on its own, so statements from concurrent
    coroutines sharing the connection never end up in one transaction.
    """
    return await psycopg.AsyncConnection.connect(
        config.connection_string(), autocommit=True
    )


class Database:
    """
    Shared database connection wrapper.
    The queue and key-value store borrow it and never close it.
    """

    def __init__(
        self,
        name: str,
        config: Optional[DatabaseConfiguration] = None,
        logger: Optional[StoreLogger] = None,
    ):
        """Initialize database service. Call connect_to_database() before use."""
        self.name = name
        self.config = config
        self.logger = logger or get_logger(__name__)
        self.instance: Optional[AsyncConnection] = None

    def connection(self) -> AsyncConnection:
        """
        Return the open connection.

        :raises StoreError: If the database is not connected.
        """
        if self.instance is None or self.instance.closed:
            raise StoreError(
                "Database connection not established",
                RuntimeError(f"Database {self.name} is not connected"),
            )
        return self.instance

    async def connect_to_database(self) -> None:
        """Connect to the database using the configuration."""
        if not self.config:
            raise StoreError(
                "Database configuration is required for connection",
                ValueError("No config provided"),
            )

        try:
            self.instance = await connect(self.config)
            await self.instance.execute("SELECT 1")
            self.logger.info(f"Connected to database: {self.config.database}")
        except Exception as e:
            raise StoreError("Failed to connect to database", e)

    async def check_table_existence(self, table_name: str) -> bool:
        """Check if a table exists in the current schema."""
        try:
            async with self.connection().cursor() as cur:
                await cur.execute(
                    """
                    SELECT EXISTS (
                        SELECT 1
                        FROM information_schema.tables
                        WHERE table_schema = current_schema()
                        AND table_name = %s
                    );
                    """,
                    (table_name,),
                )
                result = await cur.fetchone()
                return bool(result[0]) if result else False
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to check table existence for {table_name}", e)

    async def create_index(self, table_name: str, column_name: str) -> None:
        """Create an index on the specified column of the specified table."""
        index_name = f"idx_{table_name}_{column_name}"
        try:
            await run_ddl(
                self.connection(),
                sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} ({})").format(
                    sql.Identifier(index_name),
                    sql.Identifier(table_name),
                    sql.Identifier(column_name),
                ),
            )
            self.logger.debug(f"Created index {index_name}")
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(
                f"Failed to create index on {table_name}.{column_name}", e
            )

    async def health(self) -> Dict[str, str]:
        """Check the health of the database connection."""
        stats: Dict[str, str] = {}

        if self.instance is None or self.instance.closed:
            stats["status"] = "down"
            stats["error"] = "No database connection"
            return stats

        try:
            async with self.instance.cursor() as cur:
                await cur.execute("SELECT 1")
                await cur.fetchone()

            stats["status"] = "up"
            stats["message"] = "It's healthy"
            stats["server_version"] = str(self.instance.info.server_version)
            stats["backend_pid"] = str(self.instance.info.backend_pid)
        except Exception as e:
            stats["status"] = "down"
            stats["error"] = f"Database health check failed: {str(e)}"
            self.logger.error("Database health check failed", error=e)

        return stats

    async def close(self) -> None:
        """Close the database connection."""
        if self.instance:
            await self.instance.close()
            self.instance = None
            self.logger.info("Database connection closed")


async def new_database(name: str, config: DatabaseConfiguration) -> Database:
    """Create a new Database instance and connect it."""
    db = Database(name, config)
    await db.connect_to_database()
    return db


async def new_database_from_env(name: str = "fedify") -> Database:
    """Create a new connected Database instance from environment variables."""
    return await new_database(name, DatabaseConfiguration.from_env())


def new_database_with_connection(
    name: str,
    connection: AsyncConnection,
    config: Optional[DatabaseConfiguration] = None,
) -> Database:
    """
    Create a Database around an existing connection.
    The connection should be in autocommit mode. Without a config the
    queue cannot open its LISTEN connection and listen() relies on polling.
    """
    db = Database(name, config)
    db.instance = connection
    return db
