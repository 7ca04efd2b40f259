"""
DDL execution helpers for the PostgreSQL message queue.
"""

import asyncio
import weakref
from typing import Union

from psycopg import AsyncConnection, errors, sql

from .logging import get_logger

logger = get_logger(__name__)

# One DDL lock per event loop, DDL from this process runs one statement at a time
_DDL_LOCKS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)

# Catalog indexes hit when two sessions create the same table or index at once
_CATALOG_NAME_INDEXES = ("pg_type_typname_nsp_index", "pg_class_relname_nsp_index")


def _ddl_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _DDL_LOCKS.get(loop)
    if lock is None:
        lock = _DDL_LOCKS[loop] = asyncio.Lock()
    return lock


async def run_ddl(
    conn: AsyncConnection,
    statement: Union[str, sql.Composable],
    max_retries: int = 3,
    retry_delay: float = 0.5,
) -> None:
    """
    Executes DDL under a process lock, retrying on deadlocks or serialization errors.

    :param conn: The autocommit psycopg async connection.
    :param statement: The DDL to execute (e.g., CREATE TABLE, DROP TABLE).
    :param max_retries: Number of attempts before the error is raised.
    :param retry_delay: Seconds to wait between attempts.
    """
    async with _ddl_lock():
        for attempt in range(max_retries):
            try:
                async with conn.cursor() as cur:
                    await cur.execute(statement)
                return
            except (errors.DeadlockDetected, errors.SerializationFailure) as e:
                if attempt < max_retries - 1:
                    logger.warning(
                        f"ddl lock, attempt {attempt + 1}/{max_retries}", error=e
                    )
                    await asyncio.sleep(retry_delay)
                else:
                    logger.error(f"ddl failed after {max_retries} retries", error=e)
                    raise


def is_duplicate_definition(error: BaseException) -> bool:
    """
    Check whether an error is the benign conflict raised when two sessions
    race on ``CREATE ... IF NOT EXISTS`` for the same table or index.

    :param error: The exception raised by the driver.
    :returns: True if the error can be ignored.
    """
    if isinstance(error, errors.DuplicateTable):
        return True
    if isinstance(error, errors.UniqueViolation):
        return error.diag.constraint_name in _CATALOG_NAME_INDEXES
    return False
