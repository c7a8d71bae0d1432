"""
Database Session
================

Thin adapter over a DB-API connection exposing the operations the writer needs:
auto-commit get/set, statement execution and commit.
"""

from typing import Any, Optional, Sequence

from sqlserver_output.utils.logging import logger


class DbapiSession:
    """
    Session over a DB-API 2.0 connection with an `autocommit` attribute (pyodbc).

    Driver errors are not wrapped; they reach the caller unchanged.
    """

    def __init__(self, connection: Any, owner: Any = None):
        """
        Args:
            connection: DB-API connection exposing `autocommit`, `cursor()`, `commit()`
            owner: Object closed together with the session (e.g. a pooled proxy)
        """
        self.connection = connection
        self.owner = owner

    def get_auto_commit(self) -> bool:
        return bool(self.connection.autocommit)

    def set_auto_commit(self, auto_commit: bool) -> None:
        logger.debug("Setting auto-commit", auto_commit=auto_commit)
        self.connection.autocommit = auto_commit

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """
        Execute one statement.

        Returns:
            Affected row count reported by the driver (-1 when unknown)
        """
        logger.debug("Executing SQL", sql=sql)
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            return cursor.rowcount
        finally:
            cursor.close()

    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Any]:
        """Execute a query and return its first row, or None."""
        logger.debug("Querying", sql=sql)
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            return cursor.fetchone()
        finally:
            cursor.close()

    def commit(self) -> None:
        self.connection.commit()

    def close(self) -> None:
        if self.owner is not None:
            self.owner.close()
        else:
            self.connection.close()

    def __enter__(self) -> "DbapiSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
