"""
Query session over the raw encounter file.

The session is an explicitly scoped resource: entering it scans the delimited
input lazily with polars and registers it as a SQL table; leaving it unregisters
every table and drops the SQL context, on success and on failure alike.
"""

import os
from typing import List, Optional, Sequence

import polars as pl

from ..utils import get_logger

logger = get_logger(__name__)


class QuerySession:
    """
    Scoped polars SQL context over a single CSV source.

    Usage:
        with QuerySession("diabetic_data.csv", na_values=["?"]) as session:
            frame = session.execute("SELECT COUNT(*) AS n FROM encounters")

    Attributes:
        source (str): Path to the delimited input file.
        na_values (List[str]): Tokens read as missing values.
        table_name (str): Name under which the source is registered.
    """

    def __init__(
        self,
        source: str,
        na_values: Optional[Sequence[str]] = None,
        table_name: str = "encounters",
    ) -> None:
        self.source = str(source)
        self.na_values: List[str] = list(na_values) if na_values else []
        self.table_name = table_name
        self._context: Optional[pl.SQLContext] = None

    @property
    def is_open(self) -> bool:
        return self._context is not None

    def open(self) -> "QuerySession":
        """
        Scan the source file and register it in a fresh SQL context.

        Returns:
            QuerySession: The opened session (self).

        Raises:
            FileNotFoundError: If the source file does not exist.
            RuntimeError: If the session is already open.
        """
        if self.is_open:
            raise RuntimeError("Query session is already open")
        if not os.path.exists(self.source):
            logger.error(f"Input file not found at {self.source}")
            raise FileNotFoundError(f"Input file not found: {self.source}")

        frame = pl.scan_csv(
            self.source,
            null_values=self.na_values or None,
            infer_schema_length=10000,
        )
        self._context = pl.SQLContext()
        self._context.register(self.table_name, frame)
        logger.info(f"Opened query session on {self.source} as '{self.table_name}'")
        return self

    def close(self) -> None:
        """Unregister all tables and release the SQL context. Safe to call twice."""
        if self._context is None:
            return
        tables = self._context.tables()
        if tables:
            self._context.unregister(tables)
        self._context = None
        logger.info("Closed query session")

    def __enter__(self) -> "QuerySession":
        return self.open()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def tables(self) -> List[str]:
        return self._require_context().tables()

    def columns(self, table_name: Optional[str] = None) -> List[str]:
        """Column names of a registered table (the source table by default)."""
        name = table_name or self.table_name
        return self.execute(f"SELECT * FROM {quote_identifier(name)} LIMIT 0").columns

    def execute(self, query: str) -> pl.DataFrame:
        """
        Run a SQL query against the registered tables and collect the result.

        Args:
            query (str): SQL text.

        Returns:
            pl.DataFrame: Materialised query result.

        Raises:
            RuntimeError: If the session is not open.
        """
        context = self._require_context()
        logger.debug(f"Executing query:\n{query}")
        result = context.execute(query)
        if isinstance(result, pl.LazyFrame):
            result = result.collect()
        return result

    def _require_context(self) -> pl.SQLContext:
        if self._context is None:
            raise RuntimeError("Query session is closed; open it before running queries")
        return self._context


def quote_identifier(name: str) -> str:
    """Quote a column name for polars SQL."""
    return '"' + str(name).replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string literal for polars SQL."""
    return "'" + str(value).replace("'", "''") + "'"
