"""
DbModel.

Base class for application models. A model is bound to one table and builds
its SQL by hand (see :mod:`plinth.db.query`), executes it through SQLAlchemy
and can cache select results per table::

    class NewsModel(DbModel):
        table = "news"
        columns = {"id": "i", "title": "s", "score": "d"}
        primary = "id"

    news = NewsModel(engine, cache_dir="cache").enable_caching()
    latest = news.select({"order_by": {"id": "desc"}, "limit": 5})
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from plinth.core.logging_config import get_logger
from plinth.db.cache import FileCache, MemoryCache, create_cache
from plinth.db.engine import build_engine
from plinth.db.query import QueryBuilder, Statement, bind_type_of, coerce, to_named_binds
from plinth.db.result import ResultRow
from plinth.errors import DatabaseError

logger = get_logger(__name__)

Row = Union[Dict[str, Any], ResultRow]

SELECT = "select"
INSERT = "insert"
WRITE = "write"


class DbModel:
    """Table gateway with hand-built SQL and optional result caching.

    Args:
        engine: Engine the statements run on
        cache_dir: Root directory of the file cache
        cache_backend: ``file`` or ``memory``
        cache_lifetime: Seconds a cached result stays valid; ``None`` for no expiry
        caching: Start with caching enabled
    """

    table: str = ""
    columns: Dict[str, str] = {}
    primary: str = "id"

    def __init__(
        self,
        engine: Engine,
        cache_dir: Union[str, Path, None] = None,
        cache_backend: str = "file",
        cache_lifetime: Optional[int] = None,
        caching: bool = False,
    ) -> None:
        self._engine = engine
        self._own_engine = False
        self.table = type(self).table
        self.columns = dict(type(self).columns)
        self.primary = type(self).primary
        self._cache_dir = Path(cache_dir) if cache_dir is not None else None
        self._cache_backend = cache_backend
        self._cache_lifetime = cache_lifetime
        self._cache: Optional[Union[FileCache, MemoryCache]] = None
        self._cache_results = caching
        self._rows_as_objects = False
        self._affected_rows = 0
        self.last_query = ""
        self.last_params: List[Any] = []

    # ------------------------------------------------------------------
    # Table definition
    # ------------------------------------------------------------------

    def set_table(self, table: str) -> "DbModel":
        self.table = str(table)
        self._cache = None
        return self

    def set_columns(self, columns: Mapping[str, str]) -> "DbModel":
        self.columns = dict(columns)
        return self

    def set_primary_key(self, primary: str) -> "DbModel":
        self.primary = str(primary)
        return self

    def is_table_column(self, column: str) -> bool:
        return str(column) in self.columns

    def _builder(self) -> QueryBuilder:
        preparer = self._engine.dialect.identifier_preparer
        return QueryBuilder(self.table, self.columns, preparer.quote_identifier)

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def enable_caching(self) -> "DbModel":
        self._cache_results = True
        return self

    def disable_caching(self) -> "DbModel":
        self._cache_results = False
        return self

    def set_cache_backend_type(self, backend: str) -> "DbModel":
        self._cache_backend = str(backend).lower()
        self._cache = None
        return self

    def get_cache(self) -> Union[FileCache, MemoryCache]:
        if self._cache is None:
            self._cache = create_cache(
                self._cache_backend,
                self.table,
                self._cache_dir,
                self._cache_lifetime,
                namespace=self._engine.url.render_as_string(hide_password=True),
            )
        return self._cache

    def clear_cache(self) -> "DbModel":
        self.get_cache().clean()
        return self

    def rows_as_objects(self) -> "DbModel":
        self._rows_as_objects = True
        return self

    def rows_as_arrays(self) -> "DbModel":
        self._rows_as_objects = False
        return self

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self,
        columns: Union[Mapping[str, str], List[str], str, None] = None,
        where: Optional[Mapping[str, Any]] = None,
        do_not_cache: bool = False,
    ) -> List[Row]:
        """Select rows, optionally only ``columns`` and matching ``where`` fragments."""
        options: Dict[str, Any] = {}
        if columns:
            options["columns"] = columns
        if where:
            options["where"] = where
        return self._fetch(self._builder().select(options), do_not_cache)

    def get_all(self, columns: Union[Mapping[str, str], List[str], str, None] = None, do_not_cache: bool = False) -> List[Row]:
        options: Dict[str, Any] = {"columns": columns} if columns else {}
        return self._fetch(self._builder().select(options), do_not_cache)

    def get_row(
        self,
        primary_value: Any,
        columns: Union[Mapping[str, str], List[str], str, None] = None,
        do_not_cache: bool = False,
    ) -> Optional[Row]:
        """Select the row whose primary key is ``primary_value``; ``None`` when there is none."""
        builder = self._builder()
        value = coerce(primary_value, self.columns[self.primary]) if self.primary in self.columns else primary_value
        options: Dict[str, Any] = {"where": {f"{builder.qualified(self.primary)} = ?": value}}
        if columns:
            options["columns"] = columns
        rows = self._fetch(builder.select(options), do_not_cache)
        return rows[0] if rows else None

    def query(self, sql: str, values: Optional[List[Any]] = None, do_not_cache: bool = False) -> List[Row]:
        """Run a raw select with ``?`` placeholders."""
        params = [coerce(value, bind_type_of(value)) for value in values or []]
        return self._fetch(Statement(sql, params), do_not_cache)

    def select(self, options: Mapping[str, Any], do_not_cache: bool = False) -> List[Row]:
        """Run a select built from ``options`` (see :class:`plinth.db.query.QueryBuilder`)."""
        return self._fetch(self._builder().select(options), do_not_cache)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, data: Mapping[str, Any]) -> Optional[int]:
        """Insert a row and return its id."""
        return self._execute(self._builder().insert(data), INSERT)

    def update(self, data: Mapping[str, Any], where: Optional[Mapping[str, Any]] = None) -> int:
        """Update rows matching column equality ``where``; returns the affected row count."""
        return self._execute(self._builder().update(data, where), WRITE)

    def delete(self, where: Optional[Mapping[str, Any]] = None) -> int:
        """Delete rows matching column equality ``where``; no ``where`` deletes every row."""
        return self._execute(self._builder().delete(where), WRITE)

    def get_affected_rows(self) -> int:
        return self._affected_rows

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def set_db(self, name: str) -> "DbModel":
        """Switch to database ``name`` on the same server."""
        url = self._engine.url.set(database=name)
        engine = build_engine(url)
        self.close()
        self._engine = engine
        self._own_engine = True
        self._cache = None
        return self

    def close(self) -> None:
        if self._own_engine:
            self._engine.dispose()
            self._own_engine = False
        self.last_query = ""
        self.last_params = []

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @staticmethod
    def cache_id(statement: Statement) -> str:
        key = statement.sql + json.dumps(statement.params, default=str)
        return hashlib.md5(key.encode("utf-8")).hexdigest()

    def _rows(self, rows: List[Dict[str, Any]]) -> List[Row]:
        if self._rows_as_objects:
            return [ResultRow(row) for row in rows]
        return rows

    def _fetch(self, statement: Statement, do_not_cache: bool) -> List[Row]:
        cache_id = self.cache_id(statement)
        if self._cache_results:
            cached = self.get_cache().load(cache_id)
            if cached is not None:
                logger.debug(f"Cache hit for {self.table}: {cache_id}")
                return self._rows(cached)

        rows = self._run(statement, SELECT)
        if self._cache_results and not do_not_cache:
            self.get_cache().save(rows, cache_id)
        return self._rows(rows)

    def _execute(self, statement: Statement, kind: str) -> Any:
        result = self._run(statement, kind)
        if self._cache_results:
            self.get_cache().clean()
        return result

    def _run(self, statement: Statement, kind: str) -> Any:
        self.last_query = statement.sql
        self.last_params = list(statement.params)
        sql, params = to_named_binds(statement.sql, statement.params)
        logger.debug(f"Executing: {statement.sql} {statement.params}")
        try:
            with self._engine.begin() as conn:
                result = conn.execute(text(sql), params)
                if kind == SELECT:
                    return [dict(row._mapping) for row in result]
                self._affected_rows = result.rowcount
                if kind == INSERT:
                    return result.lastrowid
                return result.rowcount
        except SQLAlchemyError as e:
            raise DatabaseError(f"Unable to execute statement: {statement.sql}") from e
