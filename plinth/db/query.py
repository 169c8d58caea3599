"""
SQL statement builder.

Statements are assembled as strings with positional ``?`` placeholders and a
list of bound values in placeholder order. :func:`to_named_binds` turns such a
statement into SQLAlchemy ``text()`` form right before execution.

Select options::

    {
        "distinct": True,
        "columns": {"id": "id", "COUNT(*)": "total"},
        "left_join": {"groups": {"on": "users.group_id = groups.id", "columns": {"name": "group_name"}}},
        "where": {"users.age > ?": 18, "users.name LIKE ?": "a%"},
        "or_where": {"users.admin = ?": 1},
        "group_by": ["users.id"],
        "having": {"COUNT(*) > ?": 2},
        "order_by": {"users.name": "asc"},
        "limit": 10,
        "offset": 20,
    }
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from plinth.errors import QueryError

SELECT_OPTIONS = (
    "all",
    "distinct",
    "distinctrow",
    "columns",
    "from",
    "join",
    "inner_join",
    "left_join",
    "right_join",
    "where",
    "or_where",
    "having",
    "or_having",
    "group_by",
    "order_by",
    "limit",
    "offset",
)

JOIN_TYPES = {"join": "", "inner_join": "INNER", "left_join": "LEFT", "right_join": "RIGHT"}

BIND_TYPES = ("i", "d", "s", "b")

# Anything that looks like a function call is used verbatim.
_FUNCTION = re.compile(r".+\(.*\)")


@dataclass
class Statement:
    """SQL with positional placeholders and its bound values."""

    sql: str
    params: List[Any] = field(default_factory=list)


def bind_type_of(value: Any) -> str:
    """Bind type for a literal value: ``i``, ``d`` or ``s``."""
    if isinstance(value, bool):
        return "i"
    if isinstance(value, int):
        return "i"
    if isinstance(value, float):
        return "d"
    if isinstance(value, (bytes, bytearray)):
        return "b"
    return "s"


def coerce(value: Any, bind_type: str) -> Any:
    """Convert ``value`` to the Python type of ``bind_type``; ``None`` is kept.

    Raises:
        QueryError: If the value cannot be converted.
    """
    if value is None:
        return None
    try:
        if bind_type == "i":
            return int(value)
        if bind_type == "d":
            return float(value)
        if bind_type == "b":
            return value if isinstance(value, (bytes, bytearray)) else str(value).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise QueryError(f"Cannot bind {value!r} as type '{bind_type}'") from e
    return value if isinstance(value, str) else str(value)


def to_named_binds(sql: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Rewrite ``?`` placeholders to ``:p0``, ``:p1``... for ``sqlalchemy.text``.

    Placeholders inside quoted literals are left alone and literal colons are
    escaped so ``text()`` does not read them as binds.

    Raises:
        QueryError: If the number of placeholders and values differ.
    """
    out: List[str] = []
    quote: Optional[str] = None
    index = 0
    for char in sql:
        if quote:
            if char == quote:
                quote = None
            out.append("\\:" if char == ":" else char)
            continue
        if char in ("'", '"', "`"):
            quote = char
            out.append(char)
        elif char == "?":
            out.append(f":p{index}")
            index += 1
        elif char == ":":
            out.append("\\:")
        else:
            out.append(char)
    if index != len(params):
        raise QueryError(f"The statement has {index} placeholder(s) but {len(params)} value(s) were supplied")
    return "".join(out), {f"p{i}": value for i, value in enumerate(params)}


def _pairs(clause: Any, option: str) -> Iterable[Tuple[str, Any]]:
    """Yield ``(fragment, value)`` from a mapping or a list of mappings/pairs."""
    if isinstance(clause, Mapping):
        yield from clause.items()
        return
    if isinstance(clause, (list, tuple)):
        for item in clause:
            if isinstance(item, Mapping):
                yield from item.items()
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                yield str(item[0]), item[1]
            else:
                raise QueryError(f"Invalid '{option}' clause specified")
        return
    raise QueryError(f"Invalid '{option}' clause specified")


class QueryBuilder:
    """Build statements for one table.

    Args:
        table: The table name
        columns: Column name to bind type (``i``, ``d``, ``s`` or ``b``)
        quote: Identifier quoting function of the target dialect
    """

    def __init__(self, table: str, columns: Mapping[str, str], quote: Callable[[str], str]) -> None:
        if not table:
            raise QueryError("No table has been set")
        self.table = table
        self.columns = dict(columns)
        self.quote = quote
        for column, bind_type in self.columns.items():
            if bind_type not in BIND_TYPES:
                raise QueryError(f"Invalid bind type '{bind_type}' for column '{column}'")

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def is_table_column(self, column: str) -> bool:
        return str(column) in self.columns

    def column_type(self, column: str) -> str:
        """Raises:
        QueryError: If ``column`` is not a column of the table.
        """
        try:
            return self.columns[str(column)]
        except KeyError:
            raise QueryError(f"Invalid column name '{column}' supplied") from None

    def qualified(self, column: str, table: Optional[str] = None) -> str:
        return f"{self.quote(table or self.table)}.{self.quote(column)}"

    def _bind(self, fragment: str, value: Any, params: List[Any], option: str) -> None:
        count = fragment.count("?")
        if count == 0:
            return
        if count == 1:
            params.append(value)
            return
        if not isinstance(value, (list, tuple)) or len(value) != count:
            raise QueryError(f"The '{option}' fragment '{fragment}' needs {count} values")
        params.extend(value)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, data: Mapping[str, Any]) -> Statement:
        if not data:
            raise QueryError("No values supplied for insert")
        names = [self.quote(col) for col in data]
        params = [coerce(value, self.column_type(col)) for col, value in data.items()]
        placeholders = ", ".join("?" for _ in names)
        return Statement(f"INSERT INTO {self.quote(self.table)} ({', '.join(names)}) VALUES ({placeholders})", params)

    def _where_columns(self, where: Mapping[str, Any], params: List[Any]) -> str:
        clauses = []
        for col, value in where.items():
            clauses.append(f"{self.quote(col)} = ?")
            params.append(coerce(value, self.column_type(col)))
        return " AND ".join(clauses)

    def update(self, data: Mapping[str, Any], where: Optional[Mapping[str, Any]] = None) -> Statement:
        if not data:
            raise QueryError("No values supplied for update")
        params: List[Any] = []
        sets = []
        for col, value in data.items():
            sets.append(f"{self.quote(col)} = ?")
            params.append(coerce(value, self.column_type(col)))
        sql = f"UPDATE {self.quote(self.table)} SET {', '.join(sets)}"
        if where:
            sql += " WHERE " + self._where_columns(where, params)
        return Statement(sql, params)

    def delete(self, where: Optional[Mapping[str, Any]] = None) -> Statement:
        """Delete matching rows; without ``where`` every row is deleted."""
        params: List[Any] = []
        sql = f"DELETE FROM {self.quote(self.table)}"
        if where:
            sql += " WHERE " + self._where_columns(where, params)
        return Statement(sql, params)

    # ------------------------------------------------------------------
    # Select
    # ------------------------------------------------------------------

    def select(self, options: Mapping[str, Any]) -> Statement:
        """Build a ``SELECT`` from an options mapping.

        Raises:
            QueryError: For unknown options or malformed clauses.
        """
        for key in options:
            if key not in SELECT_OPTIONS:
                raise QueryError(f"Invalid option '{key}' supplied in options")

        params: List[Any] = []
        columns = self._columns_clause(options.get("columns"))
        joins: List[str] = []
        for option, join_type in JOIN_TYPES.items():
            if option in options:
                clause, extra_columns = self._join_clause(options[option], join_type, option)
                joins.extend(clause)
                columns += extra_columns

        parts = ["SELECT", self._distinct_clause(options), columns, "FROM", self._from_clause(options.get("from"))]
        parts.extend(joins)
        parts.append(self._where_clause(options, params))
        if "group_by" in options:
            parts.append(self._group_by_clause(options["group_by"]))
        parts.append(self._having_clause(options, params))
        if "order_by" in options:
            parts.append(self._order_by_clause(options["order_by"]))
        parts.append(self._limit_clause(options, params))
        return Statement(" ".join(part for part in parts if part), params)

    @staticmethod
    def _distinct_clause(options: Mapping[str, Any]) -> str:
        if "distinct" in options:
            return "DISTINCT"
        if "distinctrow" in options:
            return "DISTINCTROW"
        if "all" in options:
            return "ALL"
        return ""

    def _column_expression(self, column: str, alias: Optional[str]) -> str:
        if self.is_table_column(column):
            expression = self.qualified(column)
        elif _FUNCTION.match(str(column)):
            expression = str(column)
        else:
            expression = self.quote(str(column))
        return f"{expression} AS {alias}" if alias else expression

    def _columns_clause(self, clause: Any) -> str:
        if clause is None:
            return "*"
        if isinstance(clause, str):
            return clause
        if isinstance(clause, Mapping):
            items = list(clause.items())
        elif isinstance(clause, (list, tuple)):
            items = [(col, None) for col in clause]
        else:
            raise QueryError("Invalid 'columns' clause supplied")
        if not items:
            return "*"
        return ", ".join(self._column_expression(col, alias) for col, alias in items)

    def _from_clause(self, clause: Any) -> str:
        if clause is None:
            return self.quote(self.table)
        if isinstance(clause, str):
            return clause
        if isinstance(clause, (list, tuple)) and clause:
            return ", ".join(self.quote(str(table)) for table in clause)
        raise QueryError("Invalid 'from' clause supplied")

    def _join_clause(self, clause: Any, join_type: str, option: str) -> Tuple[List[str], str]:
        if not isinstance(clause, Mapping):
            raise QueryError(f"Invalid '{option}' clause supplied")
        joins: List[str] = []
        columns = ""
        keyword = f"{join_type} JOIN" if join_type else "JOIN"
        for table, opts in clause.items():
            opts = opts or {}
            if "on" in opts:
                joins.append(f"{keyword} {self.quote(table)} ON ({opts['on']})")
            elif "using" in opts:
                joins.append(f"{keyword} {self.quote(table)} USING ({self.quote(opts['using'])})")
            else:
                raise QueryError(f"Specify an 'on' or 'using' value for '{option}'")
            join_columns = opts.get("columns")
            if join_columns:
                for col, alias in join_columns.items():
                    if _FUNCTION.match(str(col)):
                        columns += f", {col} AS {alias}"
                    else:
                        columns += f", {self.qualified(col, table)} AS {alias}"
            else:
                columns += f", {self.quote(table)}.*"
        return joins, columns

    def _where_clause(self, options: Mapping[str, Any], params: List[Any]) -> str:
        where = ""
        for option, glue in (("where", "AND"), ("or_where", "OR")):
            if option not in options:
                continue
            for fragment, value in _pairs(options[option], option):
                where = f"{where} {glue} {fragment}" if where else str(fragment)
                self._bind(str(fragment), value, params, option)
        return f"WHERE {where}" if where else "WHERE 1 = 1"

    @staticmethod
    def _group_by_clause(clause: Any) -> str:
        if isinstance(clause, str):
            return f"GROUP BY {clause}"
        if isinstance(clause, Mapping):
            items = [f"({col}) {str(order).upper()}" for col, order in clause.items()]
        elif isinstance(clause, (list, tuple)):
            items = [f"({col})" for col in clause]
        else:
            raise QueryError("Invalid 'group_by' clause supplied")
        return "GROUP BY " + ", ".join(items)

    def _having_clause(self, options: Mapping[str, Any], params: List[Any]) -> str:
        if "having" in options:
            option, glue = "having", "AND"
        elif "or_having" in options:
            option, glue = "or_having", "OR"
        else:
            return ""
        fragments = []
        for fragment, value in _pairs(options[option], option):
            fragments.append(str(fragment))
            self._bind(str(fragment), value, params, option)
        return "HAVING " + f" {glue} ".join(fragments) if fragments else ""

    @staticmethod
    def _order_by_clause(clause: Any) -> str:
        if isinstance(clause, str):
            return f"ORDER BY {clause}"
        if isinstance(clause, Mapping) and clause:
            return "ORDER BY " + ", ".join(f"{col} {str(order).upper()}" for col, order in clause.items())
        raise QueryError("Invalid 'order_by' clause supplied")

    @staticmethod
    def _limit_clause(options: Mapping[str, Any], params: List[Any]) -> str:
        if "limit" not in options:
            return ""
        limit = options["limit"]
        if not isinstance(limit, int) or isinstance(limit, bool):
            raise QueryError(f"Invalid 'limit': {limit!r} clause supplied")
        params.append(limit)
        if "offset" not in options:
            return "LIMIT ?"
        offset = options["offset"]
        if not isinstance(offset, int) or isinstance(offset, bool):
            raise QueryError(f"Invalid 'offset': {offset!r} clause supplied")
        params.append(offset)
        return "LIMIT ? OFFSET ?"
