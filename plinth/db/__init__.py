"""Database layer: hand-built SQL models, result caches and pagination."""

from .cache import FileCache, MemoryCache, create_cache
from .engine import build_engine
from .model import DbModel
from .query import QueryBuilder, Statement, to_named_binds
from .result import ResultRow

__all__ = [
    "DbModel",
    "FileCache",
    "MemoryCache",
    "QueryBuilder",
    "ResultRow",
    "Statement",
    "build_engine",
    "create_cache",
    "to_named_binds",
]
