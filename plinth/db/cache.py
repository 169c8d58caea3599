"""
Result-set caches.

Query results are cached per table. The file backend writes one file per
result set under ``<cache_dir>/db/<table>/``; every file starts with an
adler32 checksum of its payload and entries failing the check read as misses.
The memory backend keeps entries in the process.
"""

from __future__ import annotations

import pickle
import threading
import time
import zlib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from plinth.core.logging_config import get_logger
from plinth.errors import CacheError

logger = get_logger(__name__)

FILE_NAME_PREFIX = "rs"
FILE_NAME_SEPARATOR = "---"
MEMORY_CACHE_MAX_ENTRIES = 1000


class FileCache:
    """File backed result cache for one table.

    Args:
        cache_dir: Root cache directory; entries go to ``<cache_dir>/db/<table>``
        table: Table name the cached results belong to
        lifetime: Seconds an entry stays valid; ``None`` keeps entries until cleaned
    """

    def __init__(self, cache_dir: Union[str, Path], table: str, lifetime: Optional[int] = None) -> None:
        self.directory = Path(cache_dir) / "db" / table
        self.lifetime = lifetime
        try:
            self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Could not create the cache directory '{self.directory}'") from e

    def _path(self, cache_id: str) -> Path:
        return self.directory / f"{FILE_NAME_PREFIX}{FILE_NAME_SEPARATOR}{cache_id}"

    def load(self, cache_id: str) -> Any:
        """Return the cached data, or ``None`` on a miss, an expired or a corrupt entry."""
        path = self._path(cache_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        checksum, _, payload = raw.partition(b"\n")
        try:
            if int(checksum, 16) != zlib.adler32(payload):
                raise ValueError("checksum mismatch")
            expires, data = pickle.loads(payload)
        except (ValueError, pickle.UnpicklingError, EOFError, TypeError) as e:
            logger.warning(f"Discarding corrupt cache entry {path}: {e}")
            self.remove(cache_id)
            return None
        if expires is not None and expires <= time.time():
            self.remove(cache_id)
            return None
        return data

    def save(self, data: Any, cache_id: str) -> None:
        expires = time.time() + self.lifetime if self.lifetime else None
        payload = pickle.dumps((expires, data), protocol=pickle.HIGHEST_PROTOCOL)
        content = f"{zlib.adler32(payload):08x}".encode("ascii") + b"\n" + payload
        path = self._path(cache_id)
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_bytes(content)
            tmp.replace(path)
        except OSError as e:
            raise CacheError(f"Could not write cache entry '{path}'") from e

    def remove(self, cache_id: str) -> None:
        self._path(cache_id).unlink(missing_ok=True)

    def clean(self) -> None:
        """Remove every entry of the table."""
        for path in self.directory.glob(f"{FILE_NAME_PREFIX}{FILE_NAME_SEPARATOR}*"):
            path.unlink(missing_ok=True)
        logger.debug(f"Cleaned result cache {self.directory}")


class MemoryCache:
    """In-process result cache for one table, shared by every model of the process.

    Stores are kept per ``(namespace, table)``; models pass their database URL
    as the namespace so equally named tables of different databases stay apart.
    Each store holds at most ``max_entries`` results and drops the oldest first.
    """

    _stores: Dict[Tuple[str, str], Dict[str, Tuple[Optional[float], Any]]] = {}
    _lock = threading.Lock()

    def __init__(
        self,
        table: str,
        lifetime: Optional[int] = None,
        namespace: str = "",
        max_entries: int = MEMORY_CACHE_MAX_ENTRIES,
    ) -> None:
        self.table = table
        self.lifetime = lifetime
        self.namespace = namespace
        self.max_entries = max_entries
        with self._lock:
            self._stores.setdefault((namespace, table), {})

    @property
    def _store(self) -> Dict[str, Tuple[Optional[float], Any]]:
        return self._stores[(self.namespace, self.table)]

    def load(self, cache_id: str) -> Any:
        with self._lock:
            entry = self._store.get(cache_id)
            if entry is None:
                return None
            expires, data = entry
            if expires is not None and expires <= time.time():
                del self._store[cache_id]
                return None
            # Callers get their own copy.
            return pickle.loads(pickle.dumps(data))

    def save(self, data: Any, cache_id: str) -> None:
        expires = time.time() + self.lifetime if self.lifetime else None
        with self._lock:
            store = self._store
            store.pop(cache_id, None)
            while self.max_entries > 0 and len(store) >= self.max_entries:
                del store[next(iter(store))]
            store[cache_id] = (expires, pickle.loads(pickle.dumps(data)))

    def remove(self, cache_id: str) -> None:
        with self._lock:
            self._store.pop(cache_id, None)

    def clean(self) -> None:
        with self._lock:
            self._store.clear()


def create_cache(
    backend: str,
    table: str,
    cache_dir: Union[str, Path, None] = None,
    lifetime: Optional[int] = None,
    namespace: str = "",
) -> Union[FileCache, MemoryCache]:
    """Create a cache backend by name (``file`` or ``memory``).

    Raises:
        CacheError: If the backend is unknown or the file backend has no directory.
    """
    backend = backend.lower()
    if backend == "file":
        if cache_dir is None:
            raise CacheError("The file cache needs a cache directory")
        return FileCache(cache_dir, table, lifetime)
    if backend == "memory":
        return MemoryCache(table, lifetime, namespace=namespace)
    raise CacheError(f"Unsupported cache backend '{backend}'")
