"""
Per-request registry.

A small key/value store shared by the front controller, the dispatcher and the
controllers handling one request. The front controller stores the caught
exception under the reserved key ``exception`` before routing to the error
controller.
"""

from __future__ import annotations

from typing import Any, Dict, List

from plinth.errors import RegistryError

EXCEPTION_KEY = "exception"
RENDER_VIEW_ONLY_KEY = "render_view_only"
SEND_HEADERS_ONLY_KEY = "send_headers_only"
RESPONSE_CODE_KEY = "response_code"


class Registry:
    """Key/value store with an auto-numbered push/pop area."""

    def __init__(self) -> None:
        self._vars: Dict[str, Any] = {}
        self._push_offset = 0

    def set(self, key: str, value: Any) -> None:
        self._vars[str(key)] = value

    def get(self, key: str) -> Any:
        """Get a value.

        Raises:
            RegistryError: If the key has not been set.
        """
        try:
            return self._vars[str(key)]
        except KeyError:
            raise RegistryError(str(key)) from None

    def exists(self, key: str) -> bool:
        return str(key) in self._vars

    def drop(self, key: str) -> None:
        self._vars.pop(str(key), None)

    def push(self, value: Any, prefix: str = "aa") -> str:
        """Store ``value`` under an auto-numbered key and return that key."""
        key = f"{prefix}{self._push_offset}"
        self._vars[key] = value
        self._push_offset += 1
        return key

    def pop(self, prefix: str = "aa") -> List[Any]:
        """Remove and return every pushed value whose key starts with ``prefix``, oldest first."""
        keys = [key for key in self._vars if key.startswith(prefix) and key[len(prefix):].isdigit()]
        keys.sort(key=lambda k: int(k[len(prefix):]))
        return [self._vars.pop(key) for key in keys]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._vars
