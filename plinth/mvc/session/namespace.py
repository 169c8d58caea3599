"""Named sub-store of the session with attribute access."""

from __future__ import annotations

from typing import Any, Dict

from plinth.errors import SessionError, SessionKeyError
from plinth.mvc.session.session import Session


class SessionNamespace:
    """Attribute access to a named area of the session::

        cart = SessionNamespace(session, "cart")
        cart.items = [1, 2]

    The session is started when needed.
    """

    def __init__(self, session: Session, name: str = "app") -> None:
        object.__setattr__(self, "_session", session)
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_read_only", False)
        session.start()
        if not session.key_exists(name):
            session.set(name, {})

    def _data(self) -> Dict[str, Any]:
        return self._session.get(self._name)

    def __setattr__(self, key: str, value: Any) -> None:
        if not self.is_writable():
            raise SessionError(f"Writing to the current session or session namespace '{self._name}' has been disabled")
        self._data()[str(key)] = value
        self._session.touch()

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        data = self._data()
        if key not in data:
            raise SessionKeyError(f"The key '{key}' has not been set for this namespace '{self._name}'")
        return data[key]

    def __delattr__(self, key: str) -> None:
        self._data().pop(key, None)
        self._session.touch()

    def __contains__(self, key: object) -> bool:
        return key in self._data()

    def destroy(self) -> None:
        self._session.unset_key(self._name)

    def get_name(self) -> str:
        return self._name

    def set_name(self, new_name: str) -> "SessionNamespace":
        """Move the namespace's values under ``new_name``."""
        values = self._data()
        self.destroy()
        self._session.set(new_name, values)
        object.__setattr__(self, "_name", new_name)
        return self

    def is_writable(self) -> bool:
        return self._session.is_writable() and not self._read_only

    def set_read_only(self) -> "SessionNamespace":
        object.__setattr__(self, "_read_only", True)
        return self

    def unset_read_only(self) -> "SessionNamespace":
        object.__setattr__(self, "_read_only", False)
        return self
