"""
Session.

Session data is kept in Starlette's signed-cookie session (``request.session``)
under a single base key, so framework data never collides with anything else
stored there. Values must be JSON serializable.
"""

from __future__ import annotations

import json
from typing import Any, Dict, MutableMapping, Optional

from plinth.core.logging_config import get_logger
from plinth.errors import SessionError, SessionKeyError
from plinth.mvc.request import Request
from plinth.mvc.response import Response
from plinth.mvc.session.cookie import SessionCookie
from plinth.mvc.util import gen_random_string
from plinth.server.core.config import SessionCookieConfig

logger = get_logger(__name__)

DEFAULT_BASE_KEY = "__PLINTH__"
ID_KEY = "__PLINTH_ID__"
ID_LENGTH = 32


class Session:
    """Per-request access to the session.

    Args:
        request: The current request; its ``session`` mapping is the store
        response: The current response, used to expire the cookie on :meth:`destroy`
        config: Session cookie configuration
    """

    def __init__(self, request: Request, response: Response, config: Optional[SessionCookieConfig] = None) -> None:
        self._config = config or SessionCookieConfig()
        self._request = request
        self._response = response
        self._store: MutableMapping[str, Any] = request.session
        self._base_key = DEFAULT_BASE_KEY
        self._started = False
        self._read_only = False
        self._closed = False
        self._id: Optional[str] = None
        self.cookie = SessionCookie(self, self._config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        if self._id is not None:
            self._store[ID_KEY] = self._id
        elif ID_KEY in self._store:
            self._id = str(self._store[ID_KEY])
        else:
            self._id = gen_random_string(ID_LENGTH)
            self._store[ID_KEY] = self._id
        self._store.setdefault(self._base_key, {})
        self._started = True
        logger.debug(f"Session started under base key '{self._base_key}'")

    def is_started(self) -> bool:
        return self._started

    def _require_started(self) -> None:
        if not self._started:
            raise SessionError("A session has not been started")

    def _require_not_started(self, what: str) -> None:
        if self._started:
            raise SessionError(f"A session has already been started. {what} must be called before start()")

    def _data(self) -> Dict[str, Any]:
        self._require_started()
        return self._store.setdefault(self._base_key, {})

    def touch(self) -> None:
        """Mark the session data as changed so the session cookie is sent again.

        The store only notices changes to its own keys; values changed inside
        the base key are written back here.
        """
        self._store[self._base_key] = self._data()

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Raises:
        SessionError: If the key is not a string or int, the session has not
            started or it is not writable.
        """
        if not isinstance(key, (str, int)):
            raise SessionError("The key supplied is neither a string nor an integer")
        self._require_started()
        if not self.is_writable():
            raise SessionError("Writing to the current session has been disabled")
        self._data()[str(key)] = value
        self.touch()

    def get(self, key: str) -> Any:
        """Raises:
        SessionKeyError: If the key does not exist.
        """
        if not self.key_exists(key):
            raise SessionKeyError(f"The key '{key}' does not exist in the session")
        return self._data()[str(key)]

    def key_exists(self, key: str) -> bool:
        return str(key) in self._data()

    def unset_key(self, key: str) -> None:
        self._data().pop(str(key), None)
        self.touch()

    def unset_all(self) -> None:
        self._data().clear()
        self.touch()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def get_base_key(self) -> str:
        return self._base_key

    def set_base_key(self, key: str = DEFAULT_BASE_KEY) -> None:
        self._require_not_started("set_base_key()")
        self._base_key = key

    def get_name(self) -> str:
        """Name of the session cookie."""
        return self._config.name

    def get_id(self) -> str:
        self._require_started()
        assert self._id is not None
        return self._id

    def set_id(self, new_id: str) -> None:
        """Raises:
        SessionError: If the session has started or the id is all digits.
        """
        self._require_not_started("set_id()")
        if isinstance(new_id, int) or str(new_id).isdigit():
            raise SessionError(f"Session id cannot be all digits. Supplied with '{new_id}'")
        self._id = str(new_id)

    def regenerate_id(self) -> str:
        self._require_started()
        if self._response.headers_sent:
            raise SessionError("Headers have already been sent")
        self._id = gen_random_string(ID_LENGTH)
        self._store[ID_KEY] = self._id
        return self._id

    def session_exists(self) -> bool:
        """True if the client sent a session cookie (or a request value of that name)."""
        name = self.get_name()
        return name in self._request.cookies or self._request.get(name) is not None

    # ------------------------------------------------------------------
    # Write control
    # ------------------------------------------------------------------

    def set_read_only(self) -> None:
        self._read_only = True

    def unset_read_only(self) -> None:
        self._read_only = False

    def is_writable(self) -> bool:
        return not self._read_only and not self._closed

    def write_close(self) -> None:
        """Stop writing to the session for the rest of the request."""
        self._require_started()
        self._closed = True

    def expire_in(self, seconds: int = 0) -> None:
        self.cookie.set_option("lifetime", seconds)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def encode(self) -> str:
        return json.dumps(self._data())

    def decode(self, data: str) -> None:
        """Merge JSON encoded session data into the session.

        Raises:
            SessionError: If ``data`` is not a JSON object.
        """
        try:
            values = json.loads(data)
        except ValueError as e:
            raise SessionError(f"Cannot decode session data: {e}") from e
        if not isinstance(values, dict):
            raise SessionError("Session data must decode to an object")
        self._data().update(values)
        self.touch()

    def destroy(self) -> None:
        """Clear every session value and expire the session cookie."""
        self._require_started()
        if self._response.headers_sent:
            raise SessionError("Headers have already been sent")
        self._store.clear()
        options = self.cookie.get_options()
        self._response.set_cookie(
            self.get_name(),
            "",
            max_age=0,
            expires=0,
            path=options["path"],
            domain=options["domain"],
            secure=options["secure"],
            httponly=options["httponly"],
        )
        self._started = False
        self._id = None
