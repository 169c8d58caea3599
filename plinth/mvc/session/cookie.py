"""Session cookie options."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from plinth.errors import SessionError
from plinth.server.core.config import SessionCookieConfig

if TYPE_CHECKING:
    from plinth.mvc.session.session import Session

OPTION_KEYS = ("lifetime", "path", "domain", "secure", "httponly")


class SessionCookie:
    """Options of the session cookie; they can only change before the session starts.

    Args:
        session: The session the options belong to
        config: Initial options, usually ``settings.session``
    """

    def __init__(self, session: "Session", config: Optional[SessionCookieConfig] = None) -> None:
        config = config or SessionCookieConfig()
        self._session = session
        self._options: Dict[str, Any] = {
            "lifetime": config.lifetime,
            "path": config.path,
            "domain": config.domain,
            "secure": config.secure,
            "httponly": True,
        }

    def get_options(self) -> Dict[str, Any]:
        return dict(self._options)

    def get_option(self, key: str) -> Any:
        """Raises:
        SessionError: If ``key`` is not a cookie option.
        """
        if key not in OPTION_KEYS:
            raise SessionError(f"The key supplied '{key}' is invalid")
        return self._options[key]

    def set_option(self, key: str, value: Any) -> None:
        """Raises:
        SessionError: If the session has started or ``key`` is not a cookie option.
        """
        if self._session.is_started():
            raise SessionError("A session has already been started. Cookie options must be set before the session starts")
        if key not in OPTION_KEYS:
            raise SessionError(f"The key supplied '{key}' is invalid")
        if key == "lifetime":
            value = int(value)
        elif key in ("secure", "httponly"):
            value = bool(value)
        self._options[key] = value

    def set_options(self, options: Mapping[str, Any]) -> None:
        if not isinstance(options, Mapping):
            raise SessionError("Options must be a mapping")
        for key, value in options.items():
            self.set_option(key, value)
