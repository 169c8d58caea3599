"""Session helpers built on Starlette's session middleware."""

from .cookie import SessionCookie
from .namespace import SessionNamespace
from .session import DEFAULT_BASE_KEY, Session

__all__ = ["DEFAULT_BASE_KEY", "Session", "SessionCookie", "SessionNamespace"]
