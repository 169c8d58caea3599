"""Cookie helper bound to the current request and response."""

from __future__ import annotations

from typing import Any, Optional

from plinth.mvc.request import Request
from plinth.mvc.response import Response

# One year.
DEFAULT_LIFETIME = 31536000


class Cookie:
    def __init__(self, request: Request, response: Response) -> None:
        self._request = request
        self._response = response

    def set(
        self,
        key: str,
        value: str,
        lifetime: int = DEFAULT_LIFETIME,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
    ) -> None:
        """Set a cookie on the response and make it visible to the rest of this request.

        Raises:
            ResponseError: If the response has already been sent.
        """
        self._response.set_cookie(
            key, value, max_age=lifetime, path=path, domain=domain, secure=secure, httponly=httponly
        )
        self._request.cookies[key] = value

    def get(self, key: str) -> Any:
        """Read a cookie, falling back to the request values."""
        if key in self._request.cookies:
            return self._request.cookies[key]
        return self._request.get(key)

    def expire(self, key: str, path: str = "/", domain: Optional[str] = None) -> None:
        self._response.set_cookie(key, "", max_age=0, expires=0, path=path, domain=domain)
        self._request.cookies.pop(key, None)
