"""
Request wrapper.

The front controller reads the incoming ASGI request once (headers, query
string, form body, cookies, session) and hands controllers this synchronous,
fully materialized view of it.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, MutableMapping, Optional

from starlette.requests import Request as StarletteRequest

from plinth.errors import RequestError

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _normalize_header(name: str) -> str:
    return name.strip().lower().replace("_", "-")


class Request:
    """A single HTTP request as seen by controllers."""

    def __init__(
        self,
        method: str = "GET",
        path: str = "/",
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, Any]] = None,
        form: Optional[Mapping[str, Any]] = None,
        cookies: Optional[Mapping[str, str]] = None,
        server: Optional[Mapping[str, Any]] = None,
        session: Optional[MutableMapping[str, Any]] = None,
        scheme: str = "http",
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.scheme = scheme
        self.headers: Dict[str, str] = {_normalize_header(k): v for k, v in (headers or {}).items()}
        self.query: Dict[str, Any] = dict(query or {})
        self.form: Dict[str, Any] = dict(form or {})
        self.cookies: Dict[str, str] = dict(cookies or {})
        self.server: Dict[str, Any] = dict(server or {})
        self.server.setdefault("REQUEST_METHOD", self.method)
        self.server.setdefault("REQUEST_URI", path)
        # Starlette's session dict when SessionMiddleware is installed.
        self.session: MutableMapping[str, Any] = session if session is not None else {}

    @classmethod
    async def from_starlette(cls, request: StarletteRequest) -> "Request":
        """Materialize a Starlette request, reading the form body when present."""
        form: Dict[str, Any] = {}
        content_type = request.headers.get("content-type", "")
        if request.method in ("POST", "PUT", "PATCH", "DELETE") and content_type.startswith(FORM_CONTENT_TYPES):
            form = dict(await request.form())

        url = request.url
        request_uri = url.path + (f"?{url.query}" if url.query else "")
        server: Dict[str, Any] = {
            "REQUEST_METHOD": request.method,
            "REQUEST_URI": request_uri,
            "PATH_INFO": url.path,
            "QUERY_STRING": url.query,
            "SERVER_NAME": url.hostname or "",
            "SERVER_PORT": url.port or (443 if url.scheme == "https" else 80),
            "REMOTE_ADDR": request.client.host if request.client else "",
        }
        if url.scheme == "https":
            server["HTTPS"] = "on"
        for name, value in request.headers.items():
            server["HTTP_" + name.upper().replace("-", "_")] = value

        session = request.scope.get("session")
        return cls(
            method=request.method,
            path=url.path,
            headers=dict(request.headers),
            query=dict(request.query_params),
            form=form,
            cookies=dict(request.cookies),
            server=server,
            session=session,
            scheme=url.scheme,
        )

    # ------------------------------------------------------------------
    # Method checks
    # ------------------------------------------------------------------

    def get_method(self) -> str:
        return self.method

    def is_get(self) -> bool:
        return self.method == "GET"

    def is_post(self) -> bool:
        return self.method == "POST"

    def is_put(self) -> bool:
        return self.method == "PUT"

    def is_delete(self) -> bool:
        return self.method == "DELETE"

    def is_head(self) -> bool:
        return self.method == "HEAD"

    def is_xhr(self) -> bool:
        """Is this an XMLHttpRequest, as sent by most JavaScript libraries?"""
        return self.get_header("X-Requested-With") == "XMLHttpRequest"

    def is_flash(self) -> bool:
        return " flash" in (self.get_header("User-Agent") or "").lower()

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self.get_header("Host") or self.server.get("SERVER_NAME", "") or "localhost"

    def get_header(self, header: str) -> Optional[str]:
        """Get a header by name; ``X_REQUESTED_WITH`` and ``X-Requested-With`` are equivalent."""
        return self.headers.get(_normalize_header(header))

    def get(self, key: str) -> Any:
        """Look ``key`` up in the query string, the form body, the server values and the environment, in that order."""
        for source in (self.query, self.form, self.server, os.environ):
            if key in source:
                return source[key]
        return None

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        return self.get(key)

    def get_server(self, key: str) -> Any:
        """Get a server value.

        Raises:
            RequestError: If the key is not a server value.
        """
        if key not in self.server:
            raise RequestError(f"The key '{key}' doesn't exist in the server values")
        return self.server[key]

    def get_get(self, key: str) -> Any:
        return self.query.get(key)

    def get_post(self, key: str) -> Any:
        return self.form.get(key)

    def get_env(self, key: str) -> Optional[str]:
        return os.environ.get(key)

    def get_cookie(self, key: str) -> Optional[str]:
        return self.cookies.get(key)
