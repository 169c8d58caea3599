"""
Response builder.

Controllers set the status, headers, cookies and body here. Nothing reaches
the client until the front controller converts the response into a Starlette
response, so "sending" only marks the response as final.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from starlette.responses import Response as StarletteResponse

from plinth.errors import ResponseError

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"


class Response:
    """Mutable HTTP response for one request."""

    def __init__(self) -> None:
        self.status_code = 200
        self.headers: List[Tuple[str, str]] = []
        self.output = ""
        self.cookies: List[Dict[str, Any]] = []
        self.headers_sent = False
        self.output_sent = False

    def _check_not_sent(self) -> None:
        if self.headers_sent:
            raise ResponseError("The response headers have already been sent")

    def set_response_code(self, code: int) -> None:
        self._check_not_sent()
        self.status_code = int(code)

    def add_header(self, name: str, value: str, replace: bool = True) -> None:
        """Add a header; an existing header of the same name is replaced unless ``replace`` is False."""
        self._check_not_sent()
        if replace:
            self.headers = [(n, v) for n, v in self.headers if n.lower() != name.lower()]
        self.headers.append((name, str(value)))

    def get_header(self, name: str) -> Optional[str]:
        for n, v in self.headers:
            if n.lower() == name.lower():
                return v
        return None

    def set_cookie(
        self,
        key: str,
        value: str = "",
        max_age: Optional[int] = None,
        expires: Optional[int] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = False,
    ) -> None:
        """Queue a ``Set-Cookie`` header.

        Raises:
            ResponseError: If the response has already been sent.
        """
        self._check_not_sent()
        self.cookies.append(
            {
                "key": key,
                "value": value,
                "max_age": max_age,
                "expires": expires,
                "path": path,
                "domain": domain,
                "secure": secure,
                "httponly": httponly,
            }
        )

    def set_output(self, output: str) -> None:
        if self.output_sent:
            raise ResponseError("The response body has already been sent")
        self.output = output

    def append_output(self, output: str) -> None:
        """Add to the body. Unlike :meth:`set_output` this works after the body was sent,
        so a later dispatch of the same request can follow an earlier one's output.
        """
        self.output += output

    def get_output(self) -> str:
        return self.output

    def send_headers(self) -> None:
        """Mark the status and headers as final."""
        self._check_not_sent()
        self.headers_sent = True

    def send_output(self) -> None:
        """Mark the whole response as final."""
        if self.output_sent:
            raise ResponseError("The response body has already been sent")
        if not self.headers_sent:
            self.send_headers()
        self.output_sent = True

    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400 and self.get_header("Location") is not None

    def to_starlette(self) -> StarletteResponse:
        """Build the Starlette response sent to the client."""
        response = StarletteResponse(
            content=self.output.encode("utf-8") if self.output else b"",
            status_code=self.status_code,
        )
        if self.get_header("Content-Type") is None and self.output:
            response.headers["content-type"] = DEFAULT_CONTENT_TYPE
        for name, value in self.headers:
            if name.lower() in ("content-type", "location"):
                response.headers[name.lower()] = value
            else:
                response.headers.append(name, value)
        for cookie in self.cookies:
            response.set_cookie(**cookie)
        return response
