"""Error types for the Plinth framework.

Every error raised by the framework derives from :class:`FrameworkError`, which
carries the HTTP status the front controller should answer with. A
:class:`PageNotFoundError` routes to the module's ``error/error404`` action,
anything else to ``error/error500``.
"""

from __future__ import annotations

PAGE_NOT_FOUND = 404
INTERNAL_ERROR = 500


class FrameworkError(Exception):
    """Base error for all framework exceptions."""

    status_code: int = INTERNAL_ERROR


class PageNotFoundError(FrameworkError):
    """Raised when a request cannot be mapped to a controller action."""

    status_code = PAGE_NOT_FOUND


class RouteError(FrameworkError):
    """Raised for malformed explicit routes or unknown module names."""


class DispatchError(FrameworkError):
    """Raised when a dispatched action fails; the original error is chained."""


class ConfigurationError(FrameworkError):
    """Raised when the application or a module is misconfigured."""


class ViewError(FrameworkError):
    """Raised when a view, layout or paginator template cannot be used."""


class RequestError(FrameworkError):
    """Raised when a required request value is missing."""


class ResponseError(FrameworkError):
    """Raised when a response is modified after it has been sent."""


class RegistryError(FrameworkError):
    """Raised when reading a registry key that has not been set."""

    def __init__(self, key: str) -> None:
        super().__init__(f"The registry key '{key}' has not been set")
        self.key = key


class SessionError(FrameworkError):
    """Raised for invalid session usage."""


class SessionKeyError(SessionError, AttributeError):
    """Raised when reading a session or namespace key that does not exist."""


class ValidationSpecError(FrameworkError):
    """Raised when a validator or filter spec is malformed."""


class DatabaseError(FrameworkError):
    """Raised when a statement cannot be executed."""


class QueryError(DatabaseError):
    """Raised when a query cannot be built from the supplied options."""


class CacheError(FrameworkError):
    """Raised when the result cache cannot be created or used."""


class PaginatorError(FrameworkError):
    """Raised when a paginator cannot be built."""


class ResultColumnError(FrameworkError, AttributeError):
    """Raised when reading a column or alias that is not in a result row."""

    def __init__(self, column: str) -> None:
        super().__init__(f"The supplied column name or alias '{column}' does not exist")
        self.column = column


class Redirect(Exception):
    """Raised by :meth:`Controller.redirect` to stop the dispatch cycle.

    Not an error: the dispatcher swallows it after the redirect response has
    been prepared.
    """

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location
