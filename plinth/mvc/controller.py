"""
Base controller.

Application controllers live in ``<module>/controllers/<name>.py`` and extend
:class:`Controller`. Public actions are methods ending in ``_action``::

    class NewsController(Controller):
        def init(self):
            self.news = self.model("news")

        def index_action(self):
            self.view.title = "Latest news"
            self.view.items = self.news.select({"order_by": {"id": "desc"}, "limit": 10})

        def save_action(self):
            ...
            self.redirect("index", "news")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

from plinth.core.logging_config import get_logger
from plinth.db.model import DbModel
from plinth.errors import ConfigurationError, PageNotFoundError, Redirect
from plinth.mvc.cookie import Cookie
from plinth.mvc.dispatcher import camel_case, format_file_name
from plinth.mvc.loader import is_secure, load_class
from plinth.mvc.notifier import format_exception_text
from plinth.mvc.registry import (
    EXCEPTION_KEY,
    RENDER_VIEW_ONLY_KEY,
    RESPONSE_CODE_KEY,
    SEND_HEADERS_ONLY_KEY,
    Registry,
)
from plinth.mvc.request import Request
from plinth.mvc.response import Response
from plinth.mvc.router import Router
from plinth.mvc.session import Session
from plinth.mvc.view import View, get_environment

if TYPE_CHECKING:
    from plinth.mvc.application import Application
    from plinth.mvc.config import ModuleConfig
    from plinth.mvc.dispatcher import Dispatcher

logger = get_logger(__name__)

MODEL_SUFFIX = "Model"


class Controller:
    """Base class of all application controllers."""

    def __init__(
        self,
        application: "Application",
        router: Router,
        request: Request,
        response: Response,
        dispatcher: "Dispatcher",
        registry: Registry,
    ) -> None:
        self.application = application
        self.router = router
        self.request = request
        self.response = response
        self.dispatcher = dispatcher
        self.registry = registry
        self.view: Optional[View] = None
        self._session: Optional[Session] = None

    @property
    def config(self) -> "ModuleConfig":
        return self.application.get_config(self.router.get_module())

    @property
    def module_dir(self) -> Path:
        return self.application.module_dir(self.router.get_module())

    @property
    def logger(self) -> logging.Logger:
        """Application logger of the module; records go to its error log and error emails."""
        return self.config.app_logger

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = Session(self.request, self.response, self.application.settings.session)
        return self._session

    @property
    def cookie(self) -> Cookie:
        return Cookie(self.request, self.response)

    # ------------------------------------------------------------------
    # Dispatch cycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create a fresh view for the current route and call :meth:`init`."""
        self.view = View(self.module_dir, self.router, get_environment(str(self.module_dir)))
        self.init()

    def init(self) -> None:
        """Hook for subclasses, called before every action."""

    def _is_xhr(self) -> bool:
        return bool(self.request.is_xhr() or self.router.get_param("xhr") or self.request.get("xhr"))

    def render(self) -> None:
        """Send the output of the action.

        With rendering enabled an XHR request gets the view alone with status
        200 and any other request gets the layout. With rendering disabled the
        registry decides: ``render_view_only`` sends the view alone and
        ``send_headers_only`` sends no body and the status stored under
        ``response_code`` (200 when unset).
        """
        assert self.view is not None
        if self.view.render():
            if self._is_xhr():
                self._send(self.view.get_view(), 200)
            else:
                self._send(self.view.get_layout())
            return

        if self.registry.exists(RENDER_VIEW_ONLY_KEY):
            self._send(self.view.get_view())
        elif self.registry.exists(SEND_HEADERS_ONLY_KEY):
            code = self.registry.get(RESPONSE_CODE_KEY) if self.registry.exists(RESPONSE_CODE_KEY) else 200
            self.response.set_response_code(int(code))
            self.response.send_headers()

    def _send(self, output: str, status: Optional[int] = None) -> None:
        if self.response.output_sent:
            # Output of an earlier dispatch in this request went first.
            self.response.append_output(output)
            return
        self.response.set_output(output)
        if status is not None:
            self.response.set_response_code(status)
        self.response.send_output()

    def redispatch(
        self,
        action: str,
        controller: str,
        params: Optional[Mapping[str, Any]] = None,
        render_current: bool = False,
    ) -> None:
        """Dispatch another action of the same module without an HTTP redirect.

        Args:
            action: Action route segment
            controller: Controller route segment
            params: Route params of the new dispatch
            render_current: Whether the current view is still rendered afterwards;
                its output then follows the output of the new dispatch
        """
        route: dict = {"controller": str(controller), "action": str(action)}
        if params:
            route["params"] = dict(params)
        view = self.view
        assert view is not None
        if render_current:
            # Scripts resolve from the router, which the new dispatch reroutes.
            view.get_view_script()
            view.get_layout_script()
        self.dispatcher.set_route(route).dispatch()
        # A reused controller instance got a new view for the new route.
        self.view = view
        view.render(render_current)

    def redirect(
        self,
        action: str,
        controller: str,
        module: str = "",
        params: Optional[Mapping[str, Any]] = None,
        exit: bool = True,
    ) -> str:
        """Redirect the client with a 302.

        Args:
            action: Action route segment
            controller: Controller route segment
            module: Module route segment; left out of the URL when empty
            params: Route params appended as ``/key/value``
            exit: Stop the dispatch cycle right away

        Returns:
            The redirect location (when ``exit`` is False).
        """
        location = f"/{module}" if module else ""
        location += f"/{controller}/{action}"
        for key, value in (params or {}).items():
            location += f"/{key}/{value}"
        location = f"{self.request.scheme}://{self.request.host}{location}"

        self.response.set_response_code(302)
        self.response.add_header("Location", location)
        if exit:
            raise Redirect(location)
        return location

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def model(self, name: str) -> DbModel:
        """Load ``models/<name>.py`` of the module and return its ``<Name>Model`` bound to the module database.

        Raises:
            ConfigurationError: If the model cannot be found or the module has no database.
        """
        path = self.module_dir / "models" / (format_file_name(name) + ".py")
        if not is_secure(path) or not path.is_file():
            raise ConfigurationError(f"Cannot access model file '{path}'. It may not exist or is not readable")
        model_class = load_class(path, camel_case(name) + MODEL_SUFFIX)
        if not issubclass(model_class, DbModel):
            raise ConfigurationError(f"The model '{model_class.__name__}' must extend DbModel")

        module = self.router.get_module()
        database = self.config.database
        return model_class(
            self.application.get_engine(module),
            cache_dir=self.application.settings.cache_dir,
            cache_backend=database.cache_backend if database else "file",
            cache_lifetime=database.cache_lifetime if database else None,
            caching=database.cache if database else False,
        )

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def handle_exception(self) -> None:
        """Handle the exception stored by the front controller; meant for the error controller.

        Sets the status to 404 or 500. In development the exception is handed
        to the view as ``exception``. In production anything but a 404 is
        written to the exception log and emailed, subject to throttling.
        """
        if not self.registry.exists(EXCEPTION_KEY):
            return
        exception = self.registry.get(EXCEPTION_KEY)
        if not isinstance(exception, BaseException):
            return

        not_found = isinstance(exception, PageNotFoundError)
        self.response.set_response_code(404 if not_found else 500)

        config = self.config
        if config.is_development:
            assert self.view is not None
            self.view.exception = exception
            return
        if not_found:
            return

        config.exception_logger.error(format_exception_text(exception))
        config.notifier.notify_exception(
            exception, config.exception_log, config.get_configs().application.exception_mailing_delay
        )
