"""
Front controller.

Every request goes through :class:`Application`: it resolves the module, runs
the module configuration and dispatches the route. Errors are routed to the
module's error controller (``error/error404`` or ``error/error500``) and,
should that fail as well, answered with a plain fallback page.

The application is an ASGI app. Controllers are synchronous and run in a
worker thread, one set of router/dispatcher/registry objects per request.
"""

from __future__ import annotations

import threading
import traceback
from pathlib import Path
from typing import Dict, List, Optional, Union

from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.types import ASGIApp, Receive, Scope, Send

from plinth.core.logging_config import get_logger
from plinth.db.engine import build_engine
from plinth.errors import ConfigurationError, FrameworkError, PageNotFoundError
from plinth.mvc.config import ModuleConfig
from plinth.mvc.dispatcher import Dispatcher
from plinth.mvc.loader import is_secure
from plinth.mvc.notifier import describe_exception
from plinth.mvc.registry import EXCEPTION_KEY, Registry
from plinth.mvc.request import Request
from plinth.mvc.response import Response
from plinth.mvc.router import Router
from plinth.mvc.util import dump
from plinth.server.core.config import Settings
from plinth.server.core.config import settings as default_settings

logger = get_logger(__name__)

ERROR_CONTROLLER = "error"
NOT_FOUND_ACTION = "error404"
SERVER_ERROR_ACTION = "error500"

UNEXPECTED_ERROR_MESSAGE = (
    "An unexpected application error occurred while processing your request. Please try again later."
)


def discover_modules(root: Path) -> List[str]:
    """Sub-directories of ``root`` that do not start with ``.`` or ``_``.

    Raises:
        ConfigurationError: If ``root`` has illegal characters or is not a readable directory.
    """
    if not is_secure(root):
        raise ConfigurationError(f"The modules directory name '{root}' contains illegal characters")
    if not root.is_dir():
        raise ConfigurationError(f"Cannot access modules directory '{root}'. It may not exist or is not readable")
    return sorted(p.name for p in root.iterdir() if p.is_dir() and not p.name.startswith((".", "_")))


class Application:
    """The front controller.

    Args:
        root: Application directory holding the modules; ``settings.app_root`` by default
        default_module: Module used when the path does not name one; ``settings.default_module`` by default
        settings: Framework settings
    """

    def __init__(
        self,
        root: Union[str, Path, None] = None,
        default_module: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.root = Path(root if root is not None else self.settings.app_root)
        self.modules = discover_modules(self.root)
        self.default_module = default_module or self.settings.default_module
        if self.default_module not in self.modules:
            raise ConfigurationError(f"The default module '{self.default_module}' does not exist in '{self.root}'")

        self._lock = threading.Lock()
        self._configs: Dict[str, ModuleConfig] = {}
        self._engines: Dict[str, Engine] = {}

        session = self.settings.session
        self._asgi: ASGIApp = SessionMiddleware(
            self._serve,
            secret_key=session.secret_key,
            session_cookie=session.name,
            max_age=session.lifetime or None,
            path=session.path,
            same_site=session.same_site,  # type: ignore[arg-type]
            https_only=session.secure,
            domain=session.domain,
        )
        logger.info(f"Application loaded from {self.root} with modules {self.modules}")

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def get_modules(self) -> List[str]:
        return list(self.modules)

    def module_dir(self, module: str) -> Path:
        return self.root / module

    def get_config(self, module: str) -> ModuleConfig:
        with self._lock:
            config = self._configs.get(module)
            if config is None:
                config = self._configs[module] = ModuleConfig(self.module_dir(module))
            return config

    def get_engine(self, module: str) -> Engine:
        """Engine of the module's ``[database]`` config, created on first use.

        Raises:
            ConfigurationError: If the module has no ``[database]`` section.
        """
        database = self.get_config(module).database
        if database is None:
            raise ConfigurationError(f"The module '{module}' has no [database] configuration")
        with self._lock:
            engine = self._engines.get(module)
            if engine is None:
                engine = self._engines[module] = build_engine(database.sqlalchemy_url())
            return engine

    def close(self) -> None:
        """Dispose engines and remove the logging handlers installed by module configs."""
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
            for config in self._configs.values():
                config.close()
            self._configs.clear()

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def handle(self, request: Request) -> Response:
        """Run one request through routing, dispatch and error handling."""
        registry = Registry()
        router = Router(request.path, self.modules, self.default_module)
        response = Response()
        try:
            config = self.get_config(router.get_module())
            config.run()
            Dispatcher(self, router, request, response, registry).dispatch()
            return response
        except PageNotFoundError as e:
            logger.info(f"Page not found: {request.path} ({e})")
            registry.set(EXCEPTION_KEY, e)
            action = NOT_FOUND_ACTION
        except Exception as e:
            logger.error(f"Error handling {request.method} {request.path}: {e}", exc_info=True)
            registry.set(EXCEPTION_KEY, e)
            action = SERVER_ERROR_ACTION

        # The error page starts from a clean response.
        response = Response()
        try:
            dispatcher = Dispatcher(self, router, request, response, registry)
            dispatcher.set_route({"controller": ERROR_CONTROLLER, "action": action}).dispatch()
            return response
        except Exception as e:
            logger.error(f"There was an error routing to the {ERROR_CONTROLLER}/{action} action: {e}", exc_info=True)
            return self._fallback_response(router, e)

    def _display_errors(self, router: Router) -> bool:
        try:
            return self.get_config(router.get_current_module()).reporting.display_errors
        except FrameworkError:
            return False

    def _fallback_response(self, router: Router, error: BaseException) -> Response:
        response = Response()
        response.set_response_code(500)
        if self._display_errors(router):
            parts = []
            for label, e in describe_exception(error):
                parts.append(dump(str(e), label))
                parts.append(dump(traceback.format_tb(e.__traceback__) if e.__traceback__ else [], "Trace"))
            body = "".join(parts)
        else:
            body = dump(UNEXPECTED_ERROR_MESSAGE, "Unexpected Application Error")
        response.set_output(f"<!DOCTYPE html><html><head><title>Error</title></head><body>{body}</body></html>")
        return response

    # ------------------------------------------------------------------
    # ASGI
    # ------------------------------------------------------------------

    async def _serve(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = await Request.from_starlette(StarletteRequest(scope, receive))
        response = await run_in_threadpool(self.handle, request)
        await response.to_starlette()(scope, receive, send)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            raise ConfigurationError(f"Unsupported ASGI scope type '{scope['type']}'")
        await self._asgi(scope, receive, send)
