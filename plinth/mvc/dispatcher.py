"""
Dispatcher.

Maps a route onto a controller class and action method and runs the
controller's dispatch cycle: ``initialize()``, the action, ``render()``.

Naming conventions::

    controller "user-profile"  ->  controllers/user_profile.py, class UserProfileController
    action     "view-all"      ->  method view_all_action()
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from plinth.core.logging_config import get_logger
from plinth.errors import ConfigurationError, DispatchError, PageNotFoundError, Redirect
from plinth.mvc.loader import is_secure, load_class, load_file
from plinth.mvc.registry import Registry
from plinth.mvc.request import Request
from plinth.mvc.response import Response
from plinth.mvc.router import Router

if TYPE_CHECKING:
    from plinth.mvc.application import Application
    from plinth.mvc.config import ModuleConfig
    from plinth.mvc.controller import Controller

logger = get_logger(__name__)

CONTROLLER_SUFFIX = "Controller"
ACTION_SUFFIX = "_action"
DEFAULT_EXTENSION = ".py"

_SEGMENT = re.compile(r"^[A-Za-z0-9]+(?:-+[A-Za-z0-9]+)*$")


def _check_segment(name: str, kind: str) -> str:
    if not _SEGMENT.match(name or ""):
        raise PageNotFoundError(f"The requested {kind} '{name}' does not exist")
    return name


def camel_case(name: str) -> str:
    """``user-profile`` -> ``UserProfile``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("-") if part)


def format_controller_name(name: str) -> str:
    """Class name for a controller route segment.

    Raises:
        PageNotFoundError: If the segment starts or ends with ``-`` or has illegal characters.
    """
    return camel_case(_check_segment(name, "controller")) + CONTROLLER_SUFFIX


def format_file_name(name: str) -> str:
    """File stem for a controller or model name: ``user-profile`` -> ``user_profile``."""
    return re.sub(r"-+", "_", name).lower()


def format_action_name(name: str) -> str:
    """Method name for an action route segment: ``view-all`` -> ``view_all_action``.

    Raises:
        PageNotFoundError: If the segment starts or ends with ``-`` or has illegal characters.
    """
    return format_file_name(_check_segment(name, "action")) + ACTION_SUFFIX


class Dispatcher:
    """Dispatch routes of one request to controllers.

    Args:
        application: The front controller
        router: Router of the request
        request: The request
        response: The response being built
        registry: Registry of the request
    """

    def __init__(
        self,
        application: "Application",
        router: Router,
        request: Request,
        response: Response,
        registry: Registry,
    ) -> None:
        self.application = application
        self.router = router
        self.request = request
        self.response = response
        self.registry = registry
        self._extension = DEFAULT_EXTENSION
        self._route: Optional[Dict[str, Any]] = None
        self._controller: Optional["Controller"] = None
        self._controller_key: Optional[Tuple[Path, str]] = None
        self._depth = 0

    @property
    def config(self) -> "ModuleConfig":
        return self.application.get_config(self.router.get_module())

    # ------------------------------------------------------------------
    # Route
    # ------------------------------------------------------------------

    def set_route(self, route: Optional[Mapping[str, Any]] = None) -> "Dispatcher":
        """Use the router's route, or route to an explicit ``controller``/``action``/``params`` mapping."""
        if route:
            self.router.set_route(route)
        self._route = self.router.get_route()
        return self

    def get_route(self) -> Dict[str, Any]:
        if self._route is None:
            self.set_route()
        assert self._route is not None
        return self._route

    def set_file_name_extension(self, extension: str) -> "Dispatcher":
        """Raises:
        ConfigurationError: If ``extension`` does not start with a dot.
        """
        if not extension.startswith("."):
            raise ConfigurationError(f"The filename extension provided '{extension}' is not valid")
        self._extension = extension
        return self

    def get_file_name_extension(self) -> str:
        return self._extension

    # ------------------------------------------------------------------
    # Controller
    # ------------------------------------------------------------------

    def controller_path(self) -> Path:
        route = self.get_route()
        file_name = format_file_name(route["controller"]) + self._extension
        return self.application.module_dir(route["module"]) / "controllers" / file_name

    def get_controller(self) -> "Controller":
        """Load the controller of the current route, reusing the loaded one when it is the same class."""
        route = self.get_route()
        class_name = format_controller_name(route["controller"])
        path = self.controller_path()
        if self._controller is not None and self._controller_key == (path, class_name):
            return self._controller

        if not is_secure(path):
            raise PageNotFoundError(f"The controller filename '{path}' contains illegal characters")
        if not path.is_file():
            raise PageNotFoundError(f"Cannot access controller file '{path}'. It may not exist or is not readable")
        try:
            load_file(path)
            controller_class = load_class(path, class_name)
        except ConfigurationError as e:
            raise PageNotFoundError(f"The controller '{class_name}' does not exist") from e
        except Exception as e:
            raise DispatchError(f"The controller file '{path}' could not be loaded") from e

        self._controller = controller_class(
            application=self.application,
            router=self.router,
            request=self.request,
            response=self.response,
            dispatcher=self,
            registry=self.registry,
        )
        self._controller_key = (path, class_name)
        logger.debug(f"Loaded controller {class_name} from {path}")
        return self._controller

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self) -> None:
        """Run ``initialize()``, the action and ``render()`` of the routed controller.

        Raises:
            PageNotFoundError: If the controller or the action does not exist.
            DispatchError: If anything else fails; the original error is chained.
        """
        route = self.get_route()
        controller = self.get_controller()
        method_name = format_action_name(route["action"])
        action = getattr(controller, method_name, None)
        if not callable(action):
            raise PageNotFoundError(f"The action '{type(controller).__name__}.{method_name}()' does not exist")

        logger.debug(f"Dispatching {route['module']}/{type(controller).__name__}.{method_name}()")
        self._depth += 1
        try:
            controller.initialize()
            action()
            controller.render()
        except Redirect as redirect:
            # A redirect ends the whole cycle, including any outer dispatch.
            if self._depth > 1:
                raise
            logger.debug(f"Redirected to {redirect.location}")
        except PageNotFoundError:
            raise
        except Exception as e:
            raise DispatchError(
                f"The dispatch of '{type(controller).__name__}.{method_name}()' could not be completed"
            ) from e
        finally:
            self._depth -= 1
