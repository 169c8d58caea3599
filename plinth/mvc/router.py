"""
URL router.

Turns a request path into a route: ``(module, controller, action, params)``.
The first path segment selects the module when it names one; otherwise the
default module is used and the first segment is the controller.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from plinth.core.logging_config import get_logger
from plinth.errors import RouteError

logger = get_logger(__name__)

DEFAULT_CONTROLLER = "index"
DEFAULT_ACTION = "index"

_SLASHES = re.compile(r"/+")


def strip_path(path: str) -> str:
    """Collapse repeated slashes and drop the leading and trailing ones."""
    return _SLASHES.sub("/", path).strip("/")


def flatten_params(params: Union[Mapping[str, Any], Iterable[Any], None]) -> List[str]:
    """Turn a mapping into ``[k1, v1, k2, v2, ...]``; a sequence is kept as is."""
    if params is None:
        return []
    if isinstance(params, Mapping):
        flat: List[str] = []
        for key, value in params.items():
            flat.extend((str(key), str(value)))
        return flat
    if isinstance(params, (str, bytes)):
        raise RouteError("Route params must be a list or a mapping")
    return [str(p) for p in params]


class Router:
    """Resolve request paths into routes.

    Args:
        path: The request path (no query string)
        modules: Names of the application's modules
        default_module: Module used when the path does not name one
    """

    def __init__(self, path: str, modules: Iterable[str], default_module: str) -> None:
        self._path = path
        self._modules = list(modules)
        if default_module not in self._modules:
            raise RouteError(f"The default module '{default_module}' does not exist")
        self._default_module = default_module
        self._current_module = default_module
        self._route: Optional[Dict[str, Any]] = None

    @property
    def modules(self) -> List[str]:
        return list(self._modules)

    def set_module(self, name: str) -> None:
        """Make ``name`` the current module.

        Raises:
            RouteError: If the application has no such module.
        """
        if name not in self._modules:
            raise RouteError(f"The module '{name}' does not exist")
        self._current_module = name

    def get_current_module(self) -> str:
        return self._current_module

    def set_route(self, route: Optional[Mapping[str, Any]] = None) -> None:
        """Resolve the route from the request path, or use an explicit one.

        Args:
            route: Optional mapping with ``controller``, ``action`` and
                optionally ``params``; resolved against the current module.

        Raises:
            RouteError: If the explicit route is malformed.
        """
        if route is None:
            self._route = self._parse_path()
        else:
            self._route = self._explicit_route(route)
        logger.debug(
            f"Route resolved: module={self._route['module']} controller={self._route['controller']} "
            f"action={self._route['action']} params={self._route['params']}"
        )

    def _parse_path(self) -> Dict[str, Any]:
        stripped = strip_path(self._path)
        segments = stripped.split("/") if stripped else []

        if segments and segments[0] in self._modules:
            module = segments.pop(0)
        else:
            module = self._default_module
        self._current_module = module

        controller = segments.pop(0) if segments else DEFAULT_CONTROLLER
        action = segments.pop(0) if segments else DEFAULT_ACTION
        return {"module": module, "controller": controller, "action": action, "params": segments}

    def _explicit_route(self, route: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(route, Mapping):
            raise RouteError("A route must be a mapping with 'controller' and 'action' keys")
        allowed = {"controller", "action", "params"}
        if not {"controller", "action"} <= set(route) or not set(route) <= allowed:
            raise RouteError(f"A route must have 'controller' and 'action' keys and optionally 'params', got {sorted(route)}")
        return {
            "module": self._current_module,
            "controller": str(route["controller"]),
            "action": str(route["action"]),
            "params": flatten_params(route.get("params")),
        }

    def get_route(self) -> Dict[str, Any]:
        if self._route is None:
            self.set_route()
        assert self._route is not None
        return self._route

    def get_module(self) -> str:
        return self.get_route()["module"]

    def get_controller(self) -> str:
        return self.get_route()["controller"]

    def get_action(self) -> str:
        return self.get_route()["action"]

    def get_params(self) -> List[str]:
        return self.get_route()["params"]

    def get_param(self, key: Optional[str] = None) -> Any:
        """Read a route parameter.

        Params are ``key/value`` pairs: keys sit at even positions.

        Args:
            key: Parameter name; when omitted every parameter is returned as a mapping

        Returns:
            The value following ``key``, ``True`` when ``key`` is the last
            segment and has no value, or ``None`` when ``key`` is absent.
        """
        params = self.get_params()
        if key is None:
            result: Dict[str, str] = {}
            for i in range(0, len(params), 2):
                if params[i] not in result:
                    result[params[i]] = params[i + 1] if i + 1 < len(params) else ""
            return result

        for i in range(0, len(params), 2):
            if params[i] == key:
                return params[i + 1] if i + 1 < len(params) else True
        return None

    def clear_params(self) -> None:
        self.get_route()["params"] = []

    def clear_param(self, key: str) -> None:
        """Remove every occurrence of ``key`` together with its value."""
        params = self.get_params()
        kept: List[str] = []
        for i in range(0, len(params), 2):
            if params[i] != key:
                kept.extend(params[i : i + 2])
        self.get_route()["params"] = kept
