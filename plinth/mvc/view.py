"""
View.

Views are Jinja2 templates inside a module directory. Controllers assign
template variables as attributes of the view (``self.view.title = "News"``);
templates see them by name and the view itself as ``view``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from plinth.core.logging_config import get_logger
from plinth.errors import ViewError
from plinth.mvc.attributes import AttributeBag
from plinth.mvc.loader import is_secure
from plinth.mvc.router import Router

logger = get_logger(__name__)

TEMPLATE_EXTENSION = ".html"


@lru_cache(maxsize=None)
def get_environment(module_dir: str) -> Environment:
    """Jinja2 environment for one module; templates are looked up relative to the module directory."""
    return Environment(
        loader=FileSystemLoader(module_dir),
        autoescape=select_autoescape(["html", "xml"]),
    )


def money_format(amount: Union[int, float, str]) -> str:
    """Format ``amount`` with two decimals and thousands separators: ``1234.5`` -> ``1,234.50``."""
    return f"{float(amount):,.2f}"


def append_suffix(num: Union[int, str]) -> Markup:
    """Append an ordinal suffix in a ``sup`` element: ``1<sup>st</sup>``, ``12<sup>th</sup>``."""
    text = str(num)
    last_two = text[-2:]
    if last_two in ("11", "12", "13"):
        suffix = "th"
    else:
        suffix = {"1": "st", "2": "nd", "3": "rd"}.get(text[-1:], "th")
    return Markup(f"{escape(text)}<sup>{suffix}</sup>")


class View(AttributeBag):
    """Template variables plus the view and layout scripts of one action.

    Args:
        module_dir: Directory of the module handling the request
        router: Router of the current request
        environment: Jinja2 environment; one is created per module directory when omitted
    """

    def __init__(self, module_dir: Union[str, Path], router: Router, environment: Optional[Environment] = None) -> None:
        super().__init__()
        self._module_dir = Path(module_dir)
        self._router = router
        self._env = environment or get_environment(str(self._module_dir))
        self._render = True
        self._content: Optional[str] = None
        self._view_script: Optional[Path] = None
        self._layout_script: Optional[Path] = None

    @property
    def module_dir(self) -> Path:
        return self._module_dir

    @property
    def router(self) -> Router:
        return self._router

    # ------------------------------------------------------------------
    # Render flag
    # ------------------------------------------------------------------

    def render(self, flag: Optional[bool] = None) -> Any:
        """Get the render flag, or set it when ``flag`` is given (returns the view for chaining)."""
        if flag is None:
            return self._render
        self._render = bool(flag)
        return self

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def _check_script(self, path: Path, kind: str) -> Path:
        if not is_secure(path):
            raise ViewError(f"The {kind} script filename '{path}' contains illegal characters")
        if not path.is_file():
            raise ViewError(f"Cannot access {kind} script '{path}'. It may not exist or is not readable")
        return path

    def set_view_script(self, path: Union[str, Path, None] = None) -> "View":
        """Set the view template; defaults to ``views/<controller>/<action>.html`` of the module.

        Raises:
            ViewError: If the path has illegal characters or the file is missing.
        """
        if path is None:
            route = self._router.get_route()
            script = self._module_dir / "views" / route["controller"] / (route["action"] + TEMPLATE_EXTENSION)
        else:
            script = self._module_dir / path
        self._view_script = self._check_script(script, "view")
        self._content = None
        return self

    def get_view_script(self) -> Path:
        if self._view_script is None:
            self.set_view_script()
        assert self._view_script is not None
        return self._view_script

    def set_layout_script(self, path: Union[str, Path, None] = None) -> "View":
        """Set the layout template; defaults to ``layouts/layout.html`` of the module.

        Raises:
            ViewError: If the path has illegal characters or the file is missing.
        """
        if path is None:
            script = self._module_dir / "layouts" / ("layout" + TEMPLATE_EXTENSION)
        else:
            script = self._module_dir / path
        self._layout_script = self._check_script(script, "layout")
        return self

    def get_layout_script(self) -> Path:
        if self._layout_script is None:
            self.set_layout_script()
        assert self._layout_script is not None
        return self._layout_script

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_template(self, script: Path, **context: Any) -> str:
        """Render ``script`` with the view variables, ``view`` and any extra ``context``."""
        try:
            name = script.resolve().relative_to(self._module_dir.resolve()).as_posix()
            template = self._env.get_template(name)
        except ValueError:
            template = self._env.from_string(script.read_text(encoding="utf-8"))
        variables: Dict[str, Any] = self.get_all()
        variables.update(context)
        variables["view"] = self
        logger.debug(f"Rendering template {script}")
        return template.render(**variables)

    def get_view(self) -> str:
        return self.render_template(self.get_view_script())

    def get_layout(self) -> str:
        return self.render_template(self.get_layout_script())

    def set_content(self) -> "View":
        self._content = self.get_view()
        return self

    def get_content(self) -> Markup:
        """Rendered view content, for use inside the layout."""
        if self._content is None:
            self.set_content()
        return Markup(self._content)

    @property
    def content(self) -> Markup:
        return self.get_content()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def url(
        self,
        module: Optional[str] = None,
        controller: Optional[str] = None,
        action: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Build a URL like ``/module/controller/action/k1/v1``.

        Anything not given is taken from the current route, including its
        params; a new param value replaces the current one with the same key.
        """
        route = self._router.get_route()
        location = f"/{module}" if module else ""
        location += f"/{controller or route['controller']}"
        location += f"/{action or route['action']}"
        merged: Dict[str, Any] = dict(self._router.get_param())
        merged.update(params or {})
        for key, value in merged.items():
            location += f"/{key}/{value}"
        return location

    @staticmethod
    def escape(value: Any) -> Markup:
        return escape(value)

    @staticmethod
    def money_format(amount: Union[int, float, str]) -> str:
        return money_format(amount)

    @staticmethod
    def append_suffix(num: Union[int, str]) -> Markup:
        return append_suffix(num)
