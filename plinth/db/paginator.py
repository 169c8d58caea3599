"""
Result paginator.

Slices a result list into pages. The page and the page size can be overridden
by the ``page`` and ``per-page`` route params, e.g. ``/news/list/page/3/per-page/20``.
Page links are shown in blocks of ten.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from markupsafe import Markup

from plinth.errors import PaginatorError, ViewError
from plinth.mvc.loader import is_secure
from plinth.mvc.view import View

BLOCK_SIZE = 10


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class Paginator:
    """Pagination of ``results`` for the current request.

    Args:
        results: Every record; must not be empty
        view: View of the current action; gives the route params and renders the script
        item: Label of the records (e.g. ``"News"``)
        records_per_page: Page size unless the ``per-page`` route param overrides it
        script: Paginator template relative to the module directory;
            defaults to ``layouts/paginator.html``

    Raises:
        PaginatorError: If ``results`` is empty.
        ViewError: If the script path has illegal characters or the file is missing.
    """

    def __init__(
        self,
        results: Sequence[Any],
        view: View,
        item: str = "Records",
        records_per_page: int = 10,
        script: Union[str, Path, None] = None,
    ) -> None:
        if not results:
            raise PaginatorError("Invalid data provided to the paginator")

        script_path = view.module_dir / (script if script is not None else Path("layouts") / "paginator.html")
        if not is_secure(script_path):
            raise ViewError(f"The paginator filename '{script_path}' contains illegal characters")
        if not script_path.is_file():
            raise ViewError(f"Could not access paginator file '{script_path}'. It may not exist or is not readable")

        self._view = view
        self.script = script_path
        self.item = str(item)
        self.records_per_page = int(records_per_page)
        self.page = 1

        router = view.router
        per_page = _positive_int(router.get_param("per-page"))
        if per_page:
            self.records_per_page = per_page
        page = _positive_int(router.get_param("page"))
        if page:
            self.page = page
        if self.records_per_page <= 0:
            raise PaginatorError("Records per page must be positive")

        self.record_count = len(results)
        offset = 0 if self.page <= 1 else (self.page - 1) * self.records_per_page
        if offset >= self.record_count:
            offset = 0

        self.records: List[Any] = list(results[offset : offset + self.records_per_page])
        self.first_record = offset + 1
        self.last_record = min(self.first_record + len(self.records) - 1, self.record_count)
        self.page_count = -(-self.record_count // self.records_per_page)

        self.current = offset // self.records_per_page + 1
        self.previous = self.current - 1 if offset != 0 else 0
        self.next = self.current + 1 if offset + self.records_per_page < self.record_count else 0
        self.first = 1
        self.last = self.page_count

        block = self.current // BLOCK_SIZE
        self.page_start = 1 if block == 0 else block * BLOCK_SIZE
        block_end = (self.page_start + BLOCK_SIZE) // BLOCK_SIZE * BLOCK_SIZE
        self.page_end = min(self.page_count, block_end)

    def get_records(self) -> List[Any]:
        return self.records

    def page_range(self) -> range:
        """Page numbers of the current block of links."""
        return range(self.page_start, self.page_end + 1)

    def get_script(self) -> Markup:
        """Render the paginator template with ``paginator`` and ``view`` in its context."""
        return Markup(self._view.render_template(self.script, paginator=self))
