"""Result rows with attribute access."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping

from plinth.errors import ResultColumnError


class ResultRow:
    """One result row; columns and aliases are read as attributes.

    Reading a column the row does not have raises :class:`ResultColumnError`,
    which is also an ``AttributeError`` so ``getattr(row, name, default)``
    works.
    """

    def __init__(self, row: Mapping[str, Any]) -> None:
        object.__setattr__(self, "_values", dict(row))

    def __getattr__(self, key: str) -> Any:
        if key == "_values" or key.startswith("__"):
            raise AttributeError(key)
        try:
            return self._values[key]
        except KeyError:
            raise ResultColumnError(key) from None

    def __setattr__(self, key: str, value: Any) -> None:
        self._values[key] = value

    def __delattr__(self, key: str) -> None:
        self._values.pop(key, None)

    def __getitem__(self, key: str) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise ResultColumnError(key) from None

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultRow):
            return self._values == other._values
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResultRow({self._values!r})"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)
