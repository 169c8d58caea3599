"""Attribute bag used by views to collect template variables."""

from __future__ import annotations

from typing import Any, Dict


class AttributeBag:
    """Object whose unknown public attributes read as ``None``.

    Attributes assigned on the instance are stored in a dictionary so they can
    be handed to a template in one go with :meth:`get_all`.
    """

    def __init__(self) -> None:
        object.__setattr__(self, "_vars", {})

    def __setattr__(self, key: str, value: Any) -> None:
        if key.startswith("_") or hasattr(type(self), key):
            object.__setattr__(self, key, value)
        else:
            self._vars[key] = value

    def __getattr__(self, key: str) -> Any:
        # Only reached when normal lookup fails.
        if key.startswith("_"):
            raise AttributeError(key)
        return self._vars.get(key)

    def __delattr__(self, key: str) -> None:
        if key in self._vars:
            del self._vars[key]
        else:
            object.__delattr__(self, key)

    def __contains__(self, key: object) -> bool:
        return key in self._vars

    def unset_all(self) -> None:
        self._vars.clear()

    def get_all(self) -> Dict[str, Any]:
        return dict(self._vars)
