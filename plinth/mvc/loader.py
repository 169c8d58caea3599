"""
Convention-based class loading.

Controllers and models are plain Python files inside a module directory. They
are not importable packages, so they are loaded by path with ``importlib`` and
registered under a synthetic module name derived from the file location.
"""

from __future__ import annotations

import hashlib
import importlib.util
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import Union

from plinth.core.logging_config import get_logger
from plinth.errors import ConfigurationError

logger = get_logger(__name__)

_INSECURE = re.compile(r"[^a-z0-9/\\_.:-]", re.IGNORECASE)


def is_secure(filename: Union[str, Path]) -> bool:
    """Return True if ``filename`` holds only letters, digits and ``/\\_.:-``."""
    return _INSECURE.search(str(filename)) is None


def _module_name_for(path: Path) -> str:
    digest = hashlib.md5(str(path).encode("utf-8")).hexdigest()[:12]
    return f"plinth_app_{path.stem}_{digest}"


def load_file(path: Union[str, Path]) -> ModuleType:
    """Import a Python source file by path, reusing an earlier import.

    Raises:
        ConfigurationError: If the file cannot be imported.
    """
    path = Path(path).resolve()
    name = _module_name_for(path)
    module = sys.modules.get(name)
    if module is not None:
        return module

    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot load '{path}'")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        del sys.modules[name]
        raise
    logger.debug(f"Loaded {path} as {name}")
    return module


def load_class(path: Union[str, Path], class_name: str) -> type:
    """Load ``class_name`` from the Python file at ``path``.

    Raises:
        ConfigurationError: If the file does not define the class.
    """
    module = load_file(path)
    cls = getattr(module, class_name, None)
    if not isinstance(cls, type):
        raise ConfigurationError(f"The file '{path}' does not define class '{class_name}'")
    return cls
