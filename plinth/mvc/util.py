"""Small helpers shared by the framework and application code."""

from __future__ import annotations

import html
import secrets
import string
from pathlib import Path
from typing import Any, Mapping, Union

LOWER_CHARACTERS = string.ascii_lowercase + string.digits
UPPER_CHARACTERS = string.ascii_uppercase
SPECIAL_CHARACTERS = "!@#$%^&*()}{[]?\\/.,"


def gen_random_string(length: int = 40, special: bool = False, case_sensitive: bool = False) -> str:
    """Generate a random string of lowercase letters and digits.

    Args:
        length: Number of characters
        special: Also draw from punctuation characters
        case_sensitive: Also draw from uppercase letters
    """
    characters = LOWER_CHARACTERS
    if case_sensitive:
        characters += UPPER_CHARACTERS
    if special:
        characters += SPECIAL_CHARACTERS
    return "".join(secrets.choice(characters) for _ in range(length))


def create_dir(directory: Union[str, Path]) -> bool:
    """Create ``directory`` and any missing parents. Returns True when it exists afterwards."""
    path = Path(directory)
    if path.is_dir():
        return True
    try:
        path.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError:
        return False
    return True


def _text(value: Any) -> str:
    if isinstance(value, type):
        return value.__name__
    return html.escape(str(value))


def _dump_mapping(items: Mapping[Any, Any]) -> str:
    if not items:
        return ""
    parts = ["<ul>"]
    for key, value in items.items():
        if isinstance(value, Mapping):
            parts.append(f"<li>{_text(key)} => {_dump_mapping(value)}</li>")
        elif isinstance(value, (list, tuple)):
            parts.append(f"<li>{_text(key)} => {_dump_mapping(dict(enumerate(value)))}</li>")
        else:
            parts.append(f"<li>{_text(key)} => {_text(value)}</li>")
    parts.append("</ul>")
    return "".join(parts)


def dump(output: Any, heading: str = "Result") -> str:
    """Render ``output`` as an HTML block, used for debug and error pages.

    Mappings and sequences are rendered as nested lists, anything else as an
    escaped paragraph.
    """
    body: str
    if isinstance(output, Mapping):
        body = _dump_mapping(output)
    elif isinstance(output, (list, tuple)):
        body = _dump_mapping(dict(enumerate(output)))
    else:
        body = f"<p>{_text(output)}</p>"
    return f'<div class="echo"><h1>{_text(heading)}</h1>{body}</div>'
