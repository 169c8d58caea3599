"""The database layer must import without the MVC layer loaded first."""

import subprocess
import sys

import pytest


@pytest.mark.parametrize(
    "statement",
    [
        "import plinth.db",
        "from plinth.db.model import DbModel",
        "from plinth.db.cache import FileCache",
    ],
)
def test_imports_in_a_fresh_interpreter(statement):
    result = subprocess.run([sys.executable, "-c", statement], capture_output=True, text=True)
    assert result.returncode == 0, result.stderr
