import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

DOCTEST_MODULES = {
    SRC / "botminter" / name
    for name in (
        "__init__.py",
        "config.py",
        "daemon.py",
        "exec.py",
        "git.py",
        "io.py",
        "links.py",
        "log.py",
        "members.py",
        "models.py",
        "paths.py",
        "state.py",
        "supervisor.py",
        "webhook.py",
        "workspace.py",
    )
}


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path.resolve() in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
