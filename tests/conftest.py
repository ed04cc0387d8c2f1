# ruff: noqa: E402

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import botminter.log as bm_log


@pytest.fixture(autouse=True)
def _isolated_environment(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    home = tmp_path_factory.mktemp("bm-home")
    monkeypatch.setenv("BM_HOME", str(home))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / "xdg-state"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / "xdg-cache"))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "bm-test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "bm-test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "bm-test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "bm-test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / "gitconfig"))
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    monkeypatch.delenv("BM_LOG_LEVEL", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.setattr(bm_log, "_configured_level", None)
    monkeypatch.setattr(bm_log, "_no_color_override", None)
    monkeypatch.setattr(bm_log, "_timestamps", False)
