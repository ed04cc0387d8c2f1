"""Path helpers for locating botminter state files and workspaces."""

import os
from pathlib import Path

from platformdirs import user_log_dir

BM_APP_NAME = "botminter"
BM_HOME_ENV = "BM_HOME"
BM_HOME_DIRNAME = ".botminter"
CONFIG_FILENAME = "config.yml"
STATE_FILENAME = "state.json"
TEAM_REPO_DIRNAME = "team"
MEMBERS_DIRNAME = "team"
PROJECTS_DIRNAME = "projects"
MANIFEST_FILENAME = "botminter.yml"


def bm_home() -> Path:
    """Return the directory holding botminter config and runtime state.

    Returns:
        ``$BM_HOME`` when set, otherwise ``~/.botminter``.

    Example:
        >>> bm_home().is_absolute()
        True
    """
    override = os.environ.get(BM_HOME_ENV, "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / BM_HOME_DIRNAME


def config_path() -> Path:
    """Return the path to ``config.yml``.

    Example:
        >>> config_path().name
        'config.yml'
    """
    return bm_home() / CONFIG_FILENAME


def state_path() -> Path:
    """Return the path to the runtime state file."""
    return bm_home() / STATE_FILENAME


def log_dir() -> Path:
    """Return the directory for member and daemon log files."""
    return Path(user_log_dir(BM_APP_NAME))


def member_log_path(team_name: str, member_dir_name: str) -> Path:
    """Return the log file a member process appends its output to."""
    return log_dir() / f"{team_name}-{member_dir_name}.log"


def daemon_pid_path(team_name: str) -> Path:
    """Return the PID file for a team's daemon.

    Example:
        >>> daemon_pid_path("alpha").name
        'daemon-alpha.pid'
    """
    return bm_home() / f"daemon-{team_name}.pid"


def daemon_config_path(team_name: str) -> Path:
    """Return the JSON config record for a team's daemon.

    Example:
        >>> daemon_config_path("alpha").name
        'daemon-alpha.json'
    """
    return bm_home() / f"daemon-{team_name}.json"


def daemon_poll_state_path(team_name: str) -> Path:
    """Return the poll cursor file for a team's daemon."""
    return bm_home() / f"daemon-{team_name}-poll.json"


def daemon_log_path(team_name: str) -> Path:
    """Return the log file the daemon process writes to."""
    return log_dir() / f"daemon-{team_name}.log"


def team_repo_dir(team_path: Path) -> Path:
    """Return the team config repo inside a team directory.

    Example:
        >>> team_repo_dir(Path("/w/alpha")).as_posix()
        '/w/alpha/team'
    """
    return team_path / TEAM_REPO_DIRNAME


def members_dir(team_repo: Path) -> Path:
    """Return the directory holding hired member configs in a team repo."""
    return team_repo / MEMBERS_DIRNAME


def workspace_root(
    workspace_base: Path, member_dir_name: str, project_name: str | None = None
) -> Path:
    """Return the canonical workspace root for a member/project pair.

    Example:
        >>> workspace_root(Path("/w/alpha"), "dev-bob").as_posix()
        '/w/alpha/dev-bob'
        >>> workspace_root(Path("/w/alpha"), "dev-bob", "app").as_posix()
        '/w/alpha/dev-bob/app'
    """
    member_ws = workspace_base / member_dir_name
    if project_name:
        return member_ws / project_name
    return member_ws


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
