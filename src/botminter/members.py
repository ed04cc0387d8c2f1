"""Member discovery, role lookup, and status colors."""

from __future__ import annotations

from pathlib import Path

from . import config, paths

# Board status names are prefixed with the owning role (``dev:implement``);
# a bare role name maps to the same color in the member table.
STATUS_COLORS = {
    "po": "BLUE",
    "arch": "PURPLE",
    "dev": "YELLOW",
    "qe": "PINK",
    "lead": "ORANGE",
    "sre": "GRAY",
    "cw": "ORANGE",
    "error": "RED",
    "done": "GREEN",
}
STATUS_FALLBACK_COLOR = "GRAY"

# Terminal rendering of board colors.
RICH_STYLES = {
    "BLUE": "blue",
    "PURPLE": "magenta",
    "YELLOW": "yellow",
    "PINK": "hot_pink",
    "ORANGE": "dark_orange",
    "GRAY": "grey50",
    "RED": "red",
    "GREEN": "green",
}

RUN_STATUS_STYLES = {
    "running": "green",
    "crashed": "bold red",
    "stopped": "dim",
}


def discover_members(team_repo: Path) -> list[str]:
    """Return hired member directory names, sorted.

    Example:
        >>> discover_members(Path("/nonexistent"))
        []
    """
    directory = paths.members_dir(team_repo)
    if not directory.is_dir():
        return []
    return sorted(
        entry.name
        for entry in directory.iterdir()
        if entry.is_dir() and not entry.name.startswith(".")
    )


def infer_role(member_dir_name: str) -> str:
    """Infer a role from a ``{role}-{name}`` member directory name.

    Example:
        >>> infer_role("architect-alice")
        'architect'
        >>> infer_role("po-bob-senior")
        'po'
        >>> infer_role("superman")
        'superman'
    """
    return member_dir_name.split("-", 1)[0]


def read_member_role(team_repo: Path, member_dir_name: str) -> str:
    """Return the member's declared role, else the inferred one."""
    manifest = config.load_member_manifest(paths.members_dir(team_repo) / member_dir_name)
    if manifest is not None and manifest.role:
        return manifest.role
    return infer_role(member_dir_name)


def color_for_status(status: str) -> str:
    """Return the board color for a status name, keyed by its role prefix.

    Example:
        >>> color_for_status("dev:implement")
        'YELLOW'
        >>> color_for_status("triage")
        'GRAY'
    """
    prefix = status.split(":", 1)[0]
    return STATUS_COLORS.get(prefix, STATUS_FALLBACK_COLOR)


def rich_style_for_status(status: str) -> str:
    return RICH_STYLES[color_for_status(status)]


def style_for_run_status(label: str) -> str:
    return RUN_STATUS_STYLES.get(label, "")
