from __future__ import annotations

import os
import subprocess
from pathlib import Path

import yaml

from botminter.models import BotminterConfig, TeamEntry


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def commit_all(repo: Path, message: str = "update") -> None:
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_team_repo(
    team_path: Path,
    members: list[str],
    *,
    projects: list[dict[str, str]] | None = None,
    schema_version: str = "1.0",
) -> Path:
    """Create ``{team_path}/team`` as a committed git repo with hired members."""
    repo = team_path / "team"
    repo.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init", "-q", "-b", "main", str(repo)], check=True)
    manifest = {"schema_version": schema_version, "projects": projects or []}
    write(repo / "botminter.yml", yaml.safe_dump(manifest))
    write(repo / "agent" / "agents" / "team-wide.md", "# Team agent\n")
    for member in members:
        member_dir = repo / "team" / member
        write(member_dir / "PROMPT.md", f"# Prompt for {member}\n")
        write(member_dir / "CLAUDE.md", f"# Context for {member}\n")
        write(member_dir / "ralph.yml", f"member: {member}\n")
        write(member_dir / "botminter.yml", yaml.safe_dump({"role": member.split("-")[0]}))
    commit_all(repo, "initial team")
    return repo


def make_fork(path: Path, files: dict[str, str] | None = None) -> Path:
    """Create a committed git repo usable as a project fork URL."""
    path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init", "-q", "-b", "main", str(path)], check=True)
    for name, content in (files or {"README.md": "# fork\n"}).items():
        write(path / name, content)
    commit_all(path, "initial fork")
    return path


def write_config(team: TeamEntry, *, default: bool = True) -> BotminterConfig:
    cfg = BotminterConfig(
        workzone=team.path.parent,
        default_team=team.name if default else None,
        teams=[team],
    )
    home = Path(os.environ["BM_HOME"])
    write(home / "config.yml", yaml.safe_dump(cfg.model_dump(mode="json")))
    return cfg


def snapshot(root: Path) -> dict[str, str]:
    """Map every path under ``root`` to its content or symlink target."""
    entries: dict[str, str] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [name for name in dirnames if name != ".git"]
        base = Path(dirpath)
        for name in sorted([*dirnames, *filenames]):
            path = base / name
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                entries[rel] = f"-> {os.readlink(path)}"
            elif path.is_file():
                entries[rel] = path.read_text(encoding="utf-8")
            else:
                entries[rel] = "<dir>"
    return entries


class FakeProbe:
    """Liveness probe backed by a set of live PIDs."""

    def __init__(self, alive: set[int] | None = None) -> None:
        self.alive = set(alive or ())

    def is_alive(self, pid: int) -> bool:
        return pid in self.alive
