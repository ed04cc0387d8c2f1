"""Three-scope assembly of a workspace's ``.claude/agents`` directory.

Agent files come from the team, the attached project, and the member. Each
scope contributes ``*.md`` files; scopes are applied in that order into a map
keyed by file name, so a member file overrides a project file of the same
name, which overrides a team file. The output directory is rebuilt from
scratch on every pass.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from . import links, paths
from .errors import IoFailedError

BM_DIRNAME = ".botminter"
CLAUDE_DIRNAME = ".claude"
AGENTS_DIRNAME = "agents"
SETTINGS_FILENAME = "settings.local.json"


@dataclass(frozen=True)
class ScopeProvider:
    """One overlay layer: a named directory of agent files."""

    name: str
    directory: Path

    def files(self) -> dict[str, Path]:
        if not self.directory.is_dir():
            return {}
        return {
            entry.name: entry
            for entry in sorted(self.directory.iterdir())
            if entry.suffix == ".md" and entry.is_file()
        }


def member_scope_dir(ws_root: Path, member_dir_name: str) -> Path:
    """Return the member's directory inside the ``.botminter`` clone."""
    return ws_root / BM_DIRNAME / "team" / member_dir_name


def scope_providers(
    ws_root: Path, member_dir_name: str, project_name: str | None
) -> list[ScopeProvider]:
    """Return providers in precedence order, lowest first."""
    bm_dir = ws_root / BM_DIRNAME
    providers = [ScopeProvider("team", bm_dir / "agent" / AGENTS_DIRNAME)]
    if project_name:
        providers.append(
            ScopeProvider(
                "project", bm_dir / paths.PROJECTS_DIRNAME / project_name / "agent" / AGENTS_DIRNAME
            )
        )
    member_agents = member_scope_dir(ws_root, member_dir_name) / "agent" / AGENTS_DIRNAME
    providers.append(ScopeProvider("member", member_agents))
    return providers


def merge_scopes(providers: list[ScopeProvider]) -> dict[str, Path]:
    """Merge provider files; later providers win on name collisions."""
    merged: dict[str, Path] = {}
    for provider in providers:
        merged.update(provider.files())
    return merged


def assemble_overlay(ws_root: Path, member_dir_name: str, project_name: str | None) -> Path:
    """Rebuild ``.claude/agents`` as relative symlinks into ``.botminter``.

    Also copies the member's ``settings.local.json`` into ``.claude/`` when
    the copy is missing or older than its source.

    Returns:
        The assembled agents directory.
    """
    claude_dir = ws_root / CLAUDE_DIRNAME
    agents_dir = claude_dir / AGENTS_DIRNAME
    try:
        if agents_dir.is_symlink() or agents_dir.is_file():
            agents_dir.unlink()
        elif agents_dir.exists():
            shutil.rmtree(agents_dir)
        agents_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IoFailedError(f"failed to reset {agents_dir}: {exc}") from exc

    canonical_agents = agents_dir.resolve()
    merged = merge_scopes(scope_providers(ws_root, member_dir_name, project_name))
    for name, source in merged.items():
        target = links.relative_path(canonical_agents, source.parent.resolve() / source.name)
        links.create_symlink(target, agents_dir / name)

    settings_src = member_scope_dir(ws_root, member_dir_name) / "agent" / SETTINGS_FILENAME
    links.copy_if_newer(settings_src, claude_dir / SETTINGS_FILENAME)
    return agents_dir
