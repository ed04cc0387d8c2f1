"""Shared team resolution helpers for commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .. import config, members, paths
from ..models import ProjectDef, TeamEntry, TeamManifest
from ..state import RuntimeStateStore
from ..supervisor import ProcessSupervisor


@dataclass(frozen=True)
class TeamContext:
    """A resolved team with its repo manifest and hired members."""

    team: TeamEntry
    manifest: TeamManifest
    members: list[str]

    @property
    def team_repo(self) -> Path:
        return paths.team_repo_dir(self.team.path)

    @property
    def projects(self) -> list[ProjectDef]:
        return self.manifest.projects

    @property
    def project_names(self) -> list[str]:
        return [project.name for project in self.manifest.projects]


def resolve_team(team_flag: str | None) -> TeamEntry:
    """Resolve the team named by ``-t`` or the configured default."""
    return config.resolve_team(config.load_config(), team_flag)


def resolve_team_context(team_flag: str | None, *, check_schema: bool = False) -> TeamContext:
    """Resolve the team plus its manifest and members.

    Args:
        team_flag: Value of ``-t/--team``.
        check_schema: Block teams whose manifest predates the current schema.
    """
    team = resolve_team(team_flag)
    if check_schema:
        manifest = config.check_schema_version(team)
    else:
        manifest = config.load_team_manifest(paths.team_repo_dir(team.path))
    team_members = members.discover_members(paths.team_repo_dir(team.path))
    return TeamContext(team=team, manifest=manifest, members=team_members)


def default_supervisor() -> ProcessSupervisor:
    return ProcessSupervisor(RuntimeStateStore(paths.state_path()))
