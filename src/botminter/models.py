"""Pydantic models for botminter configuration and runtime data."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DaemonMode = Literal["webhook", "poll"]

DEFAULT_DAEMON_PORT = 8484
DEFAULT_POLL_INTERVAL_SECS = 60


class Credentials(BaseModel):
    """Secrets attached to a team entry.

    Example:
        >>> Credentials().gh_token is None
        True
    """

    model_config = ConfigDict(extra="allow")

    gh_token: str | None = None
    telegram_bot_token: str | None = None


class TeamEntry(BaseModel):
    """One registered team in ``config.yml``.

    Attributes:
        name: Team name used by ``-t/--team``.
        path: Team directory holding the team repo and member workspaces.
        profile: Profile the team was created from.
        github_repo: ``owner/repo`` slug of the team's GitHub repository.
        credentials: Tokens injected into external commands.

    Example:
        >>> TeamEntry(name="alpha", path="/w/alpha", profile="scrum").github_repo
        ''
    """

    model_config = ConfigDict(extra="allow")

    name: str
    path: Path
    profile: str = ""
    github_repo: str = ""
    credentials: Credentials = Field(default_factory=Credentials)

    @field_validator("github_repo", "profile", mode="before")
    @classmethod
    def normalize_optional_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value


class BotminterConfig(BaseModel):
    """Top-level ``config.yml`` document."""

    model_config = ConfigDict(extra="allow")

    workzone: Path | None = None
    default_team: str | None = None
    teams: list[TeamEntry] = Field(default_factory=list)


class ProjectDef(BaseModel):
    """Project fork a team works against.

    Example:
        >>> ProjectDef(name="app", fork_url="https://github.com/o/app.git").name
        'app'
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    fork_url: str


class TeamManifest(BaseModel):
    """Team repo ``botminter.yml``."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    schema_version: str = ""
    projects: list[ProjectDef] = Field(default_factory=list)

    @field_validator("schema_version", mode="before")
    @classmethod
    def normalize_schema_version(cls, value: object) -> object:
        # YAML reads a bare 1.0 as a float.
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("projects", mode="before")
    @classmethod
    def normalize_projects(cls, value: object) -> object:
        if value is None:
            return []
        return value


class MemberManifest(BaseModel):
    """Member ``botminter.yml`` inside the team repo."""

    model_config = ConfigDict(extra="ignore")

    role: str | None = None


class RuntimeEntry(BaseModel):
    """Persisted record of a launched member process."""

    model_config = ConfigDict(frozen=True)

    pid: int
    started_at: str
    workspace: Path


class RuntimeState(BaseModel):
    """Map of ``{team}/{member}`` keys to runtime entries."""

    members: dict[str, RuntimeEntry] = Field(default_factory=dict)


class DaemonConfig(BaseModel):
    """Daemon configuration record persisted beside the PID file.

    Example:
        >>> DaemonConfig(team="alpha", mode="poll", interval_secs=30).port
        8484
    """

    team: str
    mode: DaemonMode = "webhook"
    port: int = DEFAULT_DAEMON_PORT
    interval_secs: int = DEFAULT_POLL_INTERVAL_SECS


class PollCursor(BaseModel):
    """Poll-mode progress marker."""

    last_event_id: str | None = None
    last_poll_at: str | None = None


class RepoEvent(BaseModel):
    """Subset of a GitHub repository event returned by ``gh api``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str = ""
    created_at: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value
