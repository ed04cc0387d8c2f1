"""Configuration helpers for botminter teams.

This module reads ``config.yml`` and team repo manifests with PyYAML,
validates them with Pydantic models, and resolves the team a command
operates on.

Example:
    >>> from botminter.config import REQUIRED_SCHEMA_VERSION
    >>> REQUIRED_SCHEMA_VERSION
    '1.0'
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from . import paths
from .errors import ConfigurationError, IoFailedError, SchemaMismatchError
from .models import BotminterConfig, MemberManifest, TeamEntry, TeamManifest

REQUIRED_SCHEMA_VERSION = "1.0"


def load_yaml(path: Path) -> dict | None:
    """Load a YAML mapping if the file exists.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed mapping, an empty dict for an empty file, or ``None`` when the
        file does not exist.

    Example:
        >>> from pathlib import Path
        >>> load_yaml(Path("missing.yml")) is None
        True
    """
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML at {path}:\n{exc}") from exc
    except OSError as exc:
        raise IoFailedError(f"failed to read {path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"expected a mapping at {path}")
    return payload


def write_yaml(path: Path, payload: dict | BaseModel) -> None:
    """Write a YAML document to disk, creating parent directories."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    paths.ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(payload, fh, sort_keys=False)


def load_config(path: Path | None = None) -> BotminterConfig:
    """Load and validate ``config.yml``.

    Raises:
        ConfigurationError: The file is missing or invalid.
    """
    config_file = path or paths.config_path()
    payload = load_yaml(config_file)
    if payload is None:
        raise ConfigurationError(
            f"no botminter config found at {config_file}",
            recovery_hint="Run `bm init` to create a team.",
        )
    try:
        return BotminterConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid config at {config_file}:\n{exc}") from exc


def save_config(config: BotminterConfig, path: Path | None = None) -> None:
    write_yaml(path or paths.config_path(), config)


def resolve_team(config: BotminterConfig, flag: str | None) -> TeamEntry:
    """Pick the team named by ``flag``, else the configured default.

    Example:
        >>> cfg = BotminterConfig(default_team="a", teams=[TeamEntry(name="a", path="/w/a")])
        >>> resolve_team(cfg, None).name
        'a'
    """
    name = flag or config.default_team
    if not name:
        raise ConfigurationError(
            "no team specified and no default team configured",
            recovery_hint="Use `-t <team>` or set default_team in config.yml.",
        )
    for team in config.teams:
        if team.name == name:
            return team
    available = ", ".join(team.name for team in config.teams) or "(none)"
    raise ConfigurationError(f"Team '{name}' not found. Available teams: {available}")


def load_team_manifest(team_repo: Path) -> TeamManifest:
    """Read the team repo ``botminter.yml``; a missing file yields defaults."""
    manifest_path = team_repo / paths.MANIFEST_FILENAME
    payload = load_yaml(manifest_path)
    if payload is None:
        return TeamManifest()
    try:
        return TeamManifest.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid team manifest at {manifest_path}:\n{exc}") from exc


def load_member_manifest(member_dir: Path) -> MemberManifest | None:
    manifest_path = member_dir / paths.MANIFEST_FILENAME
    payload = load_yaml(manifest_path)
    if payload is None:
        return None
    try:
        return MemberManifest.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid member manifest at {manifest_path}:\n{exc}") from exc


def check_schema_version(team: TeamEntry) -> TeamManifest:
    """Block commands on team repos that predate the current schema.

    Returns:
        The loaded team manifest.

    Raises:
        SchemaMismatchError: The manifest declares a different schema.
    """
    manifest = load_team_manifest(paths.team_repo_dir(team.path))
    found = manifest.schema_version
    if found and found != REQUIRED_SCHEMA_VERSION:
        raise SchemaMismatchError(
            f"Team '{team.name}' uses schema {found} but this command requires "
            f"schema {REQUIRED_SCHEMA_VERSION}. Run `bm upgrade` to migrate the team repo."
        )
    return manifest


def team_env(team: TeamEntry) -> dict[str, str]:
    """Return the process environment with team credentials injected."""
    env = dict(os.environ)
    token = team.credentials.gh_token
    if token:
        env["GH_TOKEN"] = token
    return env
