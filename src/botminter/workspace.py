"""Workspace reconciliation for team members.

A member workspace lives at ``{team}/{member}`` (no-project mode) or
``{team}/{member}/{project}`` (one per attached project fork) and contains:

- ``.botminter/``: a clone of the team repo, the source of truth for shared
  agent content.
- ``PROMPT.md`` and ``CLAUDE.md``: relative symlinks into the member's
  directory inside ``.botminter/``.
- ``ralph.yml`` and ``.claude/settings.local.json``: mutable copies.
- ``.claude/agents/``: the assembled overlay (see ``botminter.overlay``).
- ``.gitignore`` and ``.git/info/exclude`` listing every managed path.

``create_workspace`` provisions a new tree; ``sync_workspace`` repairs an
existing one and is safe to run repeatedly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Mapping

from . import git, links, overlay, paths
from . import log as bm_log
from .errors import BotminterFailure, ExternalCommandFailedError, IoFailedError
from .models import ProjectDef, TeamEntry

MANAGED_ENTRIES: tuple[str, ...] = (
    ".botminter/",
    "PROMPT.md",
    "CLAUDE.md",
    "ralph.yml",
    ".claude/",
    ".ralph/",
    "poll-log.txt",
    ".gitignore",
)
GITIGNORE_HEADER = "# Managed by botminter"

ProvisionMode = Literal["symlink", "copy"]


@dataclass(frozen=True)
class ProvisionedFile:
    """How one workspace file is derived from the member's scope.

    Attributes:
        workspace_path: Path relative to the workspace root.
        source_path: Path relative to ``.botminter/team/{member}``.
        mode: ``symlink`` for shared read-only content, ``copy`` for files
            that may be edited in place and are refreshed only when the
            source is newer.
    """

    workspace_path: str
    source_path: str
    mode: ProvisionMode


PROVISIONING_POLICY: tuple[ProvisionedFile, ...] = (
    ProvisionedFile("PROMPT.md", "PROMPT.md", "symlink"),
    ProvisionedFile("CLAUDE.md", "CLAUDE.md", "symlink"),
    ProvisionedFile("ralph.yml", "ralph.yml", "copy"),
    ProvisionedFile(".claude/settings.local.json", "agent/settings.local.json", "copy"),
)


def gitignore_content() -> str:
    """Return the ignore-file body listing every managed path.

    Example:
        >>> gitignore_content().splitlines()[1]
        '.botminter/'
        >>> gitignore_content().endswith("\\n")
        True
    """
    return "\n".join([GITIGNORE_HEADER, *MANAGED_ENTRIES, ""])


def write_gitignore(ws_root: Path) -> None:
    try:
        (ws_root / ".gitignore").write_text(gitignore_content(), encoding="utf-8")
    except OSError as exc:
        raise IoFailedError(f"failed to write {ws_root / '.gitignore'}: {exc}") from exc


def write_git_exclude(ws_root: Path) -> bool:
    """Write ``.git/info/exclude``; skipped when ``.git`` is not a directory.

    Returns:
        ``True`` when the file was written.
    """
    git_dir = ws_root / ".git"
    if not git_dir.is_dir():
        return False
    exclude_path = git_dir / "info" / "exclude"
    try:
        exclude_path.parent.mkdir(parents=True, exist_ok=True)
        exclude_path.write_text(gitignore_content(), encoding="utf-8")
    except OSError as exc:
        raise IoFailedError(f"failed to write {exclude_path}: {exc}") from exc
    return True


def is_managed_path(tracked: str) -> bool:
    """Return whether a repo-relative path falls under a managed entry.

    Example:
        >>> is_managed_path(".claude/agents/x.md")
        True
        >>> is_managed_path("src/main.py")
        False
        >>> is_managed_path("PROMPT.md.orig")
        False
    """
    for entry in MANAGED_ENTRIES:
        if entry.endswith("/"):
            if tracked == entry.rstrip("/") or tracked.startswith(entry):
                return True
        elif tracked == entry:
            return True
    return False


def hide_tracked_files(ws_root: Path) -> list[str]:
    """Stop git from reporting changes to managed files the repo already tracks.

    Both ``--skip-worktree`` and ``--assume-unchanged`` are applied and
    both are best-effort: either may reject files that no longer exist.

    Returns:
        The tracked managed paths that were targeted.
    """
    if not (ws_root / ".git").is_dir():
        return []
    tracked = [path for path in git.git_ls_files(ws_root) if is_managed_path(path)]
    if not tracked:
        return []
    if not git.git_update_index_flag(ws_root, "--skip-worktree", tracked):
        bm_log.debug(f"skip-worktree rejected some files in {ws_root}")
    if not git.git_update_index_flag(ws_root, "--assume-unchanged", tracked):
        bm_log.debug(f"assume-unchanged rejected some files in {ws_root}")
    return tracked


def surface_files(ws_root: Path, member_dir_name: str) -> None:
    """Link identity files and copy mutable files from the member scope."""
    member_scope = overlay.member_scope_dir(ws_root, member_dir_name)
    if not member_scope.is_dir():
        raise IoFailedError(
            f"member directory {member_scope} is missing from the team repo clone",
            recovery_hint="Check that the member was hired and pushed to the team repo.",
        )
    canonical_scope = member_scope.resolve()
    for entry in PROVISIONING_POLICY:
        source = canonical_scope / entry.source_path
        dest = ws_root / entry.workspace_path
        if entry.mode == "symlink":
            dest.parent.mkdir(parents=True, exist_ok=True)
            links.create_symlink(links.relative_path(dest.parent.resolve(), source), dest)
        elif source.exists():
            links.copy_file(source, dest)


def repair_files(ws_root: Path, member_dir_name: str) -> None:
    """Refresh copies that are out of date and fix drifted identity links."""
    member_scope = overlay.member_scope_dir(ws_root, member_dir_name)
    for entry in PROVISIONING_POLICY:
        source = member_scope / entry.source_path
        dest = ws_root / entry.workspace_path
        if entry.mode == "copy":
            links.copy_if_newer(source, dest)
        else:
            links.verify_symlink(dest, source)


def clone_failure_hint(fork_url: str) -> str:
    return (
        "The repository may not exist, or your token may lack access.\n"
        f"To verify:  gh repo view {fork_url}\n"
        "To remove:  edit botminter.yml in the team repo and remove this project entry."
    )


def create_workspace(
    team_repo: Path,
    workspace_base: Path,
    member_dir_name: str,
    project: ProjectDef | None = None,
    github_repo: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> Path:
    """Provision a new member workspace.

    A checkout left by an earlier, partially failed attempt is reused.

    Args:
        team_repo: Local team repo to clone into ``.botminter``.
        workspace_base: Team directory that holds member workspaces.
        member_dir_name: Member directory name (``{role}-{name}``).
        project: Project fork to clone, or ``None`` for no-project mode.
        github_repo: ``owner/repo`` slug; when set, ``.botminter`` is
            repointed from the local clone path to GitHub.
        env: Environment for git invocations that reach the network.

    Returns:
        The workspace root.

    Raises:
        ExternalCommandFailedError: A clone or checkout failed.
        IoFailedError: A directory, link, or file could not be written.
    """
    member_ws = workspace_base / member_dir_name
    try:
        member_ws.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IoFailedError(f"failed to create workspace dir {member_ws}: {exc}") from exc

    if project is not None:
        ws_root = paths.workspace_root(workspace_base, member_dir_name, project.name)
        if not (ws_root / ".git").exists():
            try:
                git.git_clone(project.fork_url, ws_root, env=env)
            except ExternalCommandFailedError as exc:
                raise ExternalCommandFailedError(
                    f"Failed to clone fork {project.fork_url}\n{exc}",
                    recovery_hint=clone_failure_hint(project.fork_url),
                    stderr=exc.stderr,
                ) from exc
        git.git_checkout_branch(ws_root, member_dir_name)
    else:
        ws_root = member_ws
        if not (ws_root / ".git").exists():
            git.git_init(ws_root)

    git.git_clone(str(team_repo.resolve()), ws_root / overlay.BM_DIRNAME)
    if github_repo:
        git.git_set_origin_url(ws_root / overlay.BM_DIRNAME, git.github_remote_url(github_repo))

    surface_files(ws_root, member_dir_name)
    overlay.assemble_overlay(ws_root, member_dir_name, project.name if project else None)
    write_gitignore(ws_root)
    write_git_exclude(ws_root)
    hide_tracked_files(ws_root)
    bm_log.debug(f"created workspace {ws_root}")
    return ws_root


def sync_workspace(
    ws_root: Path,
    member_dir_name: str,
    project_name: str | None = None,
    has_project: bool = False,
    github_repo: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> None:
    """Repair an existing workspace in place.

    Pulls are best-effort. Copies are refreshed only when their source is
    newer, the overlay is rebuilt, and identity links are re-verified.
    """
    bm_dir = ws_root / overlay.BM_DIRNAME
    if github_repo and bm_dir.is_dir():
        current = git.git_origin_url(bm_dir)
        if current is not None and not git.is_github_remote(current):
            git.git_set_origin_url(bm_dir, git.github_remote_url(github_repo))

    if bm_dir.is_dir() and not git.git_pull(bm_dir, env=env):
        bm_log.debug(f"pull skipped or failed in {bm_dir}")
    if has_project and git.git_remotes(ws_root) and not git.git_pull(ws_root, env=env):
        bm_log.debug(f"pull skipped or failed in {ws_root}")

    repair_files(ws_root, member_dir_name)
    overlay.assemble_overlay(ws_root, member_dir_name, project_name)
    write_git_exclude(ws_root)
    hide_tracked_files(ws_root)


@dataclass
class SyncReport:
    """Outcome of reconciling every workspace of a team."""

    created: int = 0
    updated: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated

    def summary(self) -> str:
        """Return the one-line sync summary.

        Example:
            >>> SyncReport(created=1, updated=2).summary()
            'Synced 3 workspaces (1 created, 2 updated)'
            >>> SyncReport(created=1).summary()
            'Synced 1 workspace (1 created, 0 updated)'
        """
        noun = "workspace" if self.total == 1 else "workspaces"
        return f"Synced {self.total} {noun} ({self.created} created, {self.updated} updated)"


def reconcile_team(
    team: TeamEntry,
    members: list[str],
    projects: list[ProjectDef],
    *,
    env: Mapping[str, str] | None = None,
) -> SyncReport:
    """Create or sync every member (x project) workspace of a team.

    A failing pair is logged and recorded; the remaining pairs still run.
    """
    team_repo = paths.team_repo_dir(team.path)
    slug = team.github_repo or None
    report = SyncReport()
    targets: list[tuple[str, ProjectDef | None]] = []
    for member in members:
        if projects:
            targets.extend((member, project) for project in projects)
        else:
            targets.append((member, None))

    for member, project in targets:
        project_name = project.name if project else None
        ws_root = paths.workspace_root(team.path, member, project_name)
        try:
            if (ws_root / overlay.BM_DIRNAME).is_dir():
                sync_workspace(
                    ws_root,
                    member,
                    project_name,
                    project is not None,
                    slug,
                    env=env,
                )
                report.updated += 1
            else:
                create_workspace(team_repo, team.path, member, project, slug, env=env)
                report.created += 1
        except BotminterFailure as exc:
            label = f"{member}/{project.name} ({project.fork_url})" if project else member
            bm_log.error(f"Error: {label}: {exc}")
            if exc.recovery_hint:
                bm_log.error(exc.recovery_hint)
            report.failures.append(label)
    return report
