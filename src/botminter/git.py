"""Git helper functions used by workspace reconciliation."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from . import exec as exec_util


def git_command(repo_dir: Path | None, args: list[str]) -> tuple[str, ...]:
    """Build a git argv, optionally scoped to ``repo_dir`` with ``-C``.

    Example:
        >>> git_command(Path("/r"), ["status"])
        ('git', '-C', '/r', 'status')
        >>> git_command(None, ["--version"])
        ('git', '--version')
    """
    if repo_dir is None:
        return ("git", *args)
    return ("git", "-C", str(repo_dir), *args)


def _run_git(
    repo_dir: Path | None,
    args: list[str],
    *,
    env: Mapping[str, str] | None = None,
) -> exec_util.CommandResult | None:
    return exec_util.run_with_runner(
        exec_util.CommandRequest(argv=git_command(repo_dir, args), env=env)
    )


def _run_git_checked(
    repo_dir: Path | None,
    args: list[str],
    *,
    env: Mapping[str, str] | None = None,
    recovery_hint: str | None = None,
) -> exec_util.CommandResult:
    return exec_util.run_checked(
        exec_util.CommandRequest(argv=git_command(repo_dir, args), env=env),
        recovery_hint=recovery_hint,
    )


def git_clone(
    source: str,
    dest: Path,
    *,
    env: Mapping[str, str] | None = None,
    recovery_hint: str | None = None,
) -> None:
    """Clone ``source`` into ``dest``.

    Raises:
        ExternalCommandFailedError: The clone failed.
    """
    _run_git_checked(
        None, ["clone", source, str(dest)], env=env, recovery_hint=recovery_hint
    )


def git_init(repo_dir: Path, *, initial_branch: str = "main") -> None:
    _run_git_checked(repo_dir, ["init", "-b", initial_branch])


def git_checkout_branch(repo_dir: Path, branch: str) -> None:
    """Check out ``branch``, creating it from HEAD when it does not exist."""
    result = _run_git(repo_dir, ["checkout", branch])
    if result is not None and result.ok:
        return
    _run_git_checked(repo_dir, ["checkout", "-b", branch])


def git_pull(repo_dir: Path, *, env: Mapping[str, str] | None = None) -> bool:
    """Pull the current branch; returns ``False`` instead of raising."""
    result = _run_git(repo_dir, ["pull"], env=env)
    return result is not None and result.ok


def git_push(repo_dir: Path, *, env: Mapping[str, str] | None = None) -> None:
    _run_git_checked(
        repo_dir,
        ["push"],
        env=env,
        recovery_hint=f"Check the remote and credentials, then run `git -C {repo_dir} push`.",
    )


def git_origin_url(repo_dir: Path) -> str | None:
    """Return the ``origin`` remote URL for a repository.

    Returns:
        Origin URL string, or ``None`` if missing.
    """
    result = _run_git(repo_dir, ["remote", "get-url", "origin"])
    if result is None or not result.ok:
        return None
    origin = result.stdout.strip()
    return origin or None


def git_set_origin_url(repo_dir: Path, url: str) -> None:
    _run_git_checked(repo_dir, ["remote", "set-url", "origin", url])


def git_remotes(repo_dir: Path) -> list[str]:
    """Return configured remote names (empty when none or on error)."""
    result = _run_git(repo_dir, ["remote"])
    if result is None or not result.ok:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def git_ls_files(repo_dir: Path) -> list[str]:
    """Return tracked file paths relative to the repository root.

    Returns:
        List of tracked file paths (empty on error).
    """
    result = _run_git(repo_dir, ["ls-files", "--full-name"])
    if result is None or not result.ok:
        return []
    return [line for line in result.stdout.splitlines() if line.strip()]


def git_update_index_flag(repo_dir: Path, flag: str, files: list[str]) -> bool:
    """Apply an ``update-index`` flag such as ``--skip-worktree`` to files.

    Returns:
        ``True`` when git accepted every file.
    """
    if not files:
        return True
    result = _run_git(repo_dir, ["update-index", flag, *files])
    return result is not None and result.ok


def github_remote_url(slug: str) -> str:
    """Return the canonical HTTPS remote for an ``owner/repo`` slug.

    Example:
        >>> github_remote_url("acme/team")
        'https://github.com/acme/team.git'
    """
    return f"https://github.com/{slug}.git"


def is_github_remote(url: str | None) -> bool:
    """Return whether a remote already points at GitHub.

    Example:
        >>> is_github_remote("/tmp/team")
        False
        >>> is_github_remote("git@github.com:acme/team.git")
        True
    """
    return bool(url) and "github.com" in url
