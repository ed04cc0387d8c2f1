"""Filesystem primitives for relative symlinks and mutable file copies."""

from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePath
from tempfile import NamedTemporaryFile

from .errors import IoFailedError


def relative_path(from_dir: PurePath, to_path: PurePath) -> Path:
    """Return the path that reaches ``to_path`` from inside ``from_dir``.

    Both inputs must be absolute, already-canonicalized paths. The result
    climbs one ``..`` per source component below the common ancestor, then
    descends into the remaining target components.

    Example:
        >>> relative_path(Path("/a/b/c"), Path("/a/b/d/e")).as_posix()
        '../d/e'
        >>> relative_path(Path("/a/b"), Path("/a/b/c")).as_posix()
        'c'
        >>> relative_path(Path("/a/b/c"), Path("/a")).as_posix()
        '../..'
    """
    source = from_dir.parts
    target = to_path.parts
    common = 0
    for left, right in zip(source, target):
        if left != right:
            break
        common += 1
    ups = [".."] * (len(source) - common)
    return Path(*ups, *target[common:])


def _remove_existing(link_path: Path) -> None:
    if link_path.is_symlink() or link_path.is_file():
        link_path.unlink()
    elif link_path.is_dir():
        shutil.rmtree(link_path)


def _symlink(target: Path, link_path: Path) -> None:
    try:
        link_path.symlink_to(target)
    except OSError as exc:
        raise IoFailedError(f"failed to symlink {link_path} -> {target}: {exc}") from exc


def create_symlink(target: Path, link_path: Path) -> bool:
    """Point ``link_path`` at ``target``, replacing whatever is there.

    Relative targets are resolved against the link's parent to check that
    they exist; a missing target leaves ``link_path`` untouched.

    Returns:
        ``True`` when the link was written.
    """
    check_path = target if target.is_absolute() else link_path.parent / target
    if not check_path.exists():
        return False
    _remove_existing(link_path)
    _symlink(target, link_path)
    return True


def verify_symlink(link: Path, expected_target: Path) -> bool:
    """Repair ``link`` so it is a relative link resolving to ``expected_target``.

    Absolute links, broken links, links to the wrong file, and regular files
    are all replaced. A missing ``expected_target`` is skipped.

    Returns:
        ``True`` when the link had to be rewritten.
    """
    if not expected_target.exists():
        return False
    canonical_target = expected_target.resolve()
    parent = link.parent
    canonical_parent = parent.resolve()
    rel = relative_path(canonical_parent, canonical_target)

    needs_fix = True
    if link.is_symlink():
        current = Path(os.readlink(link))
        if not current.is_absolute():
            resolved = parent / current
            needs_fix = not resolved.exists() or resolved.resolve() != canonical_target
    if not needs_fix:
        return False
    _remove_existing(link)
    _symlink(rel, link)
    return True


def copy_file(src: Path, dst: Path) -> None:
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as exc:
        raise IoFailedError(f"failed to copy {src} -> {dst}: {exc}") from exc


def copy_if_newer(src: Path, dst: Path) -> bool:
    """Copy ``src`` over ``dst`` when ``dst`` is missing or strictly older.

    Returns:
        ``True`` when a copy happened.
    """
    if not src.exists():
        return False
    if dst.exists() and src.stat().st_mtime_ns <= dst.stat().st_mtime_ns:
        return False
    copy_file(src, dst)
    return True


def write_text_atomic(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Atomically replace a text file with new content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            "w",
            encoding=encoding,
            delete=False,
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as handle:
            handle.write(content)
            temp_path = Path(handle.name)
        os.replace(temp_path, path)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
