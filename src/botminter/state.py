"""Runtime state store for launched member processes.

The store is a single JSON document mapping ``{team}/{member}`` keys to
``RuntimeEntry`` records. Every mutation opens the store under an exclusive
advisory lock, reads it, rewrites it whole, and replaces the file
atomically, so concurrent ``bm`` invocations serialize instead of losing
updates.
"""

from __future__ import annotations

import datetime as dt
import fcntl
import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import ValidationError

from . import links
from . import log as bm_log
from .errors import IoFailedError
from .models import RuntimeEntry, RuntimeState


def member_key(team_name: str, member_dir_name: str) -> str:
    """Return the runtime-state key for a member.

    Example:
        >>> member_key("alpha", "dev-bob")
        'alpha/dev-bob'
    """
    return f"{team_name}/{member_dir_name}"


def utc_now() -> str:
    """Return the current UTC time as an RFC 3339 timestamp.

    Example:
        >>> utc_now().endswith("Z")
        True
    """
    now = dt.datetime.now(tz=dt.timezone.utc).replace(microsecond=0)
    return now.isoformat().replace("+00:00", "Z")


def format_timestamp(value: str) -> str:
    """Render an RFC 3339 timestamp for display, passing unparseable text through.

    Example:
        >>> format_timestamp("2026-01-18T12:34:56Z")
        '2026-01-18 12:34:56'
        >>> format_timestamp("yesterday")
        'yesterday'
    """
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


class LivenessProbe(Protocol):
    """Capability for checking whether a process is alive."""

    def is_alive(self, pid: int) -> bool: ...


def _reap_child(pid: int) -> bool:
    """Reap ``pid`` if it is an exited child of this process.

    Returns:
        True when the child had exited and was collected.
    """
    try:
        reaped, _status = os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        return False
    return reaped == pid


class OsLivenessProbe:
    """Liveness probe backed by null-signal delivery.

    Exited children of the calling process are reaped first, since a zombie
    still accepts the null signal.
    """

    def is_alive(self, pid: int) -> bool:
        if pid <= 0:
            return False
        if _reap_child(pid):
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True


class RuntimeStateStore:
    """File-backed runtime state, passed explicitly to its consumers."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.lock")

    def load(self) -> RuntimeState:
        """Read the state; a missing or unreadable file yields empty state."""
        if not self.path.exists():
            return RuntimeState()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return RuntimeState.model_validate(payload)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            bm_log.warning(f"ignoring unreadable runtime state at {self.path}: {exc}")
            return RuntimeState()

    def save(self, state: RuntimeState) -> None:
        try:
            links.write_text_atomic(
                self.path, json.dumps(state.model_dump(mode="json"), indent=2) + "\n"
            )
        except OSError as exc:
            raise IoFailedError(f"failed to write runtime state {self.path}: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[RuntimeState]:
        """Hold the store lock across a read-modify-write cycle.

        The yielded state is saved when the block exits without raising.

        Example:
            >>> import tempfile
            >>> with tempfile.TemporaryDirectory() as tmp:
            ...     store = RuntimeStateStore(Path(tmp) / "state.json")
            ...     with store.transaction() as state:
            ...         state.members["a/dev-x"] = RuntimeEntry(
            ...             pid=1, started_at="2026-01-01T00:00:00Z", workspace=Path(tmp)
            ...         )
            ...     sorted(store.load().members)
            ['a/dev-x']
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock_path.open("a+", encoding="utf-8") as handle:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            except OSError as exc:
                raise IoFailedError(f"failed to lock runtime state: {exc}") from exc
            try:
                state = self.load()
                yield state
                self.save(state)
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def put(self, key: str, entry: RuntimeEntry) -> None:
        with self.transaction() as state:
            state.members[key] = entry

    def remove(self, *keys: str) -> None:
        with self.transaction() as state:
            for key in keys:
                state.members.pop(key, None)
