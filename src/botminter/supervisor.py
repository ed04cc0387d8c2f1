"""Member process supervision.

Status is derived, never stored: a runtime entry whose PID is alive is
``Running``, one whose PID is gone is ``Crashed``, and no entry is
``Stopped``. Listing statuses sweeps crashed entries out of the store.
"""

from __future__ import annotations

import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Union

from . import exec as exec_util
from . import log as bm_log
from . import overlay, paths
from .errors import ConfigurationError, LifecycleConflictError
from .models import RuntimeEntry, RuntimeState, TeamEntry
from .state import LivenessProbe, OsLivenessProbe, RuntimeStateStore, member_key, utc_now

RUNTIME_COMMAND = ("ralph", "run")
STOP_GRACE_SECONDS = 5.0
STOP_POLL_SECONDS = 0.1


@dataclass(frozen=True)
class Running:
    pid: int
    started_at: str
    label = "running"


@dataclass(frozen=True)
class Crashed:
    pid: int
    started_at: str
    label = "crashed"


@dataclass(frozen=True)
class Stopped:
    label = "stopped"


MemberStatus = Union[Running, Crashed, Stopped]

Spawner = Callable[..., int]
Signaller = Callable[[int, int], None]


def resolve_status(
    state: RuntimeState, team_name: str, member_dir_name: str, probe: LivenessProbe
) -> MemberStatus:
    """Derive a member's status from stored state and process liveness."""
    entry = state.members.get(member_key(team_name, member_dir_name))
    if entry is None:
        return Stopped()
    if probe.is_alive(entry.pid):
        return Running(entry.pid, entry.started_at)
    return Crashed(entry.pid, entry.started_at)


def member_workspace(
    team: TeamEntry, member_dir_name: str, project_names: list[str]
) -> Path:
    """Return the workspace a member process runs in.

    In project mode the member runs in its first project's workspace.

    Example:
        >>> team = TeamEntry(name="a", path="/w/a")
        >>> member_workspace(team, "dev-bob", ["app", "lib"]).as_posix()
        '/w/a/dev-bob/app'
    """
    project = project_names[0] if project_names else None
    return paths.workspace_root(team.path, member_dir_name, project)


def _send_signal(pid: int, signum: int) -> None:
    os.kill(pid, signum)


class ProcessSupervisor:
    """Start, stop, and report on member processes of any team.

    Args:
        store: Runtime state store shared with the daemon.
        probe: Liveness capability; defaults to null-signal delivery.
        spawn: Launches a detached process and returns its PID.
        send_signal: Delivers a signal to a PID.
        sleep: Wait function used while stopping.
    """

    def __init__(
        self,
        store: RuntimeStateStore,
        *,
        probe: LivenessProbe | None = None,
        spawn: Spawner | None = None,
        send_signal: Signaller | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.probe = probe or OsLivenessProbe()
        self.spawn = spawn or exec_util.spawn_detached
        self.send_signal = send_signal or _send_signal
        self.sleep = sleep

    def status(self, team_name: str, member_dir_name: str) -> MemberStatus:
        return resolve_status(self.store.load(), team_name, member_dir_name, self.probe)

    def list_statuses(
        self, team_name: str, member_dir_names: list[str]
    ) -> list[tuple[str, MemberStatus]]:
        """Resolve every member's status, then drop crashed entries from the store."""
        state = self.store.load()
        statuses = [
            (member, resolve_status(state, team_name, member, self.probe))
            for member in member_dir_names
        ]
        crashed = {
            member_key(team_name, member): status.pid
            for member, status in statuses
            if isinstance(status, Crashed)
        }
        if crashed:
            self.sweep(crashed)
        return statuses

    def sweep(self, crashed: Mapping[str, int]) -> None:
        """Remove entries still recording the given dead PIDs."""
        with self.store.transaction() as state:
            for key, pid in crashed.items():
                entry = state.members.get(key)
                if entry is not None and entry.pid == pid:
                    del state.members[key]
                    bm_log.debug(f"removed crashed entry {key} (PID {pid})")

    def start_member(
        self,
        team: TeamEntry,
        member_dir_name: str,
        workspace: Path,
        *,
        env: Mapping[str, str] | None = None,
    ) -> RuntimeEntry:
        """Launch the agent runtime for a member in its workspace.

        Raises:
            LifecycleConflictError: The member is already running.
            ConfigurationError: The workspace has not been provisioned.
        """
        key = member_key(team.name, member_dir_name)
        with self.store.transaction() as state:
            current = resolve_status(state, team.name, member_dir_name, self.probe)
            if isinstance(current, Running):
                raise LifecycleConflictError(
                    f"{member_dir_name} is already running (PID {current.pid})"
                )
            if not (workspace / overlay.BM_DIRNAME).is_dir():
                raise ConfigurationError(
                    f"no workspace for {member_dir_name} at {workspace}",
                    recovery_hint="Run `bm teams sync` to provision workspaces.",
                )
            pid = self.spawn(
                list(RUNTIME_COMMAND),
                cwd=workspace,
                env=env,
                log_path=paths.member_log_path(team.name, member_dir_name),
            )
            entry = RuntimeEntry(pid=pid, started_at=utc_now(), workspace=workspace)
            state.members[key] = entry
        return entry

    def stop_member(
        self,
        team_name: str,
        member_dir_name: str,
        *,
        force: bool = False,
        grace_seconds: float = STOP_GRACE_SECONDS,
    ) -> MemberStatus:
        """Terminate a member process and remove its entry.

        Sends SIGTERM and waits up to ``grace_seconds`` before SIGKILL;
        ``force`` sends SIGKILL straight away.

        Returns:
            The status the member had before stopping.
        """
        status = self.status(team_name, member_dir_name)
        if isinstance(status, Running):
            self._terminate(status.pid, force=force, grace_seconds=grace_seconds)
        if not isinstance(status, Stopped):
            self.store.remove(member_key(team_name, member_dir_name))
        return status

    def _terminate(self, pid: int, *, force: bool, grace_seconds: float) -> None:
        if not force:
            try:
                self.send_signal(pid, signal.SIGTERM)
            except ProcessLookupError:
                return
            waited = 0.0
            while waited < grace_seconds:
                if not self.probe.is_alive(pid):
                    return
                self.sleep(STOP_POLL_SECONDS)
                waited += STOP_POLL_SECONDS
            bm_log.warning(f"PID {pid} did not exit after SIGTERM; sending SIGKILL")
        try:
            self.send_signal(pid, signal.SIGKILL)
        except ProcessLookupError:
            return
