"""Per-team event daemon: lifecycle control and the daemon body.

The controller side (``DaemonController``) runs inside ordinary ``bm``
invocations. A PID file plus a liveness check make the daemon a singleton per
team: a PID file whose process is gone is treated as not running. A JSON
config record sits beside the PID file; both are removed on a clean stop.

The daemon body (``run_daemon``) runs in a detached ``bm daemon-run``
process. In webhook mode it serves ``botminter.webhook`` with uvicorn; in
poll mode it lists repository events through ``gh`` once per interval. Either
way a relevant event wakes every team member that is not running.
"""

from __future__ import annotations

import os
import shutil
import signal
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

import uvicorn
from pydantic import ValidationError

from . import config as bm_config
from . import exec as exec_util
from . import links, members, paths, webhook
from . import log as bm_log
from .errors import BotminterFailure, ConfigurationError, LifecycleConflictError
from .models import DaemonConfig, PollCursor, RepoEvent, TeamEntry
from .state import LivenessProbe, OsLivenessProbe, RuntimeStateStore, utc_now
from .supervisor import ProcessSupervisor, Running, member_workspace

RELEVANT_POLL_EVENTS = frozenset(
    {
        "IssuesEvent",
        "IssueCommentEvent",
        "PullRequestEvent",
        "PullRequestReviewEvent",
        "PullRequestReviewCommentEvent",
    }
)
STOP_GRACE_SECONDS = 5.0
STOP_POLL_SECONDS = 0.1


def read_pid(path: Path) -> int | None:
    """Read a positive PID from ``path``; anything else reads as ``None``."""
    if not path.exists():
        return None
    try:
        value = int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None
    return value if value > 0 else None


def read_daemon_config(path: Path) -> DaemonConfig | None:
    if not path.exists():
        return None
    try:
        return DaemonConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError):
        return None


def describe_mode(daemon_config: DaemonConfig) -> str:
    """Return the mode detail shown by start and status.

    Example:
        >>> describe_mode(DaemonConfig(team="a", mode="webhook", port=9000))
        'webhook mode, port 9000'
        >>> describe_mode(DaemonConfig(team="a", mode="poll", interval_secs=30))
        'poll mode, interval 30s'
    """
    if daemon_config.mode == "poll":
        return f"poll mode, interval {daemon_config.interval_secs}s"
    return f"webhook mode, port {daemon_config.port}"


def daemon_run_argv(daemon_config: DaemonConfig) -> list[str]:
    """Return the command line that runs the daemon body."""
    executable = shutil.which("bm")
    prefix = [executable] if executable else [sys.executable, "-m", "botminter"]
    return [
        *prefix,
        "daemon-run",
        "--team",
        daemon_config.team,
        "--mode",
        daemon_config.mode,
        "--port",
        str(daemon_config.port),
        "--interval",
        str(daemon_config.interval_secs),
    ]


@dataclass(frozen=True)
class DaemonStatus:
    pid: int | None = None
    config: DaemonConfig | None = None

    @property
    def running(self) -> bool:
        return self.pid is not None

    def describe(self) -> str:
        """Return the one-line daemon status.

        Example:
            >>> DaemonStatus().describe()
            'Daemon: not running'
            >>> DaemonStatus(pid=7, config=DaemonConfig(team="a")).describe()
            'Daemon: running (PID 7, webhook mode, port 8484)'
        """
        if self.pid is None:
            return "Daemon: not running"
        if self.config is None:
            return f"Daemon: running (PID {self.pid})"
        return f"Daemon: running (PID {self.pid}, {describe_mode(self.config)})"


class DaemonController:
    """Start, stop, and inspect one team's daemon from a separate process."""

    def __init__(
        self,
        team_name: str,
        *,
        probe: LivenessProbe | None = None,
        spawn: Callable[..., int] | None = None,
        send_signal: Callable[[int, int], None] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.team_name = team_name
        self.probe = probe or OsLivenessProbe()
        self.spawn = spawn or exec_util.spawn_detached
        self.send_signal = send_signal or _send_signal
        self.sleep = sleep or time.sleep

    @property
    def pid_path(self) -> Path:
        return paths.daemon_pid_path(self.team_name)

    @property
    def config_path(self) -> Path:
        return paths.daemon_config_path(self.team_name)

    @property
    def poll_state_path(self) -> Path:
        return paths.daemon_poll_state_path(self.team_name)

    def status(self) -> DaemonStatus:
        """Report the daemon; a stale PID file reads as not running."""
        pid = read_pid(self.pid_path)
        if pid is None or not self.probe.is_alive(pid):
            return DaemonStatus()
        return DaemonStatus(pid=pid, config=read_daemon_config(self.config_path))

    def start(
        self, daemon_config: DaemonConfig, *, env: Mapping[str, str] | None = None
    ) -> int:
        """Launch the daemon detached and record its PID and config.

        Raises:
            LifecycleConflictError: A live daemon already exists for the team.
        """
        current = self.status()
        if current.running:
            raise LifecycleConflictError(
                f"Daemon already running for team '{self.team_name}' (PID {current.pid})",
                recovery_hint=f"Run `bm daemon stop -t {self.team_name}` first.",
            )
        paths.ensure_dir(self.pid_path.parent)
        pid = self.spawn(
            daemon_run_argv(daemon_config),
            env=env,
            log_path=paths.daemon_log_path(self.team_name),
        )
        links.write_text_atomic(self.pid_path, f"{pid}\n")
        links.write_text_atomic(
            self.config_path, daemon_config.model_dump_json(indent=2) + "\n"
        )
        return pid

    def stop(self, *, grace_seconds: float = STOP_GRACE_SECONDS) -> int:
        """Terminate the daemon and remove its files.

        Returns:
            The PID that was stopped.

        Raises:
            LifecycleConflictError: No live daemon exists for the team.
        """
        current = self.status()
        if current.pid is None:
            self._remove_files()
            raise LifecycleConflictError(f"Daemon not running for team '{self.team_name}'")
        pid = current.pid
        try:
            self.send_signal(pid, signal.SIGTERM)
            waited = 0.0
            while waited < grace_seconds and self.probe.is_alive(pid):
                self.sleep(STOP_POLL_SECONDS)
                waited += STOP_POLL_SECONDS
            if self.probe.is_alive(pid):
                bm_log.warning(f"daemon PID {pid} ignored SIGTERM; sending SIGKILL")
                self.send_signal(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        self._remove_files()
        return pid

    def _remove_files(self) -> None:
        for path in (self.pid_path, self.config_path, self.poll_state_path):
            path.unlink(missing_ok=True)


def _send_signal(pid: int, signum: int) -> None:
    os.kill(pid, signum)


class MemberWaker:
    """Starts every non-running member of a team in response to an event."""

    def __init__(
        self,
        team: TeamEntry,
        supervisor: ProcessSupervisor,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.team = team
        self.supervisor = supervisor
        self.env = env

    def __call__(self, reason: str) -> list[str]:
        """Wake idle members; returns the members that were started."""
        team_repo = paths.team_repo_dir(self.team.path)
        manifest = bm_config.load_team_manifest(team_repo)
        project_names = [project.name for project in manifest.projects]
        started: list[str] = []
        for member in members.discover_members(team_repo):
            if isinstance(self.supervisor.status(self.team.name, member), Running):
                continue
            workspace = member_workspace(self.team, member, project_names)
            try:
                entry = self.supervisor.start_member(
                    self.team, member, workspace, env=self.env
                )
            except BotminterFailure as exc:
                bm_log.error(f"failed to wake {member}: {exc}")
                continue
            bm_log.info(f"woke {member} (PID {entry.pid}) for {reason}")
            started.append(member)
        return started


def load_poll_cursor(path: Path) -> PollCursor:
    if not path.exists():
        return PollCursor()
    try:
        return PollCursor.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError):
        return PollCursor()


def save_poll_cursor(path: Path, cursor: PollCursor) -> None:
    links.write_text_atomic(path, cursor.model_dump_json(indent=2) + "\n")


def _event_order(event_id: str) -> tuple[int, str]:
    return (int(event_id), event_id) if event_id.isdigit() else (0, event_id)


def new_relevant_events(events: list[RepoEvent], cursor: PollCursor) -> list[RepoEvent]:
    """Return relevant events newer than the cursor, oldest first.

    Example:
        >>> events = [RepoEvent(id="3", type="IssuesEvent"), RepoEvent(id="2", type="WatchEvent"),
        ...           RepoEvent(id="1", type="IssueCommentEvent")]
        >>> [e.id for e in new_relevant_events(events, PollCursor(last_event_id="1"))]
        ['3']
    """
    floor = _event_order(cursor.last_event_id) if cursor.last_event_id else None
    fresh = [
        event
        for event in events
        if event.type in RELEVANT_POLL_EVENTS
        and (floor is None or _event_order(event.id) > floor)
    ]
    return sorted(fresh, key=lambda event: _event_order(event.id))


def fetch_repo_events(
    slug: str, *, env: Mapping[str, str] | None = None
) -> list[RepoEvent]:
    """List recent repository events through ``gh api``."""
    return exec_util.run_typed(
        exec_util.CommandSpec(
            request=exec_util.CommandRequest(
                argv=("gh", "api", f"repos/{slug}/events"), env=env
            ),
            parser=lambda result: exec_util.parse_json_model_list(
                result, model_type=RepoEvent, context="gh api events"
            ),
            context="gh api events",
        )
    )


class Poller:
    """One poll pass: fetch events, wake members on news, advance the cursor."""

    def __init__(
        self,
        team: TeamEntry,
        wake: Callable[[str], object],
        *,
        cursor_path: Path,
        fetch: Callable[[str], list[RepoEvent]] | None = None,
    ) -> None:
        self.team = team
        self.wake = wake
        self.cursor_path = cursor_path
        self.fetch = fetch or fetch_repo_events

    def poll_once(self) -> list[RepoEvent]:
        cursor = load_poll_cursor(self.cursor_path)
        events = self.fetch(self.team.github_repo)
        fresh = new_relevant_events(events, cursor)
        newest = max((_event_order(e.id), e.id) for e in events)[1] if events else None
        if fresh:
            bm_log.info(f"{len(fresh)} new relevant event(s); waking members")
            self.wake(fresh[-1].type)
        if newest is not None and (
            cursor.last_event_id is None
            or _event_order(newest) > _event_order(cursor.last_event_id)
        ):
            cursor = cursor.model_copy(update={"last_event_id": newest})
        save_poll_cursor(
            self.cursor_path, cursor.model_copy(update={"last_poll_at": utc_now()})
        )
        return fresh


def run_poll_loop(
    poller: Poller,
    interval_secs: int,
    *,
    stop: threading.Event,
) -> None:
    """Poll until ``stop`` is set, sleeping ``interval_secs`` between passes."""
    while not stop.is_set():
        try:
            poller.poll_once()
        except (BotminterFailure, OSError) as exc:
            bm_log.error(f"poll pass failed: {exc}")
        stop.wait(interval_secs)


def check_daemon_config(team: TeamEntry, daemon_config: DaemonConfig) -> None:
    """Reject a poll-mode daemon for a team without a GitHub repository.

    Raises:
        ConfigurationError: Poll mode has nothing to poll.
    """
    if daemon_config.mode == "poll" and not team.github_repo:
        raise ConfigurationError(
            f"team '{team.name}' has no GitHub repository to poll",
            recovery_hint="Set github_repo for the team or use `--mode webhook`.",
        )


def run_daemon(team: TeamEntry, daemon_config: DaemonConfig) -> None:
    """Daemon body for ``bm daemon-run``; returns when the daemon is told to stop."""
    bm_log.set_timestamps(True)
    env = bm_config.team_env(team)
    supervisor = ProcessSupervisor(RuntimeStateStore(paths.state_path()))
    waker = MemberWaker(team, supervisor, env=env)

    if daemon_config.mode == "webhook":
        bm_log.info(
            f"daemon for {team.name} listening on port {daemon_config.port} (webhook mode)"
        )
        app = webhook.create_app(waker, team_name=team.name)
        uvicorn.run(app, host="0.0.0.0", port=daemon_config.port, log_level="info")
        return

    check_daemon_config(team, daemon_config)
    stop = threading.Event()

    def request_stop(signum: int, _frame: object) -> None:
        bm_log.info(f"received signal {signum}; stopping")
        stop.set()

    signal.signal(signal.SIGTERM, request_stop)
    signal.signal(signal.SIGINT, request_stop)
    bm_log.info(
        f"daemon for {team.name} polling {team.github_repo} "
        f"every {daemon_config.interval_secs}s"
    )
    poller = Poller(
        team,
        waker,
        cursor_path=paths.daemon_poll_state_path(team.name),
        fetch=lambda slug: fetch_repo_events(slug, env=env),
    )
    run_poll_loop(poller, daemon_config.interval_secs, stop=stop)
