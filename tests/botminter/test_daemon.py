import signal
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

import botminter.daemon as daemon
import botminter.exec as exec_util
from botminter.errors import ConfigurationError, ExternalCommandFailedError, LifecycleConflictError
from botminter.models import DaemonConfig, PollCursor, RepoEvent, RuntimeEntry, TeamEntry
from botminter.state import RuntimeStateStore
from botminter.supervisor import ProcessSupervisor
from tests.botminter.helpers import FakeProbe, make_team_repo


class RecordingSpawn:
    def __init__(self, pid: int, probe: FakeProbe | None = None) -> None:
        self.pid = pid
        self.probe = probe
        self.calls: list[list[str]] = []

    def __call__(self, cmd, **_kwargs) -> int:
        self.calls.append(list(cmd))
        if self.probe is not None:
            self.probe.alive.add(self.pid)
        return self.pid


def _controller(probe: FakeProbe, spawn=None, sent=None) -> daemon.DaemonController:
    def send_signal(pid: int, signum: int) -> None:
        if sent is not None:
            sent.append((pid, signum))
        probe.alive.discard(pid)

    return daemon.DaemonController(
        "alpha",
        probe=probe,
        spawn=spawn or RecordingSpawn(900, probe),
        send_signal=send_signal,
        sleep=lambda _s: None,
    )


def test_status_without_pid_file_is_not_running() -> None:
    controller = _controller(FakeProbe())

    assert controller.status().describe() == "Daemon: not running"


def test_start_writes_pid_and_config() -> None:
    probe = FakeProbe()
    spawn = RecordingSpawn(900, probe)
    controller = _controller(probe, spawn)

    pid = controller.start(DaemonConfig(team="alpha", mode="poll", interval_secs=30))

    assert pid == 900
    assert controller.pid_path.read_text(encoding="utf-8").strip() == "900"
    assert daemon.read_daemon_config(controller.config_path) == DaemonConfig(
        team="alpha", mode="poll", interval_secs=30
    )
    assert spawn.calls[0][-9:] == [
        "daemon-run",
        "--team",
        "alpha",
        "--mode",
        "poll",
        "--port",
        "8484",
        "--interval",
        "30",
    ]
    assert controller.status().describe() == "Daemon: running (PID 900, poll mode, interval 30s)"


def test_second_start_is_rejected() -> None:
    probe = FakeProbe()
    controller = _controller(probe)
    controller.start(DaemonConfig(team="alpha"))

    with pytest.raises(LifecycleConflictError, match="Daemon already running for team 'alpha'"):
        controller.start(DaemonConfig(team="alpha"))


def test_stale_pid_file_reads_as_not_running_and_allows_start() -> None:
    probe = FakeProbe()
    controller = _controller(probe, RecordingSpawn(901, probe))
    controller.pid_path.parent.mkdir(parents=True, exist_ok=True)
    controller.pid_path.write_text("12345\n", encoding="utf-8")

    assert controller.status().running is False
    assert controller.start(DaemonConfig(team="alpha")) == 901


def test_stop_without_daemon_fails_and_clears_stale_files() -> None:
    controller = _controller(FakeProbe())
    controller.pid_path.parent.mkdir(parents=True, exist_ok=True)
    controller.pid_path.write_text("12345\n", encoding="utf-8")

    with pytest.raises(LifecycleConflictError, match="Daemon not running for team 'alpha'"):
        controller.stop()

    assert not controller.pid_path.exists()


def test_stop_signals_daemon_and_removes_files() -> None:
    probe = FakeProbe()
    sent: list[tuple[int, int]] = []
    controller = _controller(probe, RecordingSpawn(900, probe), sent)
    controller.start(DaemonConfig(team="alpha", mode="poll"))
    daemon.save_poll_cursor(controller.poll_state_path, PollCursor(last_event_id="5"))

    assert controller.stop() == 900

    assert sent == [(900, signal.SIGTERM)]
    assert not controller.pid_path.exists()
    assert not controller.config_path.exists()
    assert not controller.poll_state_path.exists()
    assert controller.status().running is False


def test_read_pid_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "daemon.pid"
    path.write_text("not a pid\n", encoding="utf-8")

    assert daemon.read_pid(path) is None
    path.write_text("0\n", encoding="utf-8")
    assert daemon.read_pid(path) is None


def test_new_relevant_events_orders_ids_numerically() -> None:
    events = [
        RepoEvent(id="10", type="IssuesEvent"),
        RepoEvent(id="9", type="PullRequestEvent"),
        RepoEvent(id="11", type="PushEvent"),
    ]

    fresh = daemon.new_relevant_events(events, PollCursor(last_event_id="8"))

    assert [event.id for event in fresh] == ["9", "10"]


def test_repo_event_accepts_numeric_ids() -> None:
    event = RepoEvent.model_validate({"id": 42, "type": "IssuesEvent", "actor": {}})

    assert event.id == "42"


class FakeFetch:
    def __init__(self, batches: list[list[RepoEvent]]) -> None:
        self.batches = batches
        self.slugs: list[str] = []

    def __call__(self, slug: str) -> list[RepoEvent]:
        self.slugs.append(slug)
        return self.batches.pop(0)


def test_poller_wakes_once_per_pass_and_advances_cursor(tmp_path: Path) -> None:
    team = TeamEntry(name="alpha", path=tmp_path, github_repo="acme/alpha-team")
    reasons: list[str] = []
    fetch = FakeFetch(
        [
            [
                RepoEvent(id="2", type="IssuesEvent"),
                RepoEvent(id="1", type="IssueCommentEvent"),
            ],
            [RepoEvent(id="2", type="IssuesEvent"), RepoEvent(id="3", type="WatchEvent")],
        ]
    )
    cursor_path = tmp_path / "poll.json"
    poller = daemon.Poller(team, reasons.append, cursor_path=cursor_path, fetch=fetch)

    first = poller.poll_once()
    second = poller.poll_once()

    assert [event.id for event in first] == ["1", "2"]
    assert second == []
    assert reasons == ["IssuesEvent"]
    assert fetch.slugs == ["acme/alpha-team", "acme/alpha-team"]
    cursor = daemon.load_poll_cursor(cursor_path)
    assert cursor.last_event_id == "3"
    assert cursor.last_poll_at is not None


def test_poller_with_no_events_keeps_cursor(tmp_path: Path) -> None:
    team = TeamEntry(name="alpha", path=tmp_path, github_repo="acme/alpha-team")
    cursor_path = tmp_path / "poll.json"
    daemon.save_poll_cursor(cursor_path, PollCursor(last_event_id="7"))
    poller = daemon.Poller(team, lambda _r: None, cursor_path=cursor_path, fetch=lambda _s: [])

    assert poller.poll_once() == []
    assert daemon.load_poll_cursor(cursor_path).last_event_id == "7"


def test_unreadable_cursor_starts_fresh(tmp_path: Path) -> None:
    cursor_path = tmp_path / "poll.json"
    cursor_path.write_text("[]", encoding="utf-8")

    assert daemon.load_poll_cursor(cursor_path) == PollCursor()


def test_member_waker_starts_only_idle_members(tmp_path: Path) -> None:
    team_path = tmp_path / "alpha"
    make_team_repo(team_path, ["dev-bob", "qe-ann"])
    for member in ("dev-bob", "qe-ann"):
        (team_path / member / ".botminter").mkdir(parents=True)
    probe = FakeProbe({100})
    store = RuntimeStateStore(tmp_path / "state.json")
    store.put(
        "alpha/dev-bob",
        RuntimeEntry(pid=100, started_at="2026-01-18T12:00:00Z", workspace=team_path / "dev-bob"),
    )
    supervisor = ProcessSupervisor(store, probe=probe, spawn=RecordingSpawn(555))
    waker = daemon.MemberWaker(TeamEntry(name="alpha", path=team_path), supervisor)

    started = waker("issues")

    assert started == ["qe-ann"]
    assert store.load().members["alpha/qe-ann"].pid == 555
    assert store.load().members["alpha/dev-bob"].pid == 100


def test_member_waker_skips_members_without_workspace(tmp_path: Path) -> None:
    team_path = tmp_path / "alpha"
    make_team_repo(team_path, ["dev-bob"])
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(store, probe=FakeProbe(), spawn=RecordingSpawn(555))

    started = daemon.MemberWaker(TeamEntry(name="alpha", path=team_path), supervisor)("issues")

    assert started == []
    assert store.load().members == {}


class FakeRunner:
    def __init__(self, stdout: str, returncode: int = 0) -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.requests: list[exec_util.CommandRequest] = []

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult:
        self.requests.append(request)
        return exec_util.CommandResult(
            argv=request.argv, returncode=self.returncode, stdout=self.stdout, stderr="boom"
        )


def test_fetch_repo_events_parses_gh_output() -> None:
    runner = FakeRunner('[{"id": "12", "type": "IssuesEvent", "actor": {"login": "x"}}]')

    with patch("botminter.exec._DEFAULT_COMMAND_RUNNER", runner):
        events = daemon.fetch_repo_events("acme/alpha-team", env={"GH_TOKEN": "t"})

    assert events == [RepoEvent(id="12", type="IssuesEvent")]
    assert runner.requests[0].argv == ("gh", "api", "repos/acme/alpha-team/events")
    assert runner.requests[0].env == {"GH_TOKEN": "t"}


def test_fetch_repo_events_raises_on_gh_failure() -> None:
    with patch("botminter.exec._DEFAULT_COMMAND_RUNNER", FakeRunner("", returncode=1)):
        with pytest.raises(ExternalCommandFailedError, match="gh api"):
            daemon.fetch_repo_events("acme/alpha-team")


def test_poll_loop_survives_failed_pass_and_stops(tmp_path: Path) -> None:
    stop = threading.Event()
    calls: list[str] = []

    def fetch(slug: str) -> list[RepoEvent]:
        calls.append(slug)
        if len(calls) == 1:
            raise ExternalCommandFailedError("gh api failed")
        stop.set()
        return []

    team = TeamEntry(name="alpha", path=tmp_path, github_repo="acme/alpha-team")
    poller = daemon.Poller(team, lambda _r: None, cursor_path=tmp_path / "poll.json", fetch=fetch)

    daemon.run_poll_loop(poller, 0, stop=stop)

    assert len(calls) == 2


def test_run_daemon_poll_mode_requires_github_repo(tmp_path: Path) -> None:
    team = TeamEntry(name="alpha", path=tmp_path)

    with pytest.raises(ConfigurationError, match="no GitHub repository"):
        daemon.run_daemon(team, DaemonConfig(team="alpha", mode="poll"))


def test_run_daemon_webhook_mode_serves_app(tmp_path: Path) -> None:
    team = TeamEntry(name="alpha", path=tmp_path)

    with patch("botminter.daemon.uvicorn.run") as mock_run:
        daemon.run_daemon(team, DaemonConfig(team="alpha", port=9100))

    assert mock_run.call_args.kwargs["port"] == 9100
    assert mock_run.call_args.kwargs["host"] == "0.0.0.0"
