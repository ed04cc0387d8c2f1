import signal
import time
from pathlib import Path

import pytest

from botminter.errors import ConfigurationError, LifecycleConflictError
from botminter.exec import spawn_detached
from botminter.models import RuntimeEntry, TeamEntry
from botminter.state import RuntimeStateStore
from botminter.supervisor import (
    RUNTIME_COMMAND,
    Crashed,
    ProcessSupervisor,
    Running,
    Stopped,
)
from tests.botminter.helpers import FakeProbe


class FakeSpawn:
    def __init__(self, pid: int = 5001) -> None:
        self.pid = pid
        self.calls: list[dict[str, object]] = []

    def __call__(self, cmd, *, cwd, env, log_path) -> int:
        self.calls.append({"cmd": cmd, "cwd": cwd, "env": env, "log_path": log_path})
        return self.pid


class FakeSignals:
    """Records signals; SIGKILL (and optionally SIGTERM) kills the PID."""

    def __init__(self, probe: FakeProbe, *, term_kills: bool = True) -> None:
        self.probe = probe
        self.term_kills = term_kills
        self.sent: list[tuple[int, int]] = []

    def __call__(self, pid: int, signum: int) -> None:
        self.sent.append((pid, signum))
        if signum == signal.SIGKILL or self.term_kills:
            self.probe.alive.discard(pid)


def _make(tmp_path: Path, alive: set[int] | None = None, **kwargs):
    probe = FakeProbe(alive)
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(store, probe=probe, sleep=lambda _s: None, **kwargs)
    return supervisor, store, probe


def _workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "alpha" / "dev-bob"
    (ws / ".botminter").mkdir(parents=True)
    return ws


def _entry(pid: int, tmp_path: Path) -> RuntimeEntry:
    return RuntimeEntry(pid=pid, started_at="2026-01-18T12:00:00Z", workspace=tmp_path)


def test_status_without_entry_is_stopped(tmp_path: Path) -> None:
    supervisor, _store, _probe = _make(tmp_path)

    assert supervisor.status("alpha", "dev-bob") == Stopped()


def test_status_distinguishes_running_and_crashed(tmp_path: Path) -> None:
    supervisor, store, _probe = _make(tmp_path, alive={100})
    store.put("alpha/dev-bob", _entry(100, tmp_path))
    store.put("alpha/qe-ann", _entry(200, tmp_path))

    assert supervisor.status("alpha", "dev-bob") == Running(100, "2026-01-18T12:00:00Z")
    assert supervisor.status("alpha", "qe-ann") == Crashed(200, "2026-01-18T12:00:00Z")


def test_list_statuses_sweeps_crashed_entries(tmp_path: Path) -> None:
    supervisor, store, _probe = _make(tmp_path, alive={100})
    store.put("alpha/dev-bob", _entry(100, tmp_path))
    store.put("alpha/qe-ann", _entry(200, tmp_path))

    first = dict(supervisor.list_statuses("alpha", ["dev-bob", "qe-ann"]))
    second = dict(supervisor.list_statuses("alpha", ["dev-bob", "qe-ann"]))

    assert first["qe-ann"].label == "crashed"
    assert second["qe-ann"].label == "stopped"
    assert second["dev-bob"].label == "running"
    assert list(store.load().members) == ["alpha/dev-bob"]


def test_sweep_keeps_entry_replaced_by_new_pid(tmp_path: Path) -> None:
    supervisor, store, _probe = _make(tmp_path, alive={300})
    store.put("alpha/qe-ann", _entry(300, tmp_path))

    supervisor.sweep({"alpha/qe-ann": 200})

    assert store.load().members["alpha/qe-ann"].pid == 300


def test_start_member_records_spawned_process(tmp_path: Path) -> None:
    spawn = FakeSpawn(pid=5001)
    supervisor, store, _probe = _make(tmp_path, spawn=spawn)
    ws = _workspace(tmp_path)
    team = TeamEntry(name="alpha", path=tmp_path / "alpha")

    entry = supervisor.start_member(team, "dev-bob", ws, env={"GH_TOKEN": "t"})

    assert entry.pid == 5001
    assert entry.workspace == ws
    assert store.load().members["alpha/dev-bob"].pid == 5001
    call = spawn.calls[0]
    assert call["cmd"] == list(RUNTIME_COMMAND)
    assert call["cwd"] == ws
    assert call["env"] == {"GH_TOKEN": "t"}
    assert str(call["log_path"]).endswith("dev-bob.log")


def test_start_member_refuses_running_member(tmp_path: Path) -> None:
    spawn = FakeSpawn()
    supervisor, store, _probe = _make(tmp_path, alive={100}, spawn=spawn)
    store.put("alpha/dev-bob", _entry(100, tmp_path))
    team = TeamEntry(name="alpha", path=tmp_path / "alpha")

    with pytest.raises(LifecycleConflictError, match="already running"):
        supervisor.start_member(team, "dev-bob", _workspace(tmp_path))

    assert spawn.calls == []


def test_start_member_replaces_crashed_entry(tmp_path: Path) -> None:
    supervisor, store, _probe = _make(tmp_path, spawn=FakeSpawn(pid=777))
    store.put("alpha/dev-bob", _entry(100, tmp_path))
    team = TeamEntry(name="alpha", path=tmp_path / "alpha")

    supervisor.start_member(team, "dev-bob", _workspace(tmp_path))

    assert store.load().members["alpha/dev-bob"].pid == 777


def test_start_member_requires_provisioned_workspace(tmp_path: Path) -> None:
    spawn = FakeSpawn()
    supervisor, store, _probe = _make(tmp_path, spawn=spawn)
    team = TeamEntry(name="alpha", path=tmp_path / "alpha")

    with pytest.raises(ConfigurationError) as excinfo:
        supervisor.start_member(team, "dev-bob", tmp_path / "alpha" / "dev-bob")

    assert "bm teams sync" in (excinfo.value.recovery_hint or "")
    assert spawn.calls == []
    assert store.load().members == {}


def test_stop_member_sends_sigterm_and_removes_entry(tmp_path: Path) -> None:
    probe = FakeProbe({100})
    signals = FakeSignals(probe)
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(
        store, probe=probe, send_signal=signals, sleep=lambda _s: None
    )
    store.put("alpha/dev-bob", _entry(100, tmp_path))

    previous = supervisor.stop_member("alpha", "dev-bob")

    assert isinstance(previous, Running)
    assert signals.sent == [(100, signal.SIGTERM)]
    assert store.load().members == {}


def test_stop_member_escalates_after_grace_period(tmp_path: Path) -> None:
    probe = FakeProbe({100})
    signals = FakeSignals(probe, term_kills=False)
    sleeps: list[float] = []
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(
        store, probe=probe, send_signal=signals, sleep=sleeps.append
    )
    store.put("alpha/dev-bob", _entry(100, tmp_path))

    supervisor.stop_member("alpha", "dev-bob", grace_seconds=0.5)

    assert signals.sent == [(100, signal.SIGTERM), (100, signal.SIGKILL)]
    assert 4 <= len(sleeps) <= 6
    assert store.load().members == {}


def test_stop_member_force_skips_sigterm(tmp_path: Path) -> None:
    probe = FakeProbe({100})
    signals = FakeSignals(probe, term_kills=False)
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(store, probe=probe, send_signal=signals)
    store.put("alpha/dev-bob", _entry(100, tmp_path))

    supervisor.stop_member("alpha", "dev-bob", force=True)

    assert signals.sent == [(100, signal.SIGKILL)]


def test_stop_member_clears_crashed_entry_without_signalling(tmp_path: Path) -> None:
    probe = FakeProbe()
    signals = FakeSignals(probe)
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(store, probe=probe, send_signal=signals)
    store.put("alpha/dev-bob", _entry(100, tmp_path))

    previous = supervisor.stop_member("alpha", "dev-bob")

    assert isinstance(previous, Crashed)
    assert signals.sent == []
    assert store.load().members == {}


def test_exited_child_of_this_process_is_crashed(tmp_path: Path) -> None:
    store = RuntimeStateStore(tmp_path / "state.json")
    supervisor = ProcessSupervisor(store)
    pid = spawn_detached(["true"], cwd=tmp_path)
    store.put("alpha/dev-bob", _entry(pid, tmp_path))

    deadline = time.monotonic() + 5
    while time.monotonic() < deadline and isinstance(
        supervisor.status("alpha", "dev-bob"), Running
    ):
        time.sleep(0.05)

    assert supervisor.status("alpha", "dev-bob") == Crashed(pid, "2026-01-18T12:00:00Z")
