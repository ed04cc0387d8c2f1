"""Subprocess seams for git, gh, and the agent runtime.

Short-lived commands go through a `CommandRunner` so tests can substitute
canned results; long-lived member and daemon processes are launched with
`spawn_detached`.
"""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generic, Mapping, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ExternalCommandFailedError

ParsedT = TypeVar("ParsedT")
ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


class SubprocessCommandRunner:
    """Runs requests with `subprocess.run`, capturing text output."""

    def run(self, request: CommandRequest) -> CommandResult | None:
        try:
            completed = subprocess.run(
                list(request.argv),
                cwd=request.cwd,
                env=dict(request.env) if request.env is not None else None,
                capture_output=True,
                text=True,
                check=False,
            )
        except (FileNotFoundError, NotADirectoryError):
            return None
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


@dataclass(frozen=True)
class CommandSpec(Generic[ParsedT]):
    """Typed command spec with a parser for command output."""

    request: CommandRequest
    parser: Callable[[CommandResult], ParsedT]
    context: str | None = None


class CommandParseError(ExternalCommandFailedError):
    """Raised when command output parsing fails."""


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def _missing_command_detail(request: CommandRequest) -> str:
    argv = request.argv
    if not argv:
        return "missing required command"
    return f"missing required command: {argv[0]}"


def _command_failure_detail(request: CommandRequest, result: CommandResult) -> str:
    output = (result.stderr or result.stdout or "").strip()
    command_text = " ".join(request.argv)
    if output:
        return f"command failed: {command_text}\n{output}"
    return f"command failed: {command_text}"


def run_checked(
    request: CommandRequest,
    *,
    runner: CommandRunner | None = None,
    recovery_hint: str | None = None,
) -> CommandResult:
    """Execute a command and raise on a missing executable or non-zero exit."""
    result = run_with_runner(request, runner=runner)
    if result is None:
        raise ExternalCommandFailedError(
            _missing_command_detail(request), recovery_hint=recovery_hint
        )
    if not result.ok:
        raise ExternalCommandFailedError(
            _command_failure_detail(request, result),
            recovery_hint=recovery_hint,
            stderr=result.stderr,
        )
    return result


def run_typed(spec: CommandSpec[ParsedT], *, runner: CommandRunner | None = None) -> ParsedT:
    """Execute a command and parse its successful output into a typed value."""
    result = run_checked(spec.request, runner=runner)
    try:
        return spec.parser(result)
    except CommandParseError:
        raise
    except Exception as exc:
        context = f" ({spec.context})" if spec.context else ""
        raise CommandParseError(f"failed to parse command output{context}: {exc}") from exc


def _parse_json_payload(result: CommandResult, *, context: str | None = None) -> object:
    context_suffix = f" ({context})" if context else ""
    raw = (result.stdout or "").strip()
    if not raw:
        raise CommandParseError(f"failed to parse command output{context_suffix}: empty output")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CommandParseError(f"failed to parse command output{context_suffix}: {exc}") from exc


def parse_json_model_list(
    result: CommandResult, *, model_type: type[ModelT], context: str | None = None
) -> list[ModelT]:
    """Parse command stdout JSON array into validated Pydantic models."""
    payload = _parse_json_payload(result, context=context)
    context_suffix = f" ({context})" if context else ""
    if not isinstance(payload, list):
        raise CommandParseError(
            f"failed to parse command output{context_suffix}: expected a JSON list"
        )
    models: list[ModelT] = []
    for index, item in enumerate(payload):
        try:
            models.append(model_type.model_validate(item))
        except ValidationError as exc:
            raise CommandParseError(
                f"failed to validate command output{context_suffix} at index {index}: {exc}"
            ) from exc
    return models


def try_run_command(
    cmd: list[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult | None:
    """Run a command, returning ``None`` when the executable is missing.

    Example:
        >>> try_run_command(["true"]).ok
        True
        >>> try_run_command(["bm-no-such-tool"]) is None
        True
    """
    return run_with_runner(CommandRequest(argv=tuple(cmd), cwd=cwd, env=env))


def spawn_detached(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    log_path: Path | None = None,
) -> int:
    """Start a command in its own session without waiting for it.

    Output is appended to ``log_path`` when given, otherwise discarded.

    Returns:
        PID of the launched process.
    """
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        sink = log_path.open("a", encoding="utf-8")
    else:
        sink = open(os.devnull, "w", encoding="utf-8")
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=sink,
            stderr=sink,
            start_new_session=True,
        )
    except FileNotFoundError as exc:
        raise ExternalCommandFailedError(f"missing required command: {cmd[0]}") from exc
    finally:
        sink.close()
    return proc.pid
