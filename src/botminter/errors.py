"""Failure contracts for reconciliation and supervision.

Core modules raise BotminterFailure subclasses on expected configuration,
policy, and runtime failures; command modules catch them and exit with the
message plus its recovery hint. Programmer bugs raise normal exceptions.
"""

from __future__ import annotations

from typing import Literal

FailureCode = Literal[
    "config_invalid",
    "external_command_failed",
    "io_failed",
    "schema_mismatch",
    "lifecycle_conflict",
    "sync_failed",
]


class BotminterFailure(Exception):
    """Expected failure: configuration, policy, or runtime error.

    Use ``raise BotminterFailure(...) from exc`` to chain a causing exception;
    it is available as ``__cause__``.
    """

    def __init__(
        self,
        code: FailureCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint


class ConfigurationError(BotminterFailure):
    """Unknown team/member/project or unreadable configuration."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("config_invalid", message, recovery_hint=recovery_hint)


class ExternalCommandFailedError(BotminterFailure):
    """External command (git, gh, ralph) failed."""

    def __init__(
        self,
        message: str,
        *,
        recovery_hint: str | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__("external_command_failed", message, recovery_hint=recovery_hint)
        self.stderr = stderr


class IoFailedError(BotminterFailure):
    """Filesystem operation failed (read, write, symlink)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("io_failed", message, recovery_hint=recovery_hint)


class SchemaMismatchError(BotminterFailure):
    """Team repo manifest is on a schema this release does not operate on."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("schema_mismatch", message, recovery_hint=recovery_hint)


class LifecycleConflictError(BotminterFailure):
    """Process is already running, or not running, when the opposite is required."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("lifecycle_conflict", message, recovery_hint=recovery_hint)


class SyncFailedError(BotminterFailure):
    """One or more workspaces in a batch failed to reconcile."""

    def __init__(self, failures: list[str]) -> None:
        listing = "\n  ".join(failures)
        super().__init__(
            "sync_failed",
            f"{len(failures)} workspace(s) failed to sync:\n  {listing}",
        )
        self.failures = list(failures)
