"""
Unified error handling for keyseed provisioning runs.

This module provides the error taxonomy and exit codes reported back to
the bootstrap layer that invokes a provisioning run.

Exit Codes:
- 0: Success
- 1: Provisioning failed (one or more named steps failed)
- 2: Timed out waiting on a barrier
- 10: Configuration error
- 11: Directory error (remote identity service failure)
- 12: Validation error (plan construction bug)
- 127: Unknown/internal error
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Iterable, Mapping


class ExitCode(IntEnum):
    """Standardized exit codes for provisioning runs."""

    SUCCESS = 0
    FAILED = 1
    TIMEOUT = 2
    CONFIG_ERROR = 10
    DIRECTORY_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class KeyseedError(Exception):
    """Base exception for keyseed errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(KeyseedError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(KeyseedError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class PlanError(ValidationError):
    """Raised when a provisioning plan is malformed."""


class DuplicateTaskError(ValidationError):
    """Raised when a task name is submitted twice in one run."""

    def __init__(self, name: str):
        super().__init__(f"Task '{name}' was already submitted", {"task": name})
        self.name = name


class UnknownTaskError(ValidationError):
    """Raised when waiting on a task name that was never submitted."""

    def __init__(self, names: Iterable[str]):
        missing = sorted(names)
        super().__init__(f"Unknown task(s): {', '.join(missing)}", {"tasks": missing})
        self.names = missing


class DirectoryError(KeyseedError):
    """Raised when the identity service rejects a call or is unreachable."""

    exit_code = ExitCode.DIRECTORY_ERROR


class EntityExistsError(KeyseedError):
    """Raised by directory clients when a create hits an existing natural key."""

    exit_code = ExitCode.DIRECTORY_ERROR


class AggregatedBarrierFailure(KeyseedError):
    """Raised at a barrier when one or more awaited tasks failed."""

    exit_code = ExitCode.FAILED

    def __init__(self, failures: Mapping[str, BaseException]):
        self.failures = dict(sorted(failures.items()))
        summary = "; ".join(f"{name}: {error}" for name, error in self.failures.items())
        super().__init__(
            f"{len(self.failures)} task(s) failed: {summary}",
            {"failed": list(self.failures)},
        )


class BarrierTimeout(KeyseedError):
    """Raised when a barrier does not clear in time. Tasks keep running."""

    exit_code = ExitCode.TIMEOUT

    def __init__(self, pending: Iterable[str], timeout: float):
        self.pending = sorted(pending)
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for: {', '.join(self.pending)}",
            {"pending": self.pending, "timeout": timeout},
        )


def format_error_message(error: KeyseedError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
