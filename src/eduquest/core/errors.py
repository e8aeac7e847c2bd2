# src/eduquest/core/errors.py

"""
Error taxonomy for the task lifecycle.

Operations raise these internally; TaskLifecycleManager catches them at the
operation boundary and turns them into a TaskResult + last_error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION_ERROR = "validation_error"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    EXTERNAL_FAILURE = "external_failure"


class TaskError(Exception):
    """Base class for task lifecycle errors. Subclasses pin `kind`."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(TaskError):
    kind = ErrorKind.NOT_FOUND


class InvalidState(TaskError):
    kind = ErrorKind.INVALID_STATE


class ProofValidationError(TaskError):
    """Submitted proof violates the task's proof policy."""

    kind = ErrorKind.VALIDATION_ERROR


class UnsupportedOperation(TaskError):
    kind = ErrorKind.UNSUPPORTED_OPERATION


class ExternalFailure(TaskError):
    """
    The reward ledger failed.

    The status transition that triggered the grant has already been applied;
    the task is left with reward_pending=True for the reconciler.
    """

    kind = ErrorKind.EXTERNAL_FAILURE


class LedgerError(Exception):
    """Raised by RewardLedger adapters (transport errors, non-2xx responses)."""


@dataclass(slots=True, frozen=True)
class TaskResult:
    """Outcome of a lifecycle operation. Callers check `ok` instead of catching."""

    ok: bool
    error_kind: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def success(cls) -> TaskResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, err: TaskError) -> TaskResult:
        return cls(ok=False, error_kind=err.kind, message=err.message)
