"""Exceptions raised by the scenario recording and replay components."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories reported in operation results."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    STEP_FAILURE = "step_failure"
    UNEXPECTED = "unexpected"


class ScenarioError(Exception):
    """Base exception for scenario operations."""

    kind: ErrorKind = ErrorKind.UNEXPECTED


class ScenarioNotFoundError(ScenarioError):
    """Raised when no scenario matches an id or name."""

    kind = ErrorKind.NOT_FOUND


class SessionNotFoundError(ScenarioError):
    """Raised when a session id does not resolve to a live browser."""

    kind = ErrorKind.NOT_FOUND


class RecordingConflictError(ScenarioError):
    """Raised when a recording is already active on a session."""

    kind = ErrorKind.CONFLICT


class RecordingNotActiveError(ScenarioError):
    """Raised when stopping a scenario that has no active recording."""

    kind = ErrorKind.NOT_FOUND


class ScenarioValidationError(ScenarioError):
    """Raised when scenario input (steps, names) is malformed."""

    kind = ErrorKind.VALIDATION


class ConfirmationRequiredError(ScenarioValidationError):
    """Raised when a destructive operation is called without confirmation."""


class ReplayAbortedError(ScenarioError):
    """Raised inside the replay loop when stop_on_error halts execution."""

    kind = ErrorKind.STEP_FAILURE
