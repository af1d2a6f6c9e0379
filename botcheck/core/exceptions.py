"""Verification error taxonomy.

Every layer raises its own error ``from`` the lower-level one, so ``str()`` of
the outermost error reads as the chain of operations that failed, e.g.
``could not change instance settings: could not do request: All connection attempts failed``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator


class VerificationError(Exception):
    """Base verification error with a structured representation."""

    error_code: str = "VERIFICATION_ERROR"
    message: str = "verification failed"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is None:
            return self.message
        cause_text = str(cause) or type(cause).__name__
        return f"{self.message}: {cause_text}"

    def chain(self) -> list[str]:
        """Operation names from outermost to root cause."""
        links: list[str] = []
        current: BaseException | None = self
        while current is not None:
            if isinstance(current, VerificationError):
                links.append(current.message)
            else:
                links.append(str(current) or type(current).__name__)
            current = current.__cause__
        return links

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": str(self),
            **({"details": self.details} if self.details else {}),
        }


class OperationError(VerificationError):
    """A named operation failed; the cause says why."""

    error_code = "OPERATION_FAILED"


# (a) transport / connectivity


class TransportError(VerificationError):
    """A request could not be sent or a session could not be opened."""

    error_code = "TRANSPORT_ERROR"
    message = "could not do request"


# (b) decode


class DecodeError(VerificationError):
    """Response body does not match the expected document shape."""

    error_code = "DECODE_ERROR"
    message = "could not decode json"


# (c) protocol status


class UnexpectedStatusError(VerificationError):
    """HTTP status outside the expected success code."""

    error_code = "UNEXPECTED_STATUS"

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(
            message=message or f"status is not expected: 200; got: {status_code}",
            details={"status_code": status_code},
        )


class SettingsRejectedError(UnexpectedStatusError):
    error_code = "SETTINGS_REJECTED"

    def __init__(self, status_code: int):
        super().__init__(status_code, f"settings update rejected, status {status_code}")


class SpawnRejectedError(UnexpectedStatusError):
    error_code = "SPAWN_REJECTED"

    def __init__(self, status_code: int):
        super().__init__(status_code, f"spawn rejected, status {status_code}")


class QueryCommandError(VerificationError):
    """ServerQuery answered a command with a non-zero error id."""

    error_code = "QUERY_COMMAND_ERROR"

    def __init__(self, command: str, error_id: int, error_message: str):
        self.command = command
        self.error_id = error_id
        super().__init__(
            message=f"{command} failed: error id={error_id} msg={error_message}",
            details={"command": command, "error_id": error_id},
        )


# (d) logical


class NoInstanceError(VerificationError):
    error_code = "NO_INSTANCE"
    message = "no instance available"


class BotNotFoundError(VerificationError):
    error_code = "BOT_NOT_FOUND"
    message = "bot not found"


# Component-level conditions


class ControlPlaneNotRunningError(VerificationError):
    error_code = "CONTROL_PLANE_NOT_RUNNING"
    message = "control plane not running"


class VoiceServerUnreachableError(VerificationError):
    error_code = "VOICE_SERVER_UNREACHABLE"
    message = "cannot reach voice server"


class CredentialsError(VerificationError):
    error_code = "CREDENTIALS_ERROR"
    message = "could not read password file"


class StageFailure(VerificationError):
    """A verification stage failed and the run must stop."""

    error_code = "STAGE_FAILED"

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message=message, details={"stage": stage})


class VerificationCancelled(VerificationError):
    """The run was asked to stop while waiting."""

    error_code = "CANCELLED"
    message = "verification cancelled"


@contextmanager
def wrap_operation(name: str) -> Iterator[None]:
    """Re-raise any VerificationError as ``OperationError(name)`` chained to it."""
    try:
        yield
    except VerificationError as exc:
        raise OperationError(name) from exc
