"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings
from .exceptions import (
    BotNotFoundError,
    ControlPlaneNotRunningError,
    CredentialsError,
    DecodeError,
    NoInstanceError,
    OperationError,
    QueryCommandError,
    SettingsRejectedError,
    SpawnRejectedError,
    StageFailure,
    TransportError,
    UnexpectedStatusError,
    VerificationCancelled,
    VerificationError,
    VoiceServerUnreachableError,
    wrap_operation,
)
from .logging import get_logger, setup_logging


__all__ = [
    "BotNotFoundError",
    "ControlPlaneNotRunningError",
    "CredentialsError",
    "DecodeError",
    "NoInstanceError",
    "OperationError",
    "QueryCommandError",
    "Settings",
    "SettingsRejectedError",
    "SpawnRejectedError",
    "StageFailure",
    "TransportError",
    "UnexpectedStatusError",
    "VerificationCancelled",
    "VerificationError",
    "VoiceServerUnreachableError",
    "get_logger",
    "setup_logging",
    "wrap_operation",
]
