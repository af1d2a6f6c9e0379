"""Clients for the control plane and the voice server."""

from .control_plane import ControlPlaneClient
from .presence import PresenceQueryClient, QuerySession, find_by_nickname_substring


__all__ = [
    "ControlPlaneClient",
    "PresenceQueryClient",
    "QuerySession",
    "find_by_nickname_substring",
]
