"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import httpx
import pytest

from botcheck.core.config import Settings
from botcheck.services import serverquery
from botcheck.services.control_plane import ControlPlaneClient
from botcheck.services.presence import PresenceQueryClient


BASE_URL = "http://control-plane.test"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


# =============================================================================
# CONTROL PLANE (httpx.MockTransport)
# =============================================================================


class FakeControlPlane:
    """
    Route table served through httpx.MockTransport.

    Usage:
        api = FakeControlPlane({("GET", "/api/v1/botId"): httpx.Response(200, json={...})})
        client = api.client()
    """

    def __init__(self, routes: Optional[dict[tuple[str, str], Route]] = None):
        self.routes: dict[tuple[str, str], Route] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        return route

    def client(self) -> ControlPlaneClient:
        return ControlPlaneClient(BASE_URL, transport=httpx.MockTransport(self.handler))

    def paths(self) -> list[tuple[str, str]]:
        return [(request.method, request.url.path) for request in self.requests]

    def body_of(self, method: str, path: str) -> dict:
        for request in self.requests:
            if (request.method, request.url.path) == (method, path):
                return json.loads(request.content)
        raise KeyError((method, path))


def healthy_routes(
    token: str = "T1",
    instances: Optional[list[dict]] = None,
    spawn_status: int = 200,
    settings_status: int = 200,
) -> dict[tuple[str, str], Route]:
    """Routes for a control plane where every step succeeds."""
    if instances is None:
        instances = [{"uuid": "abc"}]
    return {
        ("GET", "/api/v1/botId"): httpx.Response(200, json={"defaultBotId": "bot-1"}),
        ("POST", "/api/v1/bot/login"): httpx.Response(200, json={"token": token}),
        ("GET", "/api/v1/bot/instances"): httpx.Response(200, json=instances),
        ("POST", "/api/v1/bot/i/abc/settings"): httpx.Response(settings_status),
        ("POST", "/api/v1/bot/i/abc/spawn"): httpx.Response(spawn_status),
    }


# =============================================================================
# VOICE SERVER (scripted ServerQuery socket)
# =============================================================================

WELCOME = (
    b"TS3\n\r"
    b"Welcome to the TeamSpeak 3 ServerQuery interface, type \"help\" for a list of commands.\n\r"
)


def status_line(error_id: int = 0, message: str = "ok") -> bytes:
    return f"error id={error_id} msg={serverquery.escape(message)}\n\r".encode()


def clientlist_line(nicknames: Iterable[str]) -> bytes:
    records = [
        f"clid={index} cid=1 client_database_id={index} "
        f"client_nickname={serverquery.escape(nickname)} client_type=0"
        for index, nickname in enumerate(nicknames, start=1)
    ]
    return ("|".join(records) + "\n\r").encode()


class FakeQuerySocket:
    """In-memory ServerQuery peer answering use/clientlist/quit."""

    def __init__(
        self,
        nicknames: Iterable[str] = (),
        banner: bytes = WELCOME,
        use_error: Optional[tuple[int, str]] = None,
        clientlist_error: Optional[tuple[int, str]] = None,
        chunk_size: int = 4096,
    ):
        self.nicknames = list(nicknames)
        self.use_error = use_error
        self.clientlist_error = clientlist_error
        self.chunk_size = chunk_size
        self.sent: list[str] = []
        self.closed = False
        self._pending = bytearray(banner)

    def sendall(self, data: bytes) -> None:
        if self.closed:
            raise OSError("socket closed")
        line = data.decode()
        self.sent.append(line)
        command = line.strip().split(" ")[0]

        if command == "use":
            self._pending += status_line(*self.use_error) if self.use_error else status_line()
        elif command == "clientlist":
            if self.clientlist_error:
                self._pending += status_line(*self.clientlist_error)
            else:
                if self.nicknames:
                    self._pending += clientlist_line(self.nicknames)
                self._pending += status_line()
        elif command == "quit":
            self._pending += status_line()
        else:
            self._pending += status_line(256, "command not found")

    def recv(self, size: int) -> bytes:
        if self.closed:
            raise OSError("socket closed")
        size = min(size, self.chunk_size)
        chunk = bytes(self._pending[:size])
        del self._pending[:size]
        return chunk

    def close(self) -> None:
        self.closed = True

    def commands(self) -> list[str]:
        return [line.strip() for line in self.sent]


class SocketFactory:
    """Connector handing out scripted sockets in order, one per connection."""

    def __init__(self, *sockets: FakeQuerySocket):
        self.sockets = list(sockets)
        self.addresses: list[tuple[str, int]] = []

    def __call__(self, address, timeout=None):
        self.addresses.append(address)
        if not self.sockets:
            raise ConnectionRefusedError(111, "Connection refused")
        return self.sockets.pop(0)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def password_file(tmp_path: Path) -> Path:
    path = tmp_path / ".password"
    path.write_text("s3cret\n", encoding="utf-8")
    return path


@pytest.fixture
def settings(password_file: Path) -> Settings:
    """Settings isolated from the environment, tuned for fast tests."""
    return Settings(
        _env_file=None,
        control_plane_url=BASE_URL,
        password_file=str(password_file),
        voice_host="voice.test",
        voice_query_port=10011,
        voice_server_port=1489,
        settle_mode="fixed",
        settle_delay=0,
        presence_timeout=0.2,
        presence_poll_interval=0.01,
    )


@pytest.fixture
def fake_control_plane() -> FakeControlPlane:
    return FakeControlPlane(healthy_routes())


@pytest.fixture
def presence_factory() -> Callable[..., PresenceQueryClient]:
    """Build a PresenceQueryClient wired to scripted sockets."""

    def _build(*sockets: FakeQuerySocket) -> PresenceQueryClient:
        return PresenceQueryClient("voice.test", 10011, timeout=1.0, connect=SocketFactory(*sockets))

    return _build
