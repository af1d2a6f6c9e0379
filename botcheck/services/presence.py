"""Voice-server presence queries over ServerQuery."""

from __future__ import annotations

import socket
from typing import Callable, Iterable, Optional

from botcheck.core.config import Settings
from botcheck.core.exceptions import (
    OperationError,
    QueryCommandError,
    VerificationError,
    VoiceServerUnreachableError,
)
from botcheck.core.logging import get_logger
from botcheck.models import PresenceEntry
from botcheck.services import serverquery


logger = get_logger("services.presence")

# "database empty result set"
EMPTY_RESULT_ERROR_ID = 1281

Connector = Callable[..., socket.socket]


class QuerySession:
    """
    One open ServerQuery connection.

    Commands are strictly request/response. The session is single use: once
    closed it sends nothing further.
    """

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._buffer = b""
        self._closed = False

    def __enter__(self) -> "QuerySession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def read_banner(self) -> None:
        """Consume the greeting: the ``TS3`` banner and a welcome line."""
        banner = self._read_line()
        if banner.strip() != serverquery.BANNER:
            raise ConnectionError(f"unexpected banner: {banner[:40]!r}")
        self._read_line()

    def execute(self, command: str, **params: object) -> list[dict[str, str]]:
        """Send a command and return its decoded records."""
        self._sock.sendall(serverquery.format_command(command, **params))

        records: list[dict[str, str]] = []
        while True:
            line = self._read_line()
            if serverquery.is_status_line(line):
                error_id, message = serverquery.parse_status(line)
                break
            if line.startswith("notify"):
                continue
            records.extend(serverquery.parse_records(line))

        if error_id == EMPTY_RESULT_ERROR_ID:
            return []
        if error_id != 0:
            raise QueryCommandError(command, error_id, message)
        return records

    def use(
        self,
        port: Optional[int] = None,
        sid: Optional[int] = None,
    ) -> None:
        """Select the virtual server by id, or by voice port when no id is given."""
        if sid is not None:
            self.execute("use", sid=sid)
        elif port is not None:
            self.execute("use", port=port)
        else:
            raise ValueError("either a virtual server port or id is required")

    def client_list(self) -> list[PresenceEntry]:
        return [PresenceEntry.from_record(record) for record in self.execute("clientlist")]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.sendall(b"quit\n")
        except OSError as exc:
            logger.debug(f"quit not delivered: {exc!r}")
        finally:
            self._sock.close()

    def _read_line(self) -> str:
        while serverquery.LINE_TERMINATOR not in self._buffer:
            chunk = self._sock.recv(4096)
            if not chunk:
                raise ConnectionError("connection closed by server")
            self._buffer += chunk
        line, _, self._buffer = self._buffer.partition(serverquery.LINE_TERMINATOR)
        return line.decode("utf-8", errors="replace")


class PresenceQueryClient:
    """
    Read-only view of the clients connected to a voice server.

    Usage:
        presence = PresenceQueryClient("voice.example.com", 10011)
        entries = presence.list_clients(virtual_server_port=9987)
        found = find_by_nickname_substring(entries, "SinusBot")
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = 10.0,
        connect: Connector = socket.create_connection,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self._connect = connect

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        connect: Connector = socket.create_connection,
    ) -> "PresenceQueryClient":
        return cls(
            host=settings.voice_host,
            port=settings.voice_query_port,
            timeout=settings.query_timeout,
            connect=connect,
        )

    def connect(
        self,
        virtual_server_port: Optional[int] = None,
        virtual_server_id: Optional[int] = None,
    ) -> QuerySession:
        """Open a session and select the virtual server."""
        try:
            sock = self._connect((self.host, self.port), timeout=self.timeout)
        except OSError as exc:
            raise VoiceServerUnreachableError() from exc

        session = QuerySession(sock)
        try:
            session.read_banner()
            session.use(port=virtual_server_port, sid=virtual_server_id)
        except (OSError, ValueError, VerificationError) as exc:
            session.close()
            raise VoiceServerUnreachableError() from exc

        logger.debug(f"ServerQuery session open on {self.host}:{self.port}")
        return session

    def list_clients(
        self,
        virtual_server_port: Optional[int] = None,
        virtual_server_id: Optional[int] = None,
    ) -> list[PresenceEntry]:
        """Connect, list connected clients and disconnect."""
        with self.connect(virtual_server_port, virtual_server_id) as session:
            try:
                entries = session.client_list()
            except (OSError, ValueError, VerificationError) as exc:
                raise OperationError("could not get clientlist") from exc

        logger.debug(f"{len(entries)} clients connected on {self.host}")
        return entries


def find_by_nickname_substring(entries: Iterable[PresenceEntry], needle: str) -> bool:
    """True as soon as one nickname contains ``needle`` (case-sensitive)."""
    for entry in entries:
        if needle in entry.nickname:
            return True
    return False
