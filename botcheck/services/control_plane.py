"""Control-plane (bot manager) HTTP API client."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from botcheck.core.config import Settings
from botcheck.core.exceptions import (
    ControlPlaneNotRunningError,
    DecodeError,
    NoInstanceError,
    SettingsRejectedError,
    SpawnRejectedError,
    TransportError,
    UnexpectedStatusError,
    VerificationError,
    wrap_operation,
)
from botcheck.core.logging import get_logger
from botcheck.models import (
    BotIdDocument,
    Instance,
    InstanceList,
    InstanceSettings,
    LoginDocument,
    LoginRequest,
)


logger = get_logger("services.control_plane")

BOT_ID_PATH = "/api/v1/botId"
LOGIN_PATH = "/api/v1/bot/login"
INSTANCES_PATH = "/api/v1/bot/instances"


def _instance_path(uuid: str, action: str) -> str:
    return f"/api/v1/bot/i/{uuid}/{action}"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def first_instance(instances: list[Instance]) -> Instance:
    """Pick the instance to provision; an empty listing is an error."""
    if not instances:
        raise NoInstanceError()
    return instances[0]


class ControlPlaneClient:
    """
    Synchronous client for the local bot-management service.

    Every operation attempts its request exactly once. Failures are raised as
    VerificationError subclasses chained onto the httpx or decode error that
    caused them.

    Usage:
        with ControlPlaneClient.from_settings(settings) as api:
            bot_id = api.get_bot_id()
            token = api.login("admin", password, bot_id)
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: httpx.BaseTransport | None = None,
    ):
        client_kwargs: dict[str, Any] = {"base_url": base_url}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
    ) -> "ControlPlaneClient":
        return cls(
            base_url=settings.control_plane_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    def __enter__(self) -> "ControlPlaneClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_bot_id(self) -> str:
        """
        Fetch the default bot identifier.

        Also serves as the liveness probe: any failure means the control
        plane is not running or not queryable.
        """
        try:
            response = self._send("GET", BOT_ID_PATH)
            self._expect_ok(response)
            document = self._decode(response, BotIdDocument.model_validate)
        except VerificationError as exc:
            raise ControlPlaneNotRunningError() from exc
        return document.default_bot_id

    def login(
        self,
        username: str,
        password: str,
        bot_id: str,
        check_status: bool = False,
    ) -> str:
        """
        Authenticate and return a session token.

        The status code is not inspected unless ``check_status`` is set: a
        body carrying a ``token`` field is accepted whatever the status.
        """
        payload = LoginRequest(username=username, password=password, bot_id=bot_id)
        response = self._send("POST", LOGIN_PATH, json=payload.model_dump(by_alias=True))
        if check_status:
            self._expect_ok(response)
        document = self._decode(response, LoginDocument.model_validate)
        return document.token

    def list_instances(self, token: str) -> list[Instance]:
        """List provisioned instances. An empty list is a valid answer."""
        response = self._send("GET", INSTANCES_PATH, headers=_bearer(token))
        return self._decode(response, InstanceList.validate_python)

    def update_settings(self, uuid: str, token: str, settings: InstanceSettings) -> None:
        response = self._send(
            "POST",
            _instance_path(uuid, "settings"),
            headers=_bearer(token),
            json=settings.to_payload(),
        )
        if response.status_code != httpx.codes.OK:
            raise SettingsRejectedError(response.status_code)

    def spawn(self, uuid: str, token: str) -> None:
        response = self._send("POST", _instance_path(uuid, "spawn"), headers=_bearer(token))
        if response.status_code != httpx.codes.OK:
            raise SpawnRejectedError(response.status_code)

    def configure_and_spawn(
        self,
        uuid: str,
        token: str,
        nickname: str,
        server_host: str,
    ) -> None:
        """Apply nickname and server host to the instance, then spawn it."""
        settings = InstanceSettings(instance_id=uuid, nick=nickname, server_host=server_host)
        with wrap_operation("could not change instance settings"):
            self.update_settings(uuid, token, settings)
            logger.info(f"Instance {uuid} configured with nickname {nickname!r}")
            self.spawn(uuid, token)
        logger.info(f"Instance {uuid} spawn requested")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.debug(f"{method} {path} failed: {exc!r}")
            raise TransportError() from exc
        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _expect_ok(response: httpx.Response) -> None:
        if response.status_code != httpx.codes.OK:
            raise UnexpectedStatusError(response.status_code)

    @staticmethod
    def _decode(response: httpx.Response, validate):
        try:
            return validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DecodeError() from exc
