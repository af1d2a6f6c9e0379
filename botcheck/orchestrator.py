"""
Deployment verification run.

Stages run strictly in order and the first failure ends the run:

1. check_running      control plane answers the bot-id probe
2. check_can_connect  login, pick the first instance, configure and spawn it
3. settle             give the spawned instance time to connect
4. check_presence     the instance shows up on the voice server

The session token and the chosen instance are local to stage 2; nothing is
carried into stage 4 except the time that has passed.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from botcheck.core.config import Settings
from botcheck.core.exceptions import (
    BotNotFoundError,
    StageFailure,
    VerificationCancelled,
    VerificationError,
    wrap_operation,
)
from botcheck.core.logging import get_logger, run_id_var
from botcheck.credentials import read_password
from botcheck.services.control_plane import ControlPlaneClient, first_instance
from botcheck.services.presence import PresenceQueryClient, find_by_nickname_substring


logger = get_logger("orchestrator")


class Stage(str, Enum):
    CHECK_RUNNING = "check_running"
    CHECK_CAN_CONNECT = "check_can_connect"
    SETTLE = "settle"
    CHECK_PRESENCE = "check_presence"


STAGE_ANNOUNCEMENTS = {
    Stage.CHECK_RUNNING: "Checking if the bot is running...",
    Stage.CHECK_CAN_CONNECT: "Checking if the bot can connect to the voice server...",
    Stage.SETTLE: "Waiting for the bot to connect to the voice server...",
    Stage.CHECK_PRESENCE: "Checking if the bot is on the voice server...",
}

FAILURE_MESSAGES = {
    Stage.CHECK_RUNNING: "bot is not running",
    Stage.CHECK_CAN_CONNECT: "cannot connect bot to voice server",
    Stage.CHECK_PRESENCE: "bot is not visibly connected to the voice server",
}


@dataclass
class StageResult:
    """Outcome of one executed stage."""

    stage: Stage
    passed: bool
    duration: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "passed": self.passed,
            "duration": round(self.duration, 3),
            **({"error": self.error} if self.error else {}),
        }


@dataclass
class RunReport:
    """Result of one verification run."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stages: list[StageResult] = field(default_factory=list)
    failed_stage: Optional[Stage] = None
    error: Optional[VerificationError] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.failed_stage is None and len(self.stages) == len(Stage)

    @property
    def message(self) -> str:
        if self.succeeded:
            return "bot deployment verified"
        if self.error is not None:
            return str(self.error)
        return "verification incomplete"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "succeeded": self.succeeded,
            "cancelled": self.cancelled,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "message": self.message,
            "error_chain": self.error.chain() if self.error else [],
            "stages": [result.to_dict() for result in self.stages],
        }


class Verifier:
    """
    One-shot deployment verification.

    Each call to ``run`` is a fresh run: no state survives between runs and
    nothing is retried. Presence polling only happens when ``settle_mode`` is
    set to ``poll``; the default ``fixed`` mode queries the voice server once.

    Usage:
        with ControlPlaneClient.from_settings(settings) as api:
            verifier = Verifier(settings, api, PresenceQueryClient.from_settings(settings))
            report = verifier.run()
    """

    def __init__(
        self,
        settings: Settings,
        control_plane: ControlPlaneClient,
        presence: PresenceQueryClient,
        password_loader: Callable[[str], str] = read_password,
        stop_event: Optional[threading.Event] = None,
    ):
        self.settings = settings
        self.control_plane = control_plane
        self.presence = presence
        self.password_loader = password_loader
        self.stop_event = stop_event or threading.Event()

    def run(self) -> RunReport:
        report = RunReport()
        context_token = run_id_var.set(report.run_id)
        try:
            self._run_stages(report)
        finally:
            run_id_var.reset(context_token)
        return report

    def _run_stages(self, report: RunReport) -> None:
        steps: list[tuple[Stage, Callable[[], None]]] = [
            (Stage.CHECK_RUNNING, self.check_running),
            (Stage.CHECK_CAN_CONNECT, self.check_can_connect),
            (Stage.SETTLE, self.settle),
            (Stage.CHECK_PRESENCE, self.check_presence),
        ]

        for stage, step in steps:
            logger.info(STAGE_ANNOUNCEMENTS[stage])
            started = time.monotonic()
            try:
                step()
            except VerificationError as exc:
                duration = time.monotonic() - started
                report.stages.append(StageResult(stage, False, duration, str(exc)))
                report.failed_stage = stage
                report.error = exc
                report.cancelled = isinstance(exc, VerificationCancelled)
                logger.error(f"Verification failed at {stage.value}: {exc}")
                return
            report.stages.append(StageResult(stage, True, time.monotonic() - started))

        logger.info("Bot deployment verified")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def check_running(self) -> None:
        try:
            with wrap_operation("could not get botId"):
                self.control_plane.get_bot_id()
        except VerificationError as exc:
            raise StageFailure(Stage.CHECK_RUNNING.value, FAILURE_MESSAGES[Stage.CHECK_RUNNING]) from exc

    def check_can_connect(self) -> None:
        try:
            self._provision()
        except VerificationError as exc:
            raise StageFailure(
                Stage.CHECK_CAN_CONNECT.value, FAILURE_MESSAGES[Stage.CHECK_CAN_CONNECT]
            ) from exc

    def settle(self) -> None:
        if self.settings.polls_for_presence:
            logger.info(
                f"Polling presence every {self.settings.presence_poll_interval}s "
                f"for up to {self.settings.presence_timeout}s"
            )
            return
        logger.info(f"Sleeping {self.settings.settle_delay}s so the bot can connect")
        self._wait(self.settings.settle_delay)

    def check_presence(self) -> None:
        try:
            if self.settings.polls_for_presence:
                self._poll_presence()
            else:
                self._query_presence()
        except VerificationCancelled:
            raise
        except VerificationError as exc:
            raise StageFailure(
                Stage.CHECK_PRESENCE.value, FAILURE_MESSAGES[Stage.CHECK_PRESENCE]
            ) from exc

    # ------------------------------------------------------------------
    # Stage internals
    # ------------------------------------------------------------------

    def _provision(self) -> None:
        with wrap_operation("could not get botId"):
            bot_id = self.control_plane.get_bot_id()

        password = self.password_loader(self.settings.password_file)

        with wrap_operation("could not get token"):
            token = self.control_plane.login(
                self.settings.admin_user,
                password,
                bot_id,
                check_status=self.settings.login_checks_status,
            )

        with wrap_operation("could not get instances"):
            instances = self.control_plane.list_instances(token)
        instance = first_instance(instances)
        logger.info(f"Using instance {instance.uuid} ({len(instances)} available)")

        self.control_plane.configure_and_spawn(
            instance.uuid,
            token,
            nickname=self.settings.expected_nickname,
            server_host=self.settings.instance_server_host,
        )

    def _query_presence(self) -> None:
        entries = self.presence.list_clients(
            virtual_server_port=self.settings.voice_server_port,
            virtual_server_id=self.settings.voice_server_id,
        )
        if not find_by_nickname_substring(entries, self.settings.expected_nickname):
            raise BotNotFoundError(
                details={
                    "nickname": self.settings.expected_nickname,
                    "clients_seen": len(entries),
                }
            )
        logger.info(f"Found client matching {self.settings.expected_nickname!r}")

    def _poll_presence(self) -> None:
        deadline = time.monotonic() + self.settings.presence_timeout
        attempt = 0
        while True:
            attempt += 1
            try:
                self._query_presence()
                return
            except VerificationError as exc:
                last_error = exc
                logger.debug(f"Presence attempt {attempt} failed: {exc}")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            self._wait(min(self.settings.presence_poll_interval, remaining))

        raise last_error

    def _wait(self, seconds: float) -> None:
        if self.stop_event.wait(seconds):
            raise VerificationCancelled()
