"""
Live system test fixtures.

Settings come from the same BOTCHECK_* environment as the CLI. The whole
directory is skipped unless BOTCHECK_LIVE=1.
"""

from __future__ import annotations

import os
from typing import Generator

import pytest

from botcheck.core.config import Settings
from botcheck.core.exceptions import VerificationError
from botcheck.services.control_plane import ControlPlaneClient
from botcheck.services.presence import PresenceQueryClient


def pytest_collection_modifyitems(config, items):
    """Skip everything here unless live checks were requested; tag smoke tests."""
    live = os.getenv("BOTCHECK_LIVE", "0") == "1"
    skip_live = pytest.mark.skip(reason="set BOTCHECK_LIVE=1 to run live deployment checks")

    for item in items:
        path = str(item.path)
        if "system_tests" not in path:
            continue
        if "/smoke/" in path:
            item.add_marker(pytest.mark.smoke)
        if not live:
            item.add_marker(skip_live)


@pytest.fixture(scope="session")
def live_settings() -> Settings:
    return Settings()


@pytest.fixture(scope="session")
def control_plane(live_settings: Settings) -> Generator[ControlPlaneClient, None, None]:
    with ControlPlaneClient.from_settings(live_settings) as client:
        yield client


@pytest.fixture(scope="session")
def presence(live_settings: Settings) -> PresenceQueryClient:
    return PresenceQueryClient.from_settings(live_settings)


@pytest.fixture(scope="session")
def control_plane_up(control_plane: ControlPlaneClient) -> str:
    """Fail fast with a readable message when the control plane is down."""
    try:
        return control_plane.get_bot_id()
    except VerificationError as exc:
        pytest.fail(
            f"Control plane not reachable: {exc}\n\n"
            f"Start the bot manager or point BOTCHECK_CONTROL_PLANE_URL at it."
        )
