"""Pytest fixtures for Ventilator tests."""

from __future__ import annotations

import json
import threading
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.ventilator.coordinator import VentilatorCoordinator
from custom_components.ventilator.models import DeviceState

HOST = "192.168.1.50"


def status_body(power: int, speed: int, swing: int) -> str:
    """Return a well-formed status body as the firmware would send it."""
    return json.dumps({"power": power, "speed": speed, "swing": swing})


def seed_state(
    coordinator: VentilatorCoordinator,
    confirmed: DeviceState,
    desired: DeviceState | None = None,
) -> None:
    """Put the coordinator in a synced state without a round-trip."""
    coordinator._confirmed = confirmed
    coordinator._desired = desired if desired is not None else confirmed
    coordinator._last_sync = time.monotonic()
    coordinator._available = True


def fire_release(coordinator: VentilatorCoordinator) -> float:
    """Run the last scheduled guard release and return its delay."""
    delay, release = coordinator._hass.loop.call_later.call_args.args
    release()
    return delay


@pytest.fixture
def mock_hass() -> MagicMock:
    """Return a mock Home Assistant instance."""
    hass = MagicMock()
    hass.loop = MagicMock()
    hass.loop_thread_id = threading.get_ident()
    return hass


@pytest.fixture
def mock_client() -> MagicMock:
    """Return a mock VentilatorApiClient."""
    client = MagicMock()
    client.host = HOST
    client.async_get_status = AsyncMock(return_value=status_body(0, 0, 0))
    client.async_send_command = AsyncMock(return_value=status_body(0, 0, 0))
    return client


@pytest.fixture
def coordinator(mock_hass: MagicMock, mock_client: MagicMock) -> VentilatorCoordinator:
    """Return a VentilatorCoordinator instance for testing.

    Periodic resync is disabled so only diffs and the initial sync cause
    requests.
    """
    return VentilatorCoordinator(
        hass=mock_hass,
        client=mock_client,
        entry_id="test_entry_id",
        scan_interval=0,
        speed_count=4,
    )
