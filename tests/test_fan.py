"""Tests for Ventilator fan entity."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from custom_components.ventilator.coordinator import VentilatorCoordinator
from custom_components.ventilator.fan import VentilatorFan
from custom_components.ventilator.models import DeviceState

from conftest import seed_state, status_body


@pytest.fixture
def fan(coordinator: VentilatorCoordinator) -> VentilatorFan:
    """Return a fan entity bound to the test coordinator."""
    return VentilatorFan(coordinator)


class TestFanState:
    """Tests for state read from confirmed state."""

    def test_unique_id(self, fan: VentilatorFan) -> None:
        """Test unique ID is derived from the entry."""
        assert fan.unique_id == "test_entry_id_fan"

    def test_off(self, fan: VentilatorFan) -> None:
        """Test default state reads as off."""
        assert fan.is_on is False
        assert fan.percentage == 0
        assert fan.oscillating is False

    @pytest.mark.parametrize(
        ("speed", "percentage"), [(1, 25), (2, 50), (3, 75), (4, 100)]
    )
    def test_percentage(
        self,
        fan: VentilatorFan,
        coordinator: VentilatorCoordinator,
        speed: int,
        percentage: int,
    ) -> None:
        """Test speed steps map to 25% increments."""
        seed_state(coordinator, DeviceState(1, speed, 1))
        assert fan.is_on is True
        assert fan.percentage == percentage
        assert fan.oscillating is True

    def test_shows_confirmed_not_desired(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test a pending write is not shown before the fan confirms it."""
        seed_state(coordinator, DeviceState(0, 0, 0))
        coordinator.set_desired("speed", 3)
        assert fan.is_on is False
        assert fan.percentage == 0

    def test_speed_count_follows_options(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test speed_count reflects the coordinator option."""
        assert fan.speed_count == 4
        coordinator.update_options(scan_interval=0, speed_count=8)
        assert fan.speed_count == 8

    def test_available(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test availability follows the last round-trip."""
        assert fan.available is False
        seed_state(coordinator, DeviceState())
        assert fan.available is True


class TestFanCommands:
    """Tests for writes going to desired state."""

    @pytest.mark.parametrize(
        ("percentage", "speed"), [(0, 0), (10, 1), (25, 1), (30, 2), (75, 3), (100, 4)]
    )
    async def test_set_percentage(
        self,
        fan: VentilatorFan,
        coordinator: VentilatorCoordinator,
        percentage: int,
        speed: int,
    ) -> None:
        """Test percentages round up to the next speed step."""
        await fan.async_set_percentage(percentage)
        assert coordinator.desired.speed == speed

    async def test_turn_on_default_speed(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test plain turn on starts at the lowest step."""
        await fan.async_turn_on()
        assert coordinator.desired == DeviceState(1, 1, 0)

    async def test_turn_on_keeps_pending_speed(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test plain turn on keeps a speed already requested."""
        coordinator.set_desired("speed", 3)
        await fan.async_turn_on()
        assert coordinator.desired.speed == 3

    async def test_turn_on_with_percentage(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test turn on with a percentage sets that speed."""
        await fan.async_turn_on(percentage=50)
        assert coordinator.desired.speed == 2

    async def test_turn_off(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test turn off requests speed 0."""
        seed_state(coordinator, DeviceState(1, 3, 1))
        await fan.async_turn_off()
        assert coordinator.desired == DeviceState(0, 0, 1)

    async def test_oscillate(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test oscillation maps to swing."""
        await fan.async_oscillate(True)
        assert coordinator.desired.swing == 1
        await fan.async_oscillate(False)
        assert coordinator.desired.swing == 0

    async def test_turn_on_clamps_pending_speed(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test plain turn on stays within a lowered speed count."""
        seed_state(coordinator, DeviceState(1, 4, 0))
        coordinator.update_options(scan_interval=0, speed_count=2)
        await fan.async_turn_on()
        assert coordinator.desired.speed == 2


class TestFanClamping:
    """Tests for speeds reported above the configured step count."""

    def test_percentage_capped(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test a reported speed beyond speed_count reads as 100%."""
        seed_state(coordinator, DeviceState(1, 5, 0))
        assert fan.percentage == 100

    def test_percentage_capped_after_lowering_steps(
        self, fan: VentilatorFan, coordinator: VentilatorCoordinator
    ) -> None:
        """Test lowering speed_count below the current speed reads as 100%."""
        seed_state(coordinator, DeviceState(1, 4, 0))
        coordinator.update_options(scan_interval=0, speed_count=3)
        assert fan.percentage == 100


class TestFanUpdate:
    """Tests for on-demand refresh through update_entity."""

    async def test_update_refreshes_status(
        self,
        fan: VentilatorFan,
        coordinator: VentilatorCoordinator,
        mock_client: MagicMock,
    ) -> None:
        """Test an update fetches the full status when idle."""
        seed_state(coordinator, DeviceState(1, 2, 0))
        mock_client.async_get_status.return_value = status_body(1, 3, 1)

        await fan.async_update()

        mock_client.async_get_status.assert_awaited_once()
        assert coordinator.confirmed == DeviceState(1, 3, 1)
        assert fan.percentage == 75
        assert fan.oscillating is True

    async def test_update_while_busy_is_noop(
        self,
        fan: VentilatorFan,
        coordinator: VentilatorCoordinator,
        mock_client: MagicMock,
    ) -> None:
        """Test an update during a round-trip sends nothing and does not raise."""
        seed_state(coordinator, DeviceState(1, 2, 0))
        coordinator._in_flight = True

        await fan.async_update()

        mock_client.async_get_status.assert_not_called()
        assert coordinator.confirmed == DeviceState(1, 2, 0)
