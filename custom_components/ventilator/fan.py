"""Fan platform for Ventilator integration."""

from __future__ import annotations

import contextlib
import logging
import math
from typing import Any

from homeassistant.components.fan import FanEntity, FanEntityFeature
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util.percentage import (
    percentage_to_ranged_value,
    ranged_value_to_percentage,
)

from .const import DOMAIN
from .coordinator import VentilatorCoordinator, VentilatorEntityMixin
from .exceptions import VentilatorBusyError
from .models import DeviceField

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Ventilator fan entities."""
    coordinator: VentilatorCoordinator = hass.data[DOMAIN][entry.entry_id]
    _LOGGER.debug("Setting up fan entities for %s", entry.entry_id)
    async_add_entities([VentilatorFan(coordinator)])


class VentilatorFan(VentilatorEntityMixin, FanEntity):
    """Fan entity for the Ventilator.

    Speed Scale Conversion:
        - Home Assistant uses 0-100 (percentage)
        - Fan uses 0-N discrete steps (N = speed_count, 4 by default)

        HA → Fan: ceil of the ranged value  (4 steps: 1-25% → 1, 100% → 4)
        Fan → HA: step / N * 100  (4 steps: 1 → 25%)

    State shown is always the confirmed state reported by the fan. Writes only
    record desired state; the coordinator sends them on its next tick.
    """

    _attr_name = None
    _attr_supported_features = (
        FanEntityFeature.SET_SPEED
        | FanEntityFeature.OSCILLATE
        | FanEntityFeature.TURN_ON
        | FanEntityFeature.TURN_OFF
    )

    def __init__(self, coordinator: VentilatorCoordinator) -> None:
        """Initialize the fan."""
        self.coordinator = coordinator
        self._attr_unique_id = f"{coordinator.entry_id}_fan"

    @property
    def _speed_range(self) -> tuple[int, int]:
        return (1, self.coordinator.speed_count)

    @property
    def speed_count(self) -> int:
        """Return the number of speed steps."""
        return self.coordinator.speed_count

    @property
    def is_on(self) -> bool:
        """Return True if fan is on."""
        return self.coordinator.confirmed.speed > 0

    @property
    def percentage(self) -> int:
        """Return the current speed percentage."""
        speed = self.coordinator.confirmed.speed
        if speed == 0:
            return 0
        # Firmware may report more steps than configured
        speed = min(speed, self.coordinator.speed_count)
        return ranged_value_to_percentage(self._speed_range, speed)

    @property
    def oscillating(self) -> bool:
        """Return True if the fan is oscillating."""
        return self.coordinator.confirmed.swing == 1

    async def async_update(self) -> None:
        """Fetch the full status on demand (homeassistant.update_entity)."""
        # A request already in flight will report the state anyway
        with contextlib.suppress(VentilatorBusyError):
            await self.coordinator.async_refresh_now()

    async def async_turn_on(
        self,
        percentage: int | None = None,
        preset_mode: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Turn on the fan."""
        if percentage is not None:
            _LOGGER.debug("Fan turn_on with percentage=%d", percentage)
            await self.async_set_percentage(percentage)
            return
        # Plain turn on keeps a pending speed, otherwise starts at the lowest step
        speed = min(self.coordinator.desired.speed, self.coordinator.speed_count) or 1
        _LOGGER.debug("Fan turn_on (speed=%d)", speed)
        self.coordinator.set_desired(DeviceField.SPEED, speed)

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Turn off the fan."""
        _LOGGER.debug("Fan turn_off")
        self.coordinator.set_desired(DeviceField.POWER, 0)

    async def async_set_percentage(self, percentage: int) -> None:
        """Set the fan speed percentage."""
        speed = 0
        if percentage > 0:
            speed = math.ceil(percentage_to_ranged_value(self._speed_range, percentage))
        _LOGGER.debug("Fan set_percentage=%d (speed=%d)", percentage, speed)
        self.coordinator.set_desired(DeviceField.SPEED, speed)

    async def async_oscillate(self, oscillating: bool) -> None:
        """Enable or disable oscillation."""
        _LOGGER.debug("Fan oscillate=%s", oscillating)
        self.coordinator.set_desired(DeviceField.SWING, 1 if oscillating else 0)
