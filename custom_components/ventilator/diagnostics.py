"""Diagnostics support for Ventilator integration."""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST
from homeassistant.core import HomeAssistant

from .const import CONF_SCAN_INTERVAL, CONF_SPEED_COUNT, DOMAIN
from .coordinator import VentilatorCoordinator


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for the config entry."""
    coordinator: VentilatorCoordinator = hass.data[DOMAIN][entry.entry_id]

    return {
        "config": {
            "host": entry.data.get(CONF_HOST),
            "scan_interval": entry.options.get(CONF_SCAN_INTERVAL),
            "speed_count": entry.options.get(CONF_SPEED_COUNT),
        },
        "desired": coordinator.desired.as_dict(),
        "confirmed": coordinator.confirmed.as_dict(),
        "connection": {
            "available": coordinator.available,
            "in_flight": coordinator.in_flight,
            "failure_count": coordinator.failure_count,
            "last_error": coordinator.last_error,
        },
    }
