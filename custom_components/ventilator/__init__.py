"""Ventilator integration for Home Assistant."""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST, Platform
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .api import VentilatorApiClient
from .const import (
    CONF_SCAN_INTERVAL,
    CONF_SPEED_COUNT,
    DEFAULT_SCAN_INTERVAL,
    DEFAULT_SPEED_COUNT,
    DOMAIN,
)
from .coordinator import VentilatorCoordinator

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.FAN]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Ventilator from a config entry."""
    host = entry.data[CONF_HOST]
    scan_interval = entry.options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL)
    speed_count = entry.options.get(CONF_SPEED_COUNT, DEFAULT_SPEED_COUNT)

    _LOGGER.debug(
        "Setting up Ventilator integration for %s (scan_interval=%ds, speed_count=%d)",
        host,
        scan_interval,
        speed_count,
    )

    client = VentilatorApiClient(async_get_clientsession(hass), host)
    coordinator = VentilatorCoordinator(
        hass,
        client,
        entry.entry_id,
        scan_interval=scan_interval,
        speed_count=speed_count,
    )

    # Start reconciliation (non-blocking - first tick fetches status)
    await coordinator.async_start()

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Register options update listener
    entry.async_on_unload(entry.add_update_listener(async_options_updated))

    _LOGGER.info("Ventilator integration setup complete for %s", host)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    _LOGGER.debug("Unloading Ventilator integration for %s", entry.data[CONF_HOST])

    # Unload platforms FIRST (entities may still be using coordinator)
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinator: VentilatorCoordinator = hass.data[DOMAIN].pop(entry.entry_id)
        await coordinator.async_stop()
        _LOGGER.info("Ventilator integration unloaded for %s", entry.data[CONF_HOST])
    else:
        _LOGGER.warning(
            "Failed to unload platforms for Ventilator %s", entry.data[CONF_HOST]
        )
    return unload_ok


async def async_options_updated(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update (scan interval, speed count)."""
    scan_interval = entry.options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL)
    speed_count = entry.options.get(CONF_SPEED_COUNT, DEFAULT_SPEED_COUNT)
    _LOGGER.info(
        "Ventilator options updated: scan_interval=%ds, speed_count=%d for %s",
        scan_interval,
        speed_count,
        entry.data[CONF_HOST],
    )
    coordinator: VentilatorCoordinator = hass.data[DOMAIN][entry.entry_id]
    coordinator.update_options(scan_interval, speed_count)
