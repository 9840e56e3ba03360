"""Config flow for Ventilator integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.const import CONF_HOST
from homeassistant.core import callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .api import VentilatorApiClient
from .const import (
    CONF_SCAN_INTERVAL,
    CONF_SPEED_COUNT,
    DEFAULT_SCAN_INTERVAL,
    DEFAULT_SPEED_COUNT,
    DOMAIN,
    MAX_SPEED_COUNT,
)
from .exceptions import VentilatorDecodeError, VentilatorTransportError
from .payload import decode_state

_LOGGER = logging.getLogger(__name__)


class VentilatorConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle config flow for Ventilator."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle user input."""
        errors: dict[str, str] = {}

        if user_input is not None:
            host = user_input[CONF_HOST]
            _LOGGER.debug("Testing connection to fan at %s", host)

            # Validate the fan answers with a decodable status before accepting
            try:
                await self._test_connection(host)
            except VentilatorTransportError as ex:
                _LOGGER.warning("Connection test failed for %s: %s", host, ex)
                errors["base"] = "cannot_connect"
            except VentilatorDecodeError as ex:
                _LOGGER.warning("Fan at %s sent an invalid status: %s", host, ex)
                errors["base"] = "invalid_response"
            else:
                _LOGGER.info("Connection test successful for %s", host)
                # Create unique ID from IP to prevent duplicates
                await self.async_set_unique_id(host)
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=f"Ventilator ({host})",
                    data=user_input,
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema({vol.Required(CONF_HOST): str}),
            errors=errors,
        )

    async def _test_connection(self, host: str) -> None:
        """Fetch and decode one status from the fan."""
        client = VentilatorApiClient(async_get_clientsession(self.hass), host)
        decode_state(await client.async_get_status())

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        """Get the options flow for this handler."""
        return VentilatorOptionsFlow()


class VentilatorOptionsFlow(OptionsFlow):
    """Handle options for Ventilator."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Manage options."""
        if user_input is not None:
            _LOGGER.debug("Options flow saving: %s", user_input)
            return self.async_create_entry(title="", data=user_input)

        options = self.config_entry.options
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {
                    vol.Optional(
                        CONF_SCAN_INTERVAL,
                        default=options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL),
                    ): vol.In(
                        {
                            0: "Disabled",
                            30: "30 seconds",
                            60: "1 minute",
                            300: "5 minutes",
                            900: "15 minutes",
                        }
                    ),
                    vol.Optional(
                        CONF_SPEED_COUNT,
                        default=options.get(CONF_SPEED_COUNT, DEFAULT_SPEED_COUNT),
                    ): vol.All(vol.Coerce(int), vol.Range(min=1, max=MAX_SPEED_COUNT)),
                }
            ),
        )
