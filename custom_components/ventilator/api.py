"""HTTP transport for the Ventilator firmware."""

from __future__ import annotations

import logging

import aiohttp

from .const import COMMAND_PATH, COMMAND_TIMEOUT, STATUS_PATH, STATUS_TIMEOUT
from .exceptions import (
    VentilatorConnectionError,
    VentilatorDeviceError,
    VentilatorTimeoutError,
)
from .models import DeviceField
from .payload import extract_error_message

_LOGGER = logging.getLogger(__name__)


class VentilatorApiClient:
    """Stateless client for the fan's HTTP control channel.

    Endpoints:
        GET {base}/getStatus              full status query
        GET {base}/?act={field}&arg1={v}  set one field, replies with full status

    Both reply with the full state as (possibly malformed) JSON; see payload.py.
    An HTTP 400 carries an ``errmsg`` field instead.
    """

    def __init__(self, session: aiohttp.ClientSession, host: str) -> None:
        """Initialize the client."""
        self._session = session
        self._host = host
        self._base_url = f"http://{host}"

    @property
    def host(self) -> str:
        """Return the device host."""
        return self._host

    async def async_get_status(self) -> str:
        """Query the full device status and return the raw body."""
        return await self._request(STATUS_PATH, None, STATUS_TIMEOUT)

    async def async_send_command(self, field: DeviceField, value: int) -> str:
        """Set a single field on the device and return the raw body."""
        params = {"act": field.value, "arg1": str(value)}
        return await self._request(COMMAND_PATH, params, COMMAND_TIMEOUT)

    async def _request(
        self, path: str, params: dict[str, str] | None, timeout: float
    ) -> str:
        """Issue a GET and return the body, mapping failures to our errors."""
        url = f"{self._base_url}{path}"
        try:
            async with self._session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                body = (await resp.read()).decode("utf-8", errors="replace")
                status = resp.status
                reason = resp.reason
        except TimeoutError as ex:
            raise VentilatorTimeoutError(
                f"Timeout after {timeout}s requesting {url}"
            ) from ex
        except aiohttp.ClientError as ex:
            raise VentilatorConnectionError(f"Error requesting {url}: {ex}") from ex

        _LOGGER.debug("GET %s params=%s -> %s %r", url, params, status, body)

        if not 200 <= status < 300:
            raise VentilatorDeviceError(status, extract_error_message(body) or reason)
        return body
