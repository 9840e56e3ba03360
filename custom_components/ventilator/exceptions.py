"""Exceptions for the Ventilator integration."""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class VentilatorError(HomeAssistantError):
    """Base error for the Ventilator integration."""


class VentilatorTransportError(VentilatorError):
    """Device could not be reached or answered with an error status."""


class VentilatorConnectionError(VentilatorTransportError):
    """Connection to the device failed (refused, reset, DNS)."""


class VentilatorTimeoutError(VentilatorTransportError):
    """Device did not answer within the request timeout."""


class VentilatorDeviceError(VentilatorTransportError):
    """Device answered with a non-2xx status.

    The firmware reports failures as HTTP 400 with an ``errmsg`` field in the
    body; that message is kept on the exception when present.
    """

    def __init__(self, status: int, message: str | None = None) -> None:
        """Initialize the error."""
        self.status = status
        self.errmsg = message
        super().__init__(
            f"Device returned HTTP {status}: {message}"
            if message
            else f"Device returned HTTP {status}"
        )


class VentilatorDecodeError(VentilatorError):
    """Device response could not be parsed, even after sanitizing."""


class VentilatorBusyError(VentilatorError):
    """A request is already in flight."""


class VentilatorValidationError(VentilatorError, ValueError):
    """Desired value is outside the field's domain."""
