"""Data model for the Ventilator integration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DeviceField(StrEnum):
    """Fields of the fan state.

    The value is the name used by the firmware, both as the ``act`` query
    parameter of a command and as the key in the JSON status body.
    """

    POWER = "power"
    SPEED = "speed"
    SWING = "swing"


@dataclass(frozen=True)
class DeviceState:
    """State of the fan as a frozen snapshot.

    Attributes:
        power: 0 = off, 1 = on. Derived from speed by the firmware.
        speed: 0 = off, 1..N = discrete speed steps.
        swing: 0 = oscillation disabled, 1 = enabled.
    """

    power: int = 0
    speed: int = 0
    swing: int = 0

    def get(self, field: DeviceField) -> int:
        """Return the value of a single field."""
        if field is DeviceField.POWER:
            return self.power
        if field is DeviceField.SPEED:
            return self.speed
        if field is DeviceField.SWING:
            return self.swing
        raise ValueError(f"Unknown field: {field}")

    def replace(self, field: DeviceField, value: int) -> DeviceState:
        """Return a copy with a single field changed."""
        if field is DeviceField.POWER:
            return DeviceState(value, self.speed, self.swing)
        if field is DeviceField.SPEED:
            return DeviceState(self.power, value, self.swing)
        if field is DeviceField.SWING:
            return DeviceState(self.power, self.speed, value)
        raise ValueError(f"Unknown field: {field}")

    def as_dict(self) -> dict[str, int]:
        """Return the state as a plain mapping."""
        return {
            DeviceField.POWER.value: self.power,
            DeviceField.SPEED.value: self.speed,
            DeviceField.SWING.value: self.swing,
        }
