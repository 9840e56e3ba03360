"""Coordinator for Ventilator integration."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from homeassistant.helpers.device_registry import DeviceInfo

from .const import (
    BACKOFF_MAX,
    COOLDOWN,
    DEFAULT_SCAN_INTERVAL,
    DEFAULT_SPEED_COUNT,
    DOMAIN,
    MANUFACTURER,
    MODEL,
    TICK_INTERVAL,
)
from .exceptions import (
    VentilatorBusyError,
    VentilatorDecodeError,
    VentilatorTransportError,
    VentilatorValidationError,
)
from .models import DeviceField, DeviceState
from .payload import decode_state

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .api import VentilatorApiClient

_LOGGER = logging.getLogger(__name__)

# Fields compared each tick, highest priority first. Power is not commanded:
# speed 0 turns the fan off and any speed > 0 turns it on.
COMMAND_PRIORITY = (DeviceField.SPEED, DeviceField.SWING)


class VentilatorEntityMixin:
    """Mixin providing common functionality for Ventilator entities."""

    _attr_has_entity_name = True
    _attr_should_poll = False
    coordinator: "VentilatorCoordinator"  # Set by subclass __init__

    async def async_added_to_hass(self) -> None:
        """Register callback when entity is added."""
        self.coordinator.register_callback(self.async_write_ha_state)

    async def async_will_remove_from_hass(self) -> None:
        """Unregister callback when entity is removed."""
        self.coordinator.unregister_callback(self.async_write_ha_state)

    @property
    def device_info(self) -> DeviceInfo:
        """Return device info to link entity to device."""
        return self.coordinator.device_info

    @property
    def available(self) -> bool:
        """Return True if the last round-trip to the fan succeeded."""
        return self.coordinator.available


@dataclass(frozen=True)
class CommandAction:
    """Set one field on the device."""

    field: DeviceField
    value: int

    def __str__(self) -> str:
        return f"Command {self.field}={self.value}"


@dataclass(frozen=True)
class RefreshAction:
    """Fetch the full device status unconditionally."""

    def __str__(self) -> str:
        return "Status refresh"


NextAction = CommandAction | RefreshAction


class VentilatorCoordinator:
    """Reconciles the fan's state with the state requested by callers.

    Two snapshots are kept: ``desired`` (what callers asked for) and
    ``confirmed`` (what the fan last reported). Callers only ever write
    desired state and read confirmed state; neither touches the network.

    Architecture:
        A single asyncio task ticks every ``tick_interval`` seconds. Each tick
        computes a fresh next action from the two snapshots:
        1. CommandAction for the first differing field in COMMAND_PRIORITY
        2. RefreshAction if no sync has happened yet or the last one is older
           than ``scan_interval`` (0 disables the periodic resync)
        3. Nothing, once the fan has caught up

        Only one field is commanded per round-trip; the firmware has no
        multi-field command. Bursts of writes between ticks coalesce into the
        latest desired value.

    Single-flight:
        The in-flight guard is taken together with the action decision and
        released by a timer after each round-trip (COOLDOWN, or a capped
        exponential backoff after consecutive failures). Ticks arriving while
        the guard is held are dropped, not queued. The cool-down timer starts
        when the round-trip ends, so the guard is held for the reply time plus
        the cool-down; the transport timeout bounds the reply time.

    Echo-back:
        The fan replies to every command with its full state. After a command,
        desired state for the commanded field is set to the echoed value, so a
        value the firmware clamps or rejects is not retried forever. A value
        written while the command was in flight is kept instead. After a
        refresh, desired fields without pending intent follow the fan.

    Locking:
        Desired, confirmed and the guard are only touched under ``_lock``,
        which is never held across an await. ``set_desired`` may be called
        from any thread; callbacks always run on the event loop.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        client: VentilatorApiClient,
        entry_id: str,
        scan_interval: int = DEFAULT_SCAN_INTERVAL,
        speed_count: int = DEFAULT_SPEED_COUNT,
        tick_interval: float = TICK_INTERVAL,
    ) -> None:
        """Initialize the coordinator."""
        self._hass = hass
        self._client = client
        self._entry_id = entry_id
        self._scan_interval = scan_interval
        self._speed_count = speed_count
        self._tick_interval = tick_interval

        self._lock = threading.Lock()
        self._desired = DeviceState()
        self._confirmed = DeviceState()
        self._in_flight: bool = False
        self._release_handle: asyncio.TimerHandle | None = None

        self._available: bool = False
        self._failure_count: int = 0
        self._last_error: str | None = None
        self._last_sync: float | None = None  # monotonic time of last success

        self._running: bool = False
        self._tick_task: asyncio.Task[None] | None = None
        self._round_trips: set[asyncio.Task[None]] = set()
        self._callbacks: set[Callable[[], None]] = set()

        _LOGGER.debug(
            "Coordinator initialized for %s (speed_count=%d, scan_interval=%ds)",
            client.host,
            speed_count,
            scan_interval,
        )

    @property
    def device_info(self) -> DeviceInfo:
        """Return device info for entity registry."""
        return DeviceInfo(
            identifiers={(DOMAIN, self._entry_id)},
            name="Ventilator",
            manufacturer=MANUFACTURER,
            model=MODEL,
        )

    @property
    def entry_id(self) -> str:
        """Return the config entry ID."""
        return self._entry_id

    @property
    def confirmed(self) -> DeviceState:
        """Return the last state reported by the fan."""
        with self._lock:
            return self._confirmed

    @property
    def desired(self) -> DeviceState:
        """Return the state requested by callers."""
        with self._lock:
            return self._desired

    @property
    def in_flight(self) -> bool:
        """Return True while the single-flight guard is held."""
        with self._lock:
            return self._in_flight

    @property
    def available(self) -> bool:
        """Return True if the last round-trip succeeded."""
        return self._available

    @property
    def failure_count(self) -> int:
        """Return number of consecutive failed round-trips."""
        return self._failure_count

    @property
    def last_error(self) -> str | None:
        """Return last error message."""
        return self._last_error

    @property
    def speed_count(self) -> int:
        """Return number of speed steps supported by the fan."""
        return self._speed_count

    @property
    def scan_interval(self) -> int:
        """Return the periodic resync interval in seconds."""
        return self._scan_interval

    def register_callback(self, callback: Callable[[], None]) -> None:
        """Register callback to be called on state updates."""
        self._callbacks.add(callback)

    def unregister_callback(self, callback: Callable[[], None]) -> None:
        """Unregister a callback."""
        self._callbacks.discard(callback)

    def _notify_state_update(self) -> None:
        """Notify all registered callbacks of state change."""
        # Iterate over a copy in case a callback modifies the set
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                _LOGGER.exception("Exception in state update callback")

    def update_options(self, scan_interval: int, speed_count: int) -> None:
        """Apply changed options to the running coordinator."""
        self._scan_interval = scan_interval
        self._speed_count = speed_count

    def set_desired(self, field: DeviceField | str, value: int) -> None:
        """Record the state a caller wants the fan to reach.

        This is a pure in-memory write; the next tick sends the command.
        Writing power 0 also requests speed 0. Writing power 1 on its own
        sends nothing, since the firmware derives power from speed.

        Raises:
            VentilatorValidationError: Unknown field or out-of-domain value.
        """
        field = self._validate(field, value)
        with self._lock:
            if field is DeviceField.POWER:
                desired = self._desired.replace(DeviceField.POWER, value)
                if value == 0:
                    desired = desired.replace(DeviceField.SPEED, 0)
            elif field is DeviceField.SPEED:
                desired = self._desired.replace(DeviceField.SPEED, value).replace(
                    DeviceField.POWER, 1 if value > 0 else 0
                )
            else:
                desired = self._desired.replace(field, value)
            changed = desired != self._desired
            self._desired = desired

        if changed:
            _LOGGER.debug("Desired %s=%d (now %s)", field, value, desired)
            if threading.get_ident() == self._hass.loop_thread_id:
                self._notify_state_update()
            else:
                self._hass.loop.call_soon_threadsafe(self._notify_state_update)

    def _validate(self, field: DeviceField | str, value: int) -> DeviceField:
        """Check a write against the field's domain."""
        try:
            field = DeviceField(field)
        except ValueError as ex:
            raise VentilatorValidationError(f"Unknown field: {field!r}") from ex
        if isinstance(value, bool) or not isinstance(value, int):
            raise VentilatorValidationError(
                f"Value for {field} must be an integer, got {value!r}"
            )
        maximum = self._speed_count if field is DeviceField.SPEED else 1
        if not 0 <= value <= maximum:
            raise VentilatorValidationError(
                f"Value for {field} must be between 0 and {maximum}, got {value}"
            )
        return field

    async def async_start(self) -> None:
        """Start the tick loop (called from async_setup_entry).

        The first tick fetches the full status, since nothing has been
        synced yet.
        """
        if self._running:
            return
        _LOGGER.debug("Starting reconciliation for %s", self._client.host)
        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())

    async def async_stop(self) -> None:
        """Stop the tick loop (called from async_unload_entry).

        A round-trip already in flight is left to complete or time out; its
        guard release still fires on its own timer.
        """
        self._running = False

        if self._tick_task:
            self._tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tick_task
            self._tick_task = None

        # Clear callbacks to prevent memory leaks
        self._callbacks.clear()

        _LOGGER.debug("Coordinator stopped cleanly")

    async def async_refresh_now(self) -> None:
        """Fetch the full status now, regardless of any pending diff.

        Fetch failures are logged like those of a tick, not raised.

        Raises:
            VentilatorBusyError: A request is already in flight; nothing sent.
        """
        with self._lock:
            if self._in_flight:
                _LOGGER.debug("Refresh requested while busy, ignoring")
                raise VentilatorBusyError("A request to the fan is already in flight")
            self._in_flight = True
        await self._async_execute(RefreshAction())

    async def async_tick(self) -> None:
        """Run one reconciliation tick, awaiting its round-trip."""
        action = self._claim_next_action()
        if action is not None:
            await self._async_execute(action)

    async def _tick_loop(self) -> None:
        """Tick periodically; round-trips run as separate tasks."""
        while self._running:
            try:
                await asyncio.sleep(self._tick_interval)
                action = self._claim_next_action()
                if action is not None:
                    task = asyncio.create_task(self._async_execute(action))
                    self._round_trips.add(task)
                    task.add_done_callback(self._round_trips.discard)
            except asyncio.CancelledError:
                raise
            except Exception as ex:
                _LOGGER.exception("Error in reconciliation tick: %s", ex)

    def _claim_next_action(self) -> NextAction | None:
        """Decide this tick's action and take the guard for it."""
        with self._lock:
            if self._in_flight:
                _LOGGER.debug("Tick dropped, request in flight")
                return None
            action = self._next_action()
            if action is not None:
                self._in_flight = True
            return action

    def _next_action(self) -> NextAction | None:
        """Compute the next action from the current snapshots (lock held)."""
        for field in COMMAND_PRIORITY:
            wanted = self._desired.get(field)
            if wanted != self._confirmed.get(field):
                return CommandAction(field, wanted)
        if self._last_sync is None:
            return RefreshAction()
        if (
            self._scan_interval
            and time.monotonic() - self._last_sync >= self._scan_interval
        ):
            return RefreshAction()
        return None

    async def _async_execute(self, action: NextAction) -> None:
        """Run one round-trip for an action; the guard must already be held."""
        try:
            if isinstance(action, CommandAction):
                _LOGGER.debug("Sending %s=%d", action.field, action.value)
                raw = await self._client.async_send_command(action.field, action.value)
            else:
                _LOGGER.debug("Refreshing status")
                raw = await self._client.async_get_status()
            state = decode_state(raw)
        except (VentilatorTransportError, VentilatorDecodeError) as ex:
            self._handle_failure(action, ex)
        except Exception as ex:
            _LOGGER.exception("Unexpected error during %s", action)
            self._handle_failure(action, ex)
        else:
            self._handle_success(action, state)
        finally:
            self._schedule_release()

    def _handle_success(self, action: NextAction, state: DeviceState) -> None:
        """Adopt the fan's reply as confirmed state and apply echo-back."""
        with self._lock:
            previous = self._confirmed
            desired = self._desired
            self._confirmed = state

            if isinstance(action, CommandAction):
                echoed = state.get(action.field)
                if desired.get(action.field) != action.value:
                    # Written again while in flight; the newer value wins
                    _LOGGER.debug(
                        "Desired %s changed to %d during command, keeping it",
                        action.field,
                        desired.get(action.field),
                    )
                else:
                    desired = desired.replace(action.field, echoed)
                    if action.field is DeviceField.SPEED:
                        desired = desired.replace(
                            DeviceField.POWER, 1 if echoed > 0 else 0
                        )
                if echoed != action.value:
                    _LOGGER.debug(
                        "Fan answered %s=%d for requested %d, adopting",
                        action.field,
                        echoed,
                        action.value,
                    )
            else:
                # Fields the caller has not changed follow the fan
                for field in DeviceField:
                    if desired.get(field) == previous.get(field):
                        desired = desired.replace(field, state.get(field))

            self._desired = desired
            self._last_sync = time.monotonic()
            recovered = self._failure_count > 0
            self._failure_count = 0
            self._last_error = None
            self._available = True

        if previous != state:
            _LOGGER.debug("State change: %s → %s", previous, state)
        if recovered:
            _LOGGER.info("Connection to fan at %s restored", self._client.host)
        self._notify_state_update()

    def _handle_failure(self, action: NextAction, ex: Exception) -> None:
        """Record a failed round-trip; desired and confirmed stay untouched."""
        with self._lock:
            self._failure_count += 1
            failures = self._failure_count
            self._last_error = str(ex)
            was_available = self._available
            self._available = False

        # Warn once per outage; repeats would flood the log every tick
        if failures == 1:
            _LOGGER.warning("%s failed for %s: %s", action, self._client.host, ex)
        else:
            _LOGGER.debug("%s failed (attempt %d): %s", action, failures, ex)
        if was_available:
            self._notify_state_update()

    def _release_delay(self) -> float:
        """Return how long the guard stays held after a round-trip."""
        if self._failure_count == 0:
            return COOLDOWN
        return min(COOLDOWN * (2 ** (self._failure_count - 1)), BACKOFF_MAX)

    def _schedule_release(self) -> None:
        """Release the guard after the cool-down, independent of the reply."""
        delay = self._release_delay()
        self._release_handle = self._hass.loop.call_later(delay, self._release_guard)

    def _release_guard(self) -> None:
        """Release the single-flight guard."""
        with self._lock:
            self._in_flight = False
            self._release_handle = None
