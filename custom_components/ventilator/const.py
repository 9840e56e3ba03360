"""Constants for the Ventilator integration."""

from __future__ import annotations

DOMAIN = "ventilator"

MANUFACTURER = "LoMaTi"
MODEL = "Arduino Ventilator"

# HTTP endpoints exposed by the fan firmware
STATUS_PATH = "/getStatus"
COMMAND_PATH = "/"

# Per-request timeouts (seconds); the status query is lighter than a command
STATUS_TIMEOUT = 2.0
COMMAND_TIMEOUT = 3.0

# Reconciliation timing
# A tick diffs desired against confirmed state; a dropped tick is not queued.
TICK_INTERVAL = 1.0  # seconds between reconciliation ticks
COOLDOWN = 1.0  # seconds the in-flight guard stays held after a round-trip

# Guard release backoff after consecutive failures
# Formula: min(COOLDOWN * 2^(failures - 1), BACKOFF_MAX)
# Sequence: 1s, 2s, 4s, 8s, 16s, 32s, 60s (max)
BACKOFF_MAX = 60.0

# Speed steps supported by the firmware (0 = off, 1..N)
DEFAULT_SPEED_COUNT = 4
MAX_SPEED_COUNT = 10

# Periodic full status resync while idle (0 disables it)
DEFAULT_SCAN_INTERVAL = 300  # 5 minutes

# Configuration keys
CONF_SCAN_INTERVAL = "scan_interval"
CONF_SPEED_COUNT = "speed_count"
