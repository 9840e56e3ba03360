"""Sanitizing and decoding of Ventilator firmware responses.

The firmware builds its JSON by hand and is known to emit backslash escapes
where none belong (``{\\"power\\":1,...}``) as well as stray control bytes
between tokens. Bodies are repaired before they are handed to ``json``:

    1. Each spurious escape is replaced by its intended literal.
    2. Every code point in U+0000-U+0019 is stripped. This also drops the
       whitespace literals produced by step 1.
    3. The cleaned text is parsed.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .exceptions import VentilatorDecodeError
from .models import DeviceField, DeviceState

_LOGGER = logging.getLogger(__name__)

_SPURIOUS_ESCAPE = re.compile(r"\\([nrtbf'\"&])")
_ESCAPE_LITERALS = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "'": "'",
    '"': '"',
    "&": "&",
}
# Upper bound is U+0019, not U+001F; the firmware never emits U+001A-U+001F
_CONTROL_CHARS = re.compile(r"[\x00-\x19]+")

STATE_FIELDS = (DeviceField.POWER, DeviceField.SPEED, DeviceField.SWING)


def sanitize(raw: str | bytes) -> str:
    """Repair spurious escapes and strip control bytes from a response body."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = _SPURIOUS_ESCAPE.sub(lambda m: _ESCAPE_LITERALS[m.group(1)], raw)
    return _CONTROL_CHARS.sub("", text)


def _load(raw: str | bytes) -> Any:
    """Sanitize and parse a body, raising VentilatorDecodeError on failure."""
    text = sanitize(raw)
    try:
        return json.loads(text)
    except ValueError as ex:
        raise VentilatorDecodeError(f"Invalid response body: {text!r}") from ex


def decode_state(raw: str | bytes) -> DeviceState:
    """Decode a status or command response into a DeviceState.

    Raises:
        VentilatorDecodeError: The body is not a JSON object carrying integer
            ``power``, ``speed`` and ``swing`` fields.
    """
    data = _load(raw)
    if not isinstance(data, dict):
        raise VentilatorDecodeError(f"Expected JSON object, got: {data!r}")

    values: dict[str, int] = {}
    for field in STATE_FIELDS:
        value = data.get(field.value)
        # bool is a subclass of int but never valid here
        if isinstance(value, bool) or not isinstance(value, int):
            raise VentilatorDecodeError(
                f"Missing or non-integer field '{field}' in response: {data!r}"
            )
        values[field.value] = value

    return DeviceState(**values)


def extract_error_message(raw: str | bytes) -> str | None:
    """Return the device's ``errmsg`` from an error response, if any."""
    try:
        data = _load(raw)
    except VentilatorDecodeError:
        _LOGGER.debug("Error response body is not parseable: %r", raw)
        return None
    if not isinstance(data, dict) or data.get("errmsg") is None:
        return None
    return str(data["errmsg"])
