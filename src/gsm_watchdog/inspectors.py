# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import re
from typing import Iterable

# ─── Project imports ───
from .executor import ERROR_PREFIX, CommandResult, Executor
from .logger import get_logger
from .models import ModemHealth, ModemState


# --- Asterisk CLI vocabulary ---
ASTERISK_BIN = "asterisk"
PRODUCT_MARKER = "Asterisk"
DEVICE_ID_PATTERN = re.compile(r"^\s*(quectel-\S+)")
RSSI_PATTERN = re.compile(r"(\d+)")
NOT_FOUND_MARKER = "No such device"

logger = get_logger("inspectors")


def asterisk_cli(command: str) -> list[str]:
    """argv for one `asterisk -rx` administrative command."""
    return [ASTERISK_BIN, "-rx", command]


# ============================================================
# Pure parsers (text in, facts out)
# ============================================================

def asterisk_is_up(output: str) -> bool:
    """`core show version` succeeded and names the product."""
    return not output.startswith(ERROR_PREFIX) and PRODUCT_MARKER in output


def parse_device_ids(output: str) -> list[str]:
    """
    Extract modem ids from `quectel show devices`, in listing order.

    Header lines and anything not matching the device-id pattern are ignored.
    """
    if output.startswith(ERROR_PREFIX):
        return []

    ids = []
    for line in output.splitlines():
        match = DEVICE_ID_PATTERN.match(line)
        if match and match.group(1) not in ids:
            ids.append(match.group(1))
    return ids


def parse_modem_state(modem_id: str, output: str) -> ModemHealth:
    """
    Build a ModemHealth from `quectel show device state <id>` output.

    Missing or unparseable fields keep their least favorable default
    (Unknown, unregistered, rssi=0), so a malformed response reads as
    unhealthy.
    """
    if output.startswith(ERROR_PREFIX):
        return ModemHealth(id=modem_id, error=output[len(ERROR_PREFIX):].strip())

    if NOT_FOUND_MARKER in output:
        return ModemHealth(
            id=modem_id,
            state="Not found",
            error="Device not found in Asterisk",
        )

    state: ModemState | str = ModemState.UNKNOWN
    registered = False
    rssi = 0

    for line in output.splitlines():
        key, sep, value = line.strip().partition(":")
        if not sep:
            continue

        key = key.strip()
        value = value.strip()

        match key:
            case "State":
                state = ModemState.parse(value)
            case "GSM Registration Status":
                registered = "Registered" in value
            case "RSSI":
                rssi_match = RSSI_PATTERN.search(value)
                rssi = int(rssi_match.group(1)) if rssi_match else 0

    return ModemHealth(id=modem_id, state=state, registered=registered, rssi=rssi)


# ============================================================
# Inspectors (issue commands, delegate to parsers)
# ============================================================

class AsteriskInspector:
    """Liveness probe for the telephony engine."""

    def __init__(self, executor: Executor):
        self.executor = executor

    def check(self) -> bool:
        result = self.executor.run(asterisk_cli("core show version"))
        return asterisk_is_up(result.output)


class ModemInspector:
    """
    Read-only view of the modems behind chan_quectel.

    Never mutates failure trackers; every call is a fresh read.
    """

    def __init__(self, executor: Executor, static_modems: Iterable[str] = ()):
        self.executor = executor
        self.static_modems = tuple(static_modems)

    def list_modems(self) -> list[str]:
        """
        Live enumeration, falling back to the configured list when Asterisk
        reports no devices.
        """
        result = self.executor.run(asterisk_cli("quectel show devices"))
        modems = parse_device_ids(result.output)

        if not modems:
            if self.static_modems:
                logger.debug(
                    f"No modems enumerated; using configured list {list(self.static_modems)}"
                )
            return list(self.static_modems)

        return modems

    def inspect(self, modem_id: str) -> ModemHealth:
        result = self.executor.run(
            asterisk_cli(f"quectel show device state {modem_id}")
        )
        return parse_modem_state(modem_id, result.output)

    def send_at(self, modem_id: str, command: str) -> CommandResult:
        """Send one AT command through chan_quectel."""
        return self.executor.run(asterisk_cli(f"quectel cmd {modem_id} {command}"))
