import logging
from unittest.mock import patch

import pytest

from gsm_watchdog.audio import UAC_INTER_COMMAND_DELAY_S
from gsm_watchdog.executor import CommandResult
from gsm_watchdog.logger import ROOT_LOGGER_NAME, detach_log_sink


# ============
# SAMPLE TEXTS
# ============

VERSION_OK = "Asterisk 20.5.0 built by root @ gateway on a aarch64 running Linux"

DEVICES_TWO = """\
ID           Group State      RSSI Mode Submode Provider Name  Model      Firmware
quectel-0    0     Free       24   0    0       Orange F       EC25       EC25EFAR06A06M4G
quectel-1    0     Free       19   0    0       SFR            EC25       EC25EFAR06A06M4G
"""

STATE_HEALTHY = """\
-------------- Status -------------
  Device                  : {modem_id}
  State                   : Free
  Audio                   : /dev/ttyUSB1
  Data                    : /dev/ttyUSB2
  Voice                   : Yes
  SMS                     : Yes
  RSSI                    : 24, -65 dBm
  GSM Registration Status : Registered, home network
"""

STATE_UNREGISTERED = """\
-------------- Status -------------
  Device                  : {modem_id}
  State                   : Not connected
  RSSI                    : 0, -113 dBm
  GSM Registration Status : Not registered, searching
"""

LSUSB_QUECTEL = "Bus 001 Device 004: ID 2c7c:0125 Quectel Wireless Solutions Co., Ltd. EC25 LTE modem"
LSUSB_SIMCOM = "Bus 001 Device 005: ID 1e0e:9001 Qualcomm / Option SimTech, Incorporated"


# ========
# FIXTURES
# ========

class FakeExecutor:
    """
    Scripted stand-in for the gateway host.

    Responses are keyed by the `asterisk -rx` command text, or by the
    space-joined argv for anything else. Values may be a CommandResult, a
    plain string (success), or a callable returning either. Unscripted
    commands fail like a missing binary would.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    @staticmethod
    def key(args):
        args = list(args)
        if args[:2] == ["asterisk", "-rx"]:
            return args[2]
        return " ".join(args)

    def set(self, command, output="", error=None, timed_out=False):
        if error is not None or timed_out:
            error = error or "timeout"
            self.responses[command] = CommandResult(f"Error: {error}", error, timed_out)
        else:
            self.responses[command] = CommandResult(output)

    def run(self, args, timeout=None):
        key = self.key(args)
        self.calls.append(key)

        response = self.responses.get(key)
        if callable(response):
            response = response()
        if response is None:
            return CommandResult("Error: command not found", "command not found")
        if isinstance(response, str):
            return CommandResult(response)
        return response

    def count(self, command):
        return sum(1 for call in self.calls if call == command)

    def called_with_prefix(self, prefix):
        return [call for call in self.calls if call.startswith(prefix)]


class FakeProvider:
    """Tunnel provider answering a settable status payload."""

    def __init__(self, status=None):
        self.status = status or {"enabled": True, "configured": True, "connected": True}
        self.reconnects = 0
        self.error = None

    def get_status(self):
        if self.error is not None:
            raise self.error
        return self.status

    def reconnect(self):
        self.reconnects += 1


def device_listing(modems):
    header = "ID           Group State      RSSI Mode Submode Provider Name  Model"
    rows = [f"{m:<12} 0     Free       24   0    0       Orange F       EC25" for m in modems]
    return "\n".join([header, *rows])


def healthy_gateway(modems=("quectel-0", "quectel-1")):
    """A FakeExecutor scripted for a fully healthy EC25 gateway."""
    executor = FakeExecutor()
    executor.set("core show version", VERSION_OK)
    executor.set("quectel show devices", device_listing(modems))
    executor.set("lsusb", LSUSB_QUECTEL)
    executor.set("systemctl restart asterisk", "")
    executor.set("ip link show wg-relay", "5: wg-relay: <POINTOPOINT,NOARP,UP,LOWER_UP> mtu 1420")

    for modem_id in modems:
        executor.set(
            f"quectel show device state {modem_id}",
            STATE_HEALTHY.format(modem_id=modem_id),
        )
        executor.set(f"quectel restart now {modem_id}", f"[{modem_id}] restart scheduled")
        for command in ("AT+QAUDMOD=3", "AT+QPCMV=1,2", "AT+QEEC=1,1,1024"):
            executor.set(f"quectel cmd {modem_id} {command}", "OK")
        executor.set(f"quectel cmd {modem_id} AT+QAUDMOD?", "+QAUDMOD: 3\nOK")

    return executor


def fail_modem(executor, modem_id):
    executor.set(
        f"quectel show device state {modem_id}",
        STATE_UNREGISTERED.format(modem_id=modem_id),
    )


def heal_modem(executor, modem_id):
    executor.set(
        f"quectel show device state {modem_id}",
        STATE_HEALTHY.format(modem_id=modem_id),
    )


@pytest.fixture(autouse=True)
def no_sleep():
    """
    Recovery settle delays and AT pacing never actually block in tests.

    Both modules call the same `time.sleep`, so one mock records every
    delay in order; `settle_delays` and `pacing_delays` tell them apart.
    """
    with patch("gsm_watchdog.recovery.time.sleep", return_value=None) as sleep:
        yield sleep


def pacing_delays(sleep):
    return [c.args[0] for c in sleep.call_args_list if c.args[0] == UAC_INTER_COMMAND_DELAY_S]


def settle_delays(sleep):
    return [c.args[0] for c in sleep.call_args_list if c.args[0] != UAC_INTER_COMMAND_DELAY_S]


@pytest.fixture
def gateway():
    return healthy_gateway()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """A log sink attached by one test must not leak into the next"""
    yield
    detach_log_sink()
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.NOTSET)
