import pytest

from gsm_watchdog.inspectors import (
    AsteriskInspector,
    ModemInspector,
    asterisk_is_up,
    parse_device_ids,
    parse_modem_state,
)
from gsm_watchdog.models import ModemState

from conftest import (
    DEVICES_TWO,
    STATE_HEALTHY,
    STATE_UNREGISTERED,
    VERSION_OK,
    FakeExecutor,
)


# ============================
# TEST GROUP: Asterisk Liveness
# ============================
# Function: asterisk_is_up()
# --------------------------
@pytest.mark.parametrize(
    "output, expected_result",
    [
        # ✅ Version banner
        (VERSION_OK, True),

        # ❌ Executor failure sentinel, even if it mentions Asterisk
        ("Error: Unable to connect to remote asterisk (does /var/run/asterisk/asterisk.ctl exist?)", False),

        # ❌ Output without the product marker
        ("No such command 'core show version'", False),

        # ❌ Empty output
        ("", False),
    ],
)
def test_asterisk_is_up(output, expected_result):
    """Healthy only on a version banner without an execution error"""
    assert asterisk_is_up(output) is expected_result


def test_asterisk_inspector_issues_version_command():
    executor = FakeExecutor()
    executor.set("core show version", VERSION_OK)

    assert AsteriskInspector(executor).check() is True
    assert executor.calls == ["core show version"]


# ==============================
# TEST GROUP: Device Enumeration
# ==============================
# Function: parse_device_ids()
# ----------------------------
def test_parse_device_ids_in_listing_order():
    assert parse_device_ids(DEVICES_TWO) == ["quectel-0", "quectel-1"]


@pytest.mark.parametrize(
    "output",
    [
        "",
        "Error: Command timed out after 10s",
        "ID           Group State      RSSI Mode Submode Provider Name  Model",
        "modem-0    0     Free       24",
    ],
)
def test_parse_device_ids_no_devices(output):
    """Headers, errors and foreign ids never produce a modem"""
    assert parse_device_ids(output) == []


def test_list_modems_falls_back_to_configured_list():
    """Live enumeration yields nothing → static modem list"""
    executor = FakeExecutor()
    executor.set("quectel show devices", error="No such command 'quectel show devices'")

    inspector = ModemInspector(executor, static_modems=("quectel-7",))

    assert inspector.list_modems() == ["quectel-7"]


def test_list_modems_prefers_live_enumeration():
    executor = FakeExecutor()
    executor.set("quectel show devices", DEVICES_TWO)

    inspector = ModemInspector(executor, static_modems=("quectel-7",))

    assert inspector.list_modems() == ["quectel-0", "quectel-1"]


# =========================
# TEST GROUP: Modem State
# =========================
# Function: parse_modem_state()
# -----------------------------
def test_parse_modem_state_healthy():
    health = parse_modem_state("quectel-0", STATE_HEALTHY.format(modem_id="quectel-0"))

    assert health.state is ModemState.FREE
    assert health.registered is True
    assert health.rssi == 24
    assert health.ok is True


def test_parse_modem_state_unrecognized_state_kept_raw():
    health = parse_modem_state("quectel-0", STATE_UNREGISTERED.format(modem_id="quectel-0"))

    assert health.state == "Not connected"
    assert health.registered is False
    assert health.rssi == 0
    assert health.ok is False


@pytest.mark.parametrize(
    "output, expected_ok",
    [
        # ✅ Ring and Dialing count as usable
        ("State: Ring\nGSM Registration Status: Registered\nRSSI: 10", True),
        ("State: Dialing\nGSM Registration Status: Registered\nRSSI: 10", True),

        # ❌ No signal
        ("State: Free\nGSM Registration Status: Registered\nRSSI: 0", False),

        # ❌ RSSI without digits → 0
        ("State: Free\nGSM Registration Status: Registered\nRSSI: n/a", False),

        # ❌ Missing registration line → unregistered
        ("State: Free\nRSSI: 20", False),

        # ❌ Garbage
        ("segmentation fault", False),
    ],
)
def test_parse_modem_state_least_favorable_defaults(output, expected_ok):
    assert parse_modem_state("quectel-0", output).ok is expected_ok


def test_parse_modem_state_executor_failure():
    health = parse_modem_state("quectel-0", "Error: Command timed out after 10s")

    assert health.state is ModemState.UNKNOWN
    assert health.ok is False
    assert health.error == "Command timed out after 10s"


def test_parse_modem_state_no_such_device():
    health = parse_modem_state("quectel-9", "No such device quectel-9")

    assert health.state == "Not found"
    assert health.ok is False


def test_send_at_routes_through_chan_quectel():
    executor = FakeExecutor()
    executor.set("quectel cmd quectel-0 AT+CSQ", "+CSQ: 24,99\nOK")

    result = ModemInspector(executor).send_at("quectel-0", "AT+CSQ")

    assert result.ok
    assert "+CSQ: 24,99" in result.output
