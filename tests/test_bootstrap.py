import logging
from unittest.mock import patch

from gsm_watchdog.bootstrap import EnvCapabilities, bootstrap
from gsm_watchdog.config import WatchdogConfig


def fake_which(available):
    return lambda tool: f"/usr/bin/{tool}" if tool in available else None


def test_full_toolset():
    tools = {"asterisk", "systemctl", "lsusb", "usbreset", "ip"}
    with patch("gsm_watchdog.bootstrap.shutil.which", side_effect=fake_which(tools)):
        caps = bootstrap(WatchdogConfig(log_path="/tmp/watchdog.log"))

    assert caps == EnvCapabilities(asterisk_cli=True, usb_reset=True, interface_probe=True)


def test_missing_tools_are_logged_not_fatal(caplog):
    with patch("gsm_watchdog.bootstrap.shutil.which", side_effect=fake_which({"systemctl", "usbreset"})), \
         caplog.at_level(logging.INFO):
        caps = bootstrap(WatchdogConfig(log_path="/tmp/watchdog.log"))

    assert caps == EnvCapabilities(asterisk_cli=False, usb_reset=False, interface_probe=False)
    assert "asterisk NOT found on PATH" in caplog.text
    assert "lsusb not found on PATH" in caplog.text


def test_short_interval_warns(caplog):
    with patch("gsm_watchdog.bootstrap.shutil.which", return_value=None), \
         caplog.at_level(logging.WARNING):
        bootstrap(WatchdogConfig(check_interval_s=5, log_path=None))

    assert "LOG_PATH is empty" in caplog.text
    assert "shorter than the hard recovery settle delay" in caplog.text
