from unittest.mock import patch

import pytest

from gsm_watchdog.config import Config, WatchdogConfig
from gsm_watchdog.tracker import Thresholds


# ===============================
# TEST GROUP: WatchdogConfig
# ===============================
def test_defaults():
    config = WatchdogConfig()

    assert config.enabled is True
    assert config.check_interval_s == 30.0
    assert config.thresholds == Thresholds(soft=3, medium=6, hard=10)
    assert config.max_hard_attempts == 2
    assert config.wg_interface == "wg-relay"
    assert config.wg_max_recovery_attempts == 3


@pytest.mark.parametrize(
    "overrides",
    [
        {"check_interval_s": 0},            # ❌ no interval
        {"check_interval_s": -5},           # ❌ negative interval
        {"max_hard_attempts": 0},           # ❌ hard recovery never allowed
        {"wg_max_recovery_attempts": -1},   # ❌ negative reconnect budget
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValueError):
        WatchdogConfig(**overrides)


def test_from_env_reads_config():
    with patch.object(Config, "SOFT_THRESHOLD", 2), \
         patch.object(Config, "MEDIUM_THRESHOLD", 4), \
         patch.object(Config, "HARD_THRESHOLD", 8), \
         patch.object(Config, "CHECK_INTERVAL_S", 15.0), \
         patch.object(Config, "LOG_PATH", ""), \
         patch.object(Config.Hardware, "MODEMS", " quectel-0, ,quectel-1 "), \
         patch.object(Config.Tunnel, "WG_INTERFACE", "wg0"):
        config = WatchdogConfig.from_env()

    assert config.thresholds == Thresholds(soft=2, medium=4, hard=8)
    assert config.check_interval_s == 15.0
    assert config.modems == ("quectel-0", "quectel-1")
    assert config.log_path is None
    assert config.wg_interface == "wg0"


def test_from_env_rejects_inverted_thresholds():
    with patch.object(Config, "SOFT_THRESHOLD", 10), \
         patch.object(Config, "HARD_THRESHOLD", 3):
        with pytest.raises(ValueError):
            WatchdogConfig.from_env()
